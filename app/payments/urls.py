"""
URL configuration for the payments app.

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments import views
from payments.webhooks.views import paystack_webhook

app_name = "payments"

urlpatterns = [
    # Buyer / seller
    path("payments/", views.PaymentCreateView.as_view(), name="payment-create"),
    path(
        "payments/<uuid:payment_id>/",
        views.PaymentDetailView.as_view(),
        name="payment-detail",
    ),
    path(
        "payments/<uuid:payment_id>/confirm-receipt/",
        views.ConfirmReceiptView.as_view(),
        name="payment-confirm-receipt",
    ),
    path("disputes/", views.DisputeCreateView.as_view(), name="dispute-create"),
    path("withdrawals/", views.WithdrawalCreateView.as_view(), name="withdrawal-create"),
    path("balance/", views.BalanceView.as_view(), name="balance"),
    # Admin
    path(
        "admin/payments/attention/",
        views.AttentionListView.as_view(),
        name="admin-attention",
    ),
    path(
        "admin/payments/<uuid:payment_id>/release/",
        views.AdminReleaseView.as_view(),
        name="admin-release",
    ),
    path(
        "admin/payments/<uuid:payment_id>/refund/",
        views.AdminRefundView.as_view(),
        name="admin-refund",
    ),
    path(
        "admin/disputes/<uuid:dispute_id>/dismiss/",
        views.AdminDismissDisputeView.as_view(),
        name="admin-dismiss-dispute",
    ),
    path("admin/fee-rules/", views.FeeRuleListCreateView.as_view(), name="admin-fee-rules"),
    path(
        "admin/fee-withdrawals/",
        views.AdminFeeWithdrawalView.as_view(),
        name="admin-fee-withdrawal",
    ),
    path("admin/fee-pool/", views.FeePoolView.as_view(), name="admin-fee-pool"),
    # Webhook endpoints
    path("webhooks/paystack/", paystack_webhook, name="paystack_webhook"),
]
