"""
Payment admin configuration.

This file imports admin configurations from the ledger submodule
and registers payment domain models with the Django admin.

Money-moving state is read-only here: releases, refunds and withdrawals
go through the services so the ledger stays balanced.
"""

from django.contrib import admin

from payments.ledger.admin import LedgerAccountAdmin, LedgerEntryAdmin
from payments.models import (
    AdminFeeWithdrawal,
    Dispute,
    Earning,
    FeeRule,
    Payment,
    PlatformSettings,
    WebhookEvent,
    Withdrawal,
)

__all__ = [
    "LedgerAccountAdmin",
    "LedgerEntryAdmin",
    "PaymentAdmin",
    "DisputeAdmin",
    "EarningAdmin",
    "FeeRuleAdmin",
    "PlatformSettingsAdmin",
    "WithdrawalAdmin",
    "AdminFeeWithdrawalAdmin",
    "WebhookEventAdmin",
]


class DisputeInline(admin.TabularInline):
    model = Dispute
    fk_name = "payment"
    extra = 0
    can_delete = False
    fields = ["filed_by", "filed_by_role", "reason", "status", "submitted_at", "resolved_at"]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payment.

    Status is an FSM field and can only change through the services.
    """

    list_display = [
        "id",
        "item_title",
        "buyer",
        "seller",
        "amount",
        "currency",
        "status",
        "is_disputed",
        "created_at",
    ]
    list_filter = ["status", "is_disputed", "currency", "created_at"]
    search_fields = ["id", "gateway_reference", "item_title", "buyer__email", "seller__email"]
    readonly_fields = [
        "id",
        "item",
        "item_title",
        "buyer",
        "seller",
        "amount",
        "currency",
        "status",
        "is_disputed",
        "dispute_reason",
        "gateway_reference",
        "gateway_transaction_id",
        "authorization_url",
        "platform_fee",
        "net_amount",
        "fee_percentage",
        "fee_rule",
        "resolved_by",
        "paid_at",
        "released_at",
        "refunded_at",
        "failed_at",
        "cancelled_at",
        "failure_reason",
        "version",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    inlines = [DisputeInline]

    fieldsets = (
        (None, {"fields": ("id", "item", "item_title", "buyer", "seller", "status")}),
        ("Amounts", {"fields": ("amount", "currency", "platform_fee", "net_amount", "fee_percentage", "fee_rule")}),
        ("Dispute", {"fields": ("is_disputed", "dispute_reason", "resolved_by")}),
        (
            "Gateway",
            {
                "fields": ("gateway_reference", "gateway_transaction_id", "authorization_url"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": (
                    "paid_at",
                    "released_at",
                    "refunded_at",
                    "failed_at",
                    "cancelled_at",
                    "failure_reason",
                    "created_at",
                    "updated_at",
                ),
            },
        ),
        ("Metadata", {"fields": ("metadata", "version"), "classes": ("collapse",)}),
    )

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Dispute)
class DisputeAdmin(admin.ModelAdmin):
    list_display = ["id", "payment", "filed_by", "filed_by_role", "reason", "status", "submitted_at"]
    list_filter = ["status", "filed_by_role"]
    search_fields = ["id", "payment__id", "reason", "filed_by__email"]
    readonly_fields = [
        "id",
        "payment",
        "item",
        "filed_by",
        "filed_by_role",
        "reason",
        "description",
        "status",
        "resolution_notes",
        "resolved_by",
        "submitted_at",
        "resolved_at",
    ]
    ordering = ["-submitted_at"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disputes are an append-only log."""
        return False


@admin.register(Earning)
class EarningAdmin(admin.ModelAdmin):
    list_display = ["id", "seller", "item_title", "amount", "status", "withdrawal", "created_at"]
    list_filter = ["status"]
    search_fields = ["id", "seller__email", "item_title"]
    readonly_fields = [
        "id",
        "seller",
        "payment",
        "item",
        "item_title",
        "amount",
        "status",
        "withdrawal",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def has_add_permission(self, request) -> bool:
        return False


@admin.register(FeeRule)
class FeeRuleAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "min_amount",
        "max_amount",
        "fee_percentage",
        "priority",
        "is_active",
        "created_at",
    ]
    list_filter = ["is_active"]
    list_editable = ["is_active"]
    search_fields = ["name"]
    ordering = ["-priority", "-created_at"]


@admin.register(PlatformSettings)
class PlatformSettingsAdmin(admin.ModelAdmin):
    """Singleton: one row holding the default fee percentage."""

    list_display = ["default_fee_percentage", "updated_at"]

    def has_add_permission(self, request) -> bool:
        return not PlatformSettings.objects.exists()

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


class BaseWithdrawalAdmin(admin.ModelAdmin):
    list_filter = ["status", "payout_method", "created_at"]
    readonly_fields = [
        "id",
        "amount",
        "currency",
        "status",
        "payout_method",
        "phone_number",
        "bank_code",
        "account_number",
        "account_name",
        "bank_name",
        "recipient_code",
        "transfer_code",
        "transfer_reference",
        "processed_at",
        "completed_at",
        "failed_at",
        "reversed_at",
        "failure_reason",
        "version",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Withdrawal)
class WithdrawalAdmin(BaseWithdrawalAdmin):
    list_display = ["id", "user", "amount", "currency", "payout_method", "status", "created_at"]
    search_fields = ["id", "user__email", "transfer_code", "transfer_reference"]
    readonly_fields = ["user"] + BaseWithdrawalAdmin.readonly_fields


@admin.register(AdminFeeWithdrawal)
class AdminFeeWithdrawalAdmin(BaseWithdrawalAdmin):
    list_display = ["id", "admin", "amount", "currency", "payout_method", "status", "created_at"]
    search_fields = ["id", "admin__email", "transfer_code", "transfer_reference"]
    readonly_fields = ["admin"] + BaseWithdrawalAdmin.readonly_fields


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into webhook processing status.
    Webhook events are immutable once received.
    """

    list_display = [
        "id",
        "event_key",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "event_key", "event_type"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "event_key",
        "event_type",
        "payload",
        "processed_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "event_key", "event_type", "status")}),
        ("Processing", {"fields": ("processed_at", "retry_count")}),
        ("Error Info", {"fields": ("error_message",), "classes": ("collapse",)}),
        ("Payload", {"fields": ("payload",), "classes": ("collapse",)}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        return False
