"""
DRF views for payments app.

Endpoints (prefixed with /api/v1/payments/):
    POST payments/                           - Create payment and start checkout
    GET  payments/{id}/                      - Payment detail (party or admin)
    POST payments/{id}/confirm-receipt/      - Buyer confirms delivery
    POST disputes/                           - File a dispute
    POST withdrawals/                        - Seller withdrawal
    GET  balance/                            - Caller's balance and earnings
    GET  admin/payments/attention/           - Disputed or overdue payments
    POST admin/payments/{id}/release/        - Admin release to seller
    POST admin/payments/{id}/refund/         - Admin refund to buyer
    POST admin/disputes/{id}/dismiss/        - Admin dismisses a dispute
    GET/POST admin/fee-rules/                - Fee rule management
    POST admin/fee-withdrawals/              - Platform fee withdrawal
    GET  admin/fee-pool/                     - Platform fee pool balance

Views are thin: they validate the request shape, call a service and
serialize the result. Service errors are rendered by ApplicationErrorMixin.
"""

from __future__ import annotations

from django.conf import settings
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import OpenApiResponse, extend_schema

from core.views import ApplicationErrorMixin

from authentication.capabilities import IsPlatformAdmin, is_admin
from listings.models import Item
from payments.exceptions import PaymentNotFoundError
from payments.ledger import ledger
from payments.models import Earning, FeeRule, Payment
from payments.serializers import (
    AdminFeeWithdrawalSerializer,
    AdminResolutionSerializer,
    AttentionPaymentSerializer,
    BalanceSerializer,
    CreatePaymentSerializer,
    DisputeSerializer,
    FeePoolSerializer,
    FeeRuleSerializer,
    FeeWithdrawalRequestSerializer,
    FileDisputeSerializer,
    PaymentSerializer,
    RefundOutcomeSerializer,
    ReleaseOutcomeSerializer,
    WithdrawalRequestSerializer,
    WithdrawalSerializer,
)
from payments.services import (
    DisputeService,
    PaymentService,
    PayoutDestination,
    ResolutionService,
    WithdrawalService,
)


# =============================================================================
# Buyer / Seller
# =============================================================================


class PaymentCreateView(ApplicationErrorMixin, APIView):
    """
    Create a payment for one unit of an item and start a Paystack checkout.

    POST /api/v1/payments/payments/

    The response carries authorization_url; the buyer completes payment
    there and the charge.success webhook moves the payment into escrow.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_payment",
        request=CreatePaymentSerializer,
        responses={
            201: PaymentSerializer,
            400: OpenApiResponse(description="Item unavailable or amount mismatch"),
            404: OpenApiResponse(description="Item not found"),
            502: OpenApiResponse(description="Paystack unavailable"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = CreatePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        item = Item.objects.select_related("seller").filter(pk=data["item_id"]).first()
        if item is None:
            raise PaymentNotFoundError(
                f"Item {data['item_id']} not found",
                error_code="ITEM_NOT_FOUND",
                details={"item_id": str(data["item_id"])},
            )

        payment = PaymentService.create_payment(
            item_id=item.id,
            buyer=request.user,
            seller=item.seller,
            amount=data["amount"],
        )
        payment = PaymentService.initialize_checkout(
            payment,
            email=request.user.email,
            callback_url=data.get("callback_url") or None,
        )
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


class PaymentDetailView(ApplicationErrorMixin, APIView):
    """
    GET /api/v1/payments/payments/{id}/

    Visible to the buyer, the seller and admins. Anyone else gets 404.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_payment",
        responses={200: PaymentSerializer, 404: OpenApiResponse(description="Not found")},
        tags=["Payments"],
    )
    def get(self, request, payment_id):
        payment = Payment.objects.filter(pk=payment_id).first()
        if payment is None or not (
            request.user.pk in (payment.buyer_id, payment.seller_id) or is_admin(request.user)
        ):
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                error_code="PAYMENT_NOT_FOUND",
                details={"payment_id": str(payment_id)},
            )
        return Response(PaymentSerializer(payment).data)


class ConfirmReceiptView(ApplicationErrorMixin, APIView):
    """POST /api/v1/payments/payments/{id}/confirm-receipt/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="confirm_receipt",
        request=None,
        responses={
            200: PaymentSerializer,
            403: OpenApiResponse(description="Caller is not the buyer"),
            409: OpenApiResponse(description="Payment disputed or not in escrow"),
        },
        tags=["Payments"],
    )
    def post(self, request, payment_id):
        payment = PaymentService.confirm_receipt(payment_id, buyer=request.user)
        return Response(PaymentSerializer(payment).data)


class DisputeCreateView(ApplicationErrorMixin, APIView):
    """POST /api/v1/payments/disputes/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="file_dispute",
        request=FileDisputeSerializer,
        responses={
            201: DisputeSerializer,
            403: OpenApiResponse(description="Caller is not a party"),
            409: OpenApiResponse(description="Already disputed or not eligible"),
        },
        tags=["Disputes"],
    )
    def post(self, request):
        serializer = FileDisputeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        dispute = DisputeService.file_dispute(
            payment_id=data["payment_id"],
            item_id=data["item_id"],
            filed_by=request.user,
            reason=data["reason"],
            description=data["description"],
        )
        return Response(DisputeSerializer(dispute).data, status=status.HTTP_201_CREATED)


class WithdrawalCreateView(ApplicationErrorMixin, APIView):
    """POST /api/v1/payments/withdrawals/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="request_withdrawal",
        request=WithdrawalRequestSerializer,
        responses={
            201: WithdrawalSerializer,
            400: OpenApiResponse(description="Invalid amount or destination"),
            409: OpenApiResponse(description="Insufficient balance"),
            502: OpenApiResponse(description="Transfer rejected by Paystack"),
        },
        tags=["Withdrawals"],
    )
    def post(self, request):
        serializer = WithdrawalRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        withdrawal = WithdrawalService.request_seller_withdrawal(
            user=request.user,
            amount=data.get("amount"),
            payout_method=data["payout_method"],
            destination=PayoutDestination.from_dict(data.get("destination")),
        )
        return Response(WithdrawalSerializer(withdrawal).data, status=status.HTTP_201_CREATED)


class BalanceView(APIView):
    """GET /api/v1/payments/balance/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(operation_id="get_balance", responses=BalanceSerializer, tags=["Withdrawals"])
    def get(self, request):
        currency = settings.PAYSTACK_CURRENCY
        earnings = Earning.objects.filter(seller=request.user).order_by("-created_at")
        data = {
            "currency": currency,
            "available": ledger.get_user_balance(request.user.pk, currency).amount,
            "earnings": earnings,
        }
        return Response(BalanceSerializer(data).data)


# =============================================================================
# Admin
# =============================================================================


class AttentionListView(APIView):
    """GET /api/v1/payments/admin/payments/attention/"""

    permission_classes = [IsPlatformAdmin]

    @extend_schema(
        operation_id="list_payments_needing_attention",
        responses=AttentionPaymentSerializer(many=True),
        tags=["Admin"],
    )
    def get(self, request):
        payments = DisputeService.list_disputed_or_overdue_payments()
        return Response(AttentionPaymentSerializer(payments, many=True).data)


class AdminReleaseView(ApplicationErrorMixin, APIView):
    """POST /api/v1/payments/admin/payments/{id}/release/"""

    permission_classes = [IsPlatformAdmin]

    @extend_schema(
        operation_id="admin_release_payment",
        request=AdminResolutionSerializer,
        responses={
            200: ReleaseOutcomeSerializer,
            409: OpenApiResponse(description="Payment not in escrow or changed"),
        },
        tags=["Admin"],
    )
    def post(self, request, payment_id):
        serializer = AdminResolutionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        outcome = ResolutionService.admin_release(
            payment_id,
            acting_admin=request.user,
            notes=data.get("notes"),
            expected_version=data.get("expected_version"),
        )
        return Response(ReleaseOutcomeSerializer(outcome).data)


class AdminRefundView(ApplicationErrorMixin, APIView):
    """POST /api/v1/payments/admin/payments/{id}/refund/"""

    permission_classes = [IsPlatformAdmin]

    @extend_schema(
        operation_id="admin_refund_payment",
        request=AdminResolutionSerializer,
        responses={
            200: RefundOutcomeSerializer,
            409: OpenApiResponse(description="Payment not in escrow or changed"),
        },
        tags=["Admin"],
    )
    def post(self, request, payment_id):
        serializer = AdminResolutionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        outcome = ResolutionService.admin_refund(
            payment_id,
            acting_admin=request.user,
            dispute_id=data.get("dispute_id"),
            notes=data.get("notes"),
            expected_version=data.get("expected_version"),
        )
        return Response(RefundOutcomeSerializer(outcome).data)


class AdminDismissDisputeView(ApplicationErrorMixin, APIView):
    """POST /api/v1/payments/admin/disputes/{id}/dismiss/"""

    permission_classes = [IsPlatformAdmin]

    @extend_schema(
        operation_id="admin_dismiss_dispute",
        request=AdminResolutionSerializer,
        responses={200: DisputeSerializer},
        tags=["Admin"],
    )
    def post(self, request, dispute_id):
        serializer = AdminResolutionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        dispute = DisputeService.dismiss_dispute(
            dispute_id,
            admin=request.user,
            notes=serializer.validated_data.get("notes"),
        )
        return Response(DisputeSerializer(dispute).data)


@extend_schema(tags=["Admin"])
class FeeRuleListCreateView(generics.ListCreateAPIView):
    """GET/POST /api/v1/payments/admin/fee-rules/"""

    permission_classes = [IsPlatformAdmin]
    serializer_class = FeeRuleSerializer
    queryset = FeeRule.objects.order_by("-priority", "-created_at")


class AdminFeeWithdrawalView(ApplicationErrorMixin, APIView):
    """POST /api/v1/payments/admin/fee-withdrawals/"""

    permission_classes = [IsPlatformAdmin]

    @extend_schema(
        operation_id="request_fee_withdrawal",
        request=FeeWithdrawalRequestSerializer,
        responses={
            201: AdminFeeWithdrawalSerializer,
            409: OpenApiResponse(description="Fee pool too small"),
            502: OpenApiResponse(description="Transfer rejected by Paystack"),
        },
        tags=["Admin"],
    )
    def post(self, request):
        serializer = FeeWithdrawalRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        withdrawal = WithdrawalService.request_platform_fee_withdrawal(
            admin=request.user,
            amount=data["amount"],
            payout_method=data["payout_method"],
            destination=PayoutDestination.from_dict(data.get("destination")),
        )
        return Response(
            AdminFeeWithdrawalSerializer(withdrawal).data, status=status.HTTP_201_CREATED
        )


class FeePoolView(APIView):
    """GET /api/v1/payments/admin/fee-pool/"""

    permission_classes = [IsPlatformAdmin]

    @extend_schema(operation_id="get_fee_pool", responses=FeePoolSerializer, tags=["Admin"])
    def get(self, request):
        currency = settings.PAYSTACK_CURRENCY
        balance = ledger.get_balance(ledger.fees_account(currency).id)
        return Response(FeePoolSerializer({"currency": currency, "balance": balance.amount}).data)
