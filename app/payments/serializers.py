"""
DRF serializers for payments app.

This module provides serializers for:
- Payment creation and detail
- Disputes and admin resolutions
- Fee rules
- Withdrawals and balances

Request serializers only validate shape; business rules (prices, states,
balances) are enforced by the services, which raise typed errors.

Related files:
    - views.py: Payment API views
    - services/: PaymentService, DisputeService, ResolutionService, WithdrawalService
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from payments.models import AdminFeeWithdrawal, Dispute, Earning, FeeRule, Payment, Withdrawal
from payments.models.dispute import MAX_DISPUTE_DESCRIPTION_LENGTH
from payments.state_machines import PayoutMethod


# =============================================================================
# Payments
# =============================================================================


class CreatePaymentSerializer(serializers.Serializer):
    """Request body for buying one unit of an item."""

    item_id = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    callback_url = serializers.URLField(required=False, allow_blank=True)


class PaymentSerializer(serializers.ModelSerializer):
    """Payment detail as seen by its parties and admins."""

    buyer_id = serializers.UUIDField(read_only=True)
    seller_id = serializers.UUIDField(read_only=True)
    item_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "item_id",
            "item_title",
            "buyer_id",
            "seller_id",
            "amount",
            "currency",
            "status",
            "is_disputed",
            "dispute_reason",
            "gateway_reference",
            "authorization_url",
            "platform_fee",
            "net_amount",
            "fee_percentage",
            "version",
            "paid_at",
            "released_at",
            "refunded_at",
            "failure_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


# =============================================================================
# Disputes
# =============================================================================


class FileDisputeSerializer(serializers.Serializer):
    """Request body for filing a dispute."""

    payment_id = serializers.UUIDField()
    item_id = serializers.UUIDField()
    reason = serializers.CharField(max_length=255)
    description = serializers.CharField(max_length=MAX_DISPUTE_DESCRIPTION_LENGTH)


class DisputeSerializer(serializers.ModelSerializer):
    payment_id = serializers.UUIDField(read_only=True)
    item_id = serializers.UUIDField(read_only=True, allow_null=True)
    filed_by_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Dispute
        fields = [
            "id",
            "payment_id",
            "item_id",
            "filed_by_id",
            "filed_by_role",
            "reason",
            "description",
            "status",
            "resolution_notes",
            "submitted_at",
            "resolved_at",
        ]
        read_only_fields = fields


class AdminResolutionSerializer(serializers.Serializer):
    """
    Request body for admin release/refund/dismiss.

    expected_version is the payment version the admin was looking at; when
    sent, a payment changed since then is rejected with 409.
    """

    notes = serializers.CharField(required=False, allow_blank=True)
    expected_version = serializers.IntegerField(required=False, min_value=1)
    dispute_id = serializers.UUIDField(required=False)


class ReleaseOutcomeSerializer(serializers.Serializer):
    seller_id = serializers.UUIDField()
    net_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    item_id = serializers.UUIDField(allow_null=True)


class RefundOutcomeSerializer(serializers.Serializer):
    buyer_id = serializers.UUIDField()
    seller_id = serializers.UUIDField()
    amount_refunded = serializers.DecimalField(max_digits=14, decimal_places=2)
    item_id = serializers.UUIDField(allow_null=True)


class AttentionPaymentSerializer(PaymentSerializer):
    """Payment row on the admin attention list, with its open disputes."""

    open_disputes = serializers.SerializerMethodField()

    class Meta(PaymentSerializer.Meta):
        fields = PaymentSerializer.Meta.fields + ["open_disputes"]
        read_only_fields = fields

    def get_open_disputes(self, obj) -> list[dict]:
        return DisputeSerializer(Dispute.objects.open_for(obj), many=True).data


# =============================================================================
# Fee Rules
# =============================================================================


class FeeRuleSerializer(serializers.ModelSerializer):
    class Meta:
        model = FeeRule
        fields = [
            "id",
            "name",
            "description",
            "min_amount",
            "max_amount",
            "fee_percentage",
            "priority",
            "is_active",
            "created_at",
        ]
        read_only_fields = ["id", "created_at"]

    def validate_fee_percentage(self, value: Decimal) -> Decimal:
        if value < 0 or value > 100:
            raise serializers.ValidationError("Must be between 0 and 100")
        return value

    def validate(self, attrs: dict) -> dict:
        min_amount = attrs.get("min_amount")
        max_amount = attrs.get("max_amount")
        if min_amount is not None and max_amount is not None and min_amount > max_amount:
            raise serializers.ValidationError(
                {"max_amount": "Must be greater than or equal to min_amount"}
            )
        return attrs


# =============================================================================
# Withdrawals
# =============================================================================


class PayoutDestinationSerializer(serializers.Serializer):
    phone_number = serializers.CharField(required=False, allow_blank=True)
    bank_code = serializers.CharField(required=False, allow_blank=True)
    account_number = serializers.CharField(required=False, allow_blank=True)
    account_name = serializers.CharField(required=False, allow_blank=True)
    bank_name = serializers.CharField(required=False, allow_blank=True)


class WithdrawalRequestSerializer(serializers.Serializer):
    """
    Request body for a seller withdrawal.

    amount is optional; without it the whole available balance is withdrawn.
    """

    amount = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)
    payout_method = serializers.ChoiceField(
        choices=PayoutMethod.choices, default=PayoutMethod.MPESA
    )
    destination = PayoutDestinationSerializer(required=False)


class FeeWithdrawalRequestSerializer(WithdrawalRequestSerializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)


WITHDRAWAL_FIELDS = [
    "id",
    "reference",
    "amount",
    "currency",
    "status",
    "payout_method",
    "phone_number",
    "bank_code",
    "account_number",
    "account_name",
    "bank_name",
    "transfer_code",
    "failure_reason",
    "processed_at",
    "completed_at",
    "failed_at",
    "reversed_at",
    "created_at",
]


class WithdrawalSerializer(serializers.ModelSerializer):
    reference = serializers.CharField(read_only=True)

    class Meta:
        model = Withdrawal
        fields = WITHDRAWAL_FIELDS
        read_only_fields = fields


class AdminFeeWithdrawalSerializer(serializers.ModelSerializer):
    reference = serializers.CharField(read_only=True)

    class Meta:
        model = AdminFeeWithdrawal
        fields = WITHDRAWAL_FIELDS
        read_only_fields = fields


# =============================================================================
# Balances
# =============================================================================


class EarningSerializer(serializers.ModelSerializer):
    payment_id = serializers.UUIDField(read_only=True)
    item_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = Earning
        fields = ["id", "payment_id", "item_id", "item_title", "amount", "status", "created_at"]
        read_only_fields = fields


class BalanceSerializer(serializers.Serializer):
    currency = serializers.CharField()
    available = serializers.DecimalField(max_digits=14, decimal_places=2)
    earnings = EarningSerializer(many=True)


class FeePoolSerializer(serializers.Serializer):
    currency = serializers.CharField()
    balance = serializers.DecimalField(max_digits=14, decimal_places=2)
