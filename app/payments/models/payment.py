"""
Payment model: the escrow state machine.

A Payment is one buyer paying for one unit of one Item. Money goes to the
platform first and sits in escrow until the buyer confirms receipt or an
admin resolves the payment.

Usage:
    from payments.models import Payment
    from payments.state_machines import PaymentStatus

    payment = Payment.objects.create(
        item=item,
        item_title=item.title,
        buyer=buyer,
        seller=item.seller,
        amount=item.price,
    )

    # State transitions using django-fsm
    payment.mark_paid(gateway_transaction_id="4099260516")
    payment.save()

    payment.release(breakdown)   # paid_to_platform -> released_to_seller_balance
    payment.save()
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel

from payments.state_machines import TERMINAL_PAYMENT_STATUSES, PaymentStatus

if TYPE_CHECKING:
    from payments.services.fee_calculator import FeeBreakdown


class Payment(UUIDPrimaryKeyMixin, VersionedMixin, MetadataMixin, BaseModel):
    """
    A buyer's payment for an item, held in escrow by the platform.

    State Flow:
        INITIATED -> PAID_TO_PLATFORM -> RELEASED_TO_SELLER_BALANCE
        INITIATED -> PAID_TO_PLATFORM -> REFUNDED
        INITIATED -> FAILED
        INITIATED -> CANCELLED

    A dispute does not change the status. It sets is_disputed, which blocks
    the buyer's own confirmation until an admin resolves the payment.

    Fields:
        item: Item being bought (null once the item is deleted)
        item_title: Title snapshot taken at creation
        buyer / seller: The two parties
        amount: Gross amount charged; never changes after creation
        status: Current FSM state
        is_disputed / dispute_reason: Dispute flag and latest reason
        gateway_reference: Our reference sent to Paystack
        gateway_transaction_id: Paystack transaction id once paid
        platform_fee / net_amount / fee_percentage / fee_rule: Set on release
        resolved_by: Admin who released or refunded, if any
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    item = models.ForeignKey(
        "listings.Item",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Item being paid for (null if the item was later deleted)",
    )

    item_title = models.CharField(
        max_length=200,
        blank=True,
        default="",
        help_text="Item title at the time of payment",
    )

    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="purchases",
        help_text="User paying for the item",
    )

    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="sales",
        help_text="User receiving the net amount on release",
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        editable=False,
        help_text="Gross amount in major currency units (immutable)",
    )

    currency = models.CharField(
        max_length=3,
        default="KES",
        help_text="ISO 4217 currency code",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.INITIATED,
        choices=PaymentStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payment (managed by FSM)",
    )

    is_disputed = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether an unresolved dispute is attached to this payment",
    )

    dispute_reason = models.TextField(
        blank=True,
        default="",
        help_text="Reason given in the open dispute",
    )

    # ==========================================================================
    # Gateway Integration
    # ==========================================================================

    gateway_reference = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        unique=True,
        help_text="Reference sent to Paystack when initializing the charge",
    )

    gateway_transaction_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        help_text="Paystack transaction id, set when the charge succeeds",
    )

    authorization_url = models.URLField(
        max_length=500,
        null=True,
        blank=True,
        help_text="Paystack checkout URL for the buyer",
    )

    # ==========================================================================
    # Fee Breakdown (set on release)
    # ==========================================================================

    platform_fee = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Fee retained by the platform",
    )

    net_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount credited to the seller (amount - platform_fee)",
    )

    fee_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Percentage applied to compute platform_fee",
    )

    fee_rule = models.ForeignKey(
        "payments.FeeRule",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Fee rule applied (null if the platform default was used)",
    )

    # ==========================================================================
    # Resolution & Timestamps
    # ==========================================================================

    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="resolved_payments",
        help_text="Admin who released or refunded this payment",
    )

    paid_at = models.DateTimeField(null=True, blank=True)
    released_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Why the payment failed or was cancelled",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(fields=["status", "created_at"]),
            models.Index(fields=["buyer", "status"]),
            models.Index(fields=["seller", "status"]),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(amount__gt=0),
                name="payment_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment({self.id}, {self.status}, {self.amount} {self.currency})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentStatus.INITIATED,
        target=PaymentStatus.PAID_TO_PLATFORM,
    )
    def mark_paid(self, gateway_transaction_id: str | None = None):
        """
        Record that the buyer's money reached the platform.

        Transition: INITIATED -> PAID_TO_PLATFORM
        """
        self.paid_at = timezone.now()
        if gateway_transaction_id:
            self.gateway_transaction_id = str(gateway_transaction_id)

    @transition(
        field=status,
        source=PaymentStatus.PAID_TO_PLATFORM,
        target=PaymentStatus.RELEASED_TO_SELLER_BALANCE,
    )
    def release(self, breakdown: FeeBreakdown):
        """
        Release escrowed funds to the seller's balance.

        Transition: PAID_TO_PLATFORM -> RELEASED_TO_SELLER_BALANCE

        Stores the fee breakdown used for the ledger entries.
        """
        self.platform_fee = breakdown.fee
        self.net_amount = breakdown.net
        self.fee_percentage = breakdown.percentage
        self.fee_rule_id = breakdown.rule_id
        self.released_at = timezone.now()
        self.clear_dispute()

    @transition(
        field=status,
        source=PaymentStatus.PAID_TO_PLATFORM,
        target=PaymentStatus.REFUNDED,
    )
    def refund(self):
        """
        Return escrowed funds to the buyer's balance.

        Transition: PAID_TO_PLATFORM -> REFUNDED
        """
        self.refunded_at = timezone.now()
        self.clear_dispute()

    @transition(
        field=status,
        source=PaymentStatus.INITIATED,
        target=PaymentStatus.FAILED,
    )
    def fail(self, reason: str | None = None):
        """Transition: INITIATED -> FAILED"""
        self.failed_at = timezone.now()
        if reason:
            self.failure_reason = reason

    @transition(
        field=status,
        source=PaymentStatus.INITIATED,
        target=PaymentStatus.CANCELLED,
    )
    def cancel(self, reason: str | None = None):
        """Transition: INITIATED -> CANCELLED"""
        self.cancelled_at = timezone.now()
        if reason:
            self.failure_reason = reason

    def clear_dispute(self) -> None:
        """Drop the dispute flag and reason once the dispute is settled."""
        self.is_disputed = False
        self.dispute_reason = ""

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_PAYMENT_STATUSES

    @property
    def is_in_escrow(self) -> bool:
        """Check if funds are currently held by the platform."""
        return self.status == PaymentStatus.PAID_TO_PLATFORM

    @property
    def amount_minor(self) -> int:
        """Gross amount in minor units (cents) as sent to the gateway."""
        return int((self.amount * Decimal(100)).to_integral_value())
