"""
Withdrawal models for money leaving the platform through Paystack.

- Withdrawal: A seller cashing out their available balance
- AdminFeeWithdrawal: An admin cashing out the platform fee pool

Both share BaseWithdrawal: destination fields, gateway identifiers and the
pending -> processing -> completed | failed state machine.

Usage:
    from payments.models import Withdrawal

    withdrawal = Withdrawal.objects.create(
        user=seller,
        amount=Decimal("900.00"),
        payout_method=PayoutMethod.MPESA,
        phone_number="254712345678",
    )

    withdrawal.start_processing(
        recipient_code="RCP_x", transfer_code="TRF_x", transfer_reference="wdrl_..."
    )
    withdrawal.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel

from payments.state_machines import PayoutMethod, WithdrawalStatus


class BaseWithdrawal(UUIDPrimaryKeyMixin, VersionedMixin, MetadataMixin, BaseModel):
    """
    Abstract base for outbound transfers.

    State Flow:
        PENDING -> PROCESSING -> COMPLETED   (transfer.success webhook)
        PENDING -> FAILED                    (gateway rejected the request)
        PROCESSING -> FAILED                 (transfer.failed / transfer.reversed)

    Subclasses define the owner field and the transfer reference prefix.
    """

    reference_prefix: str = ""

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Amount withdrawn in major currency units",
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
        default=WithdrawalStatus.PENDING,
        choices=WithdrawalStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the withdrawal (managed by FSM)",
    )

    # ==========================================================================
    # Destination
    # ==========================================================================

    payout_method = models.CharField(
        max_length=20,
        choices=PayoutMethod.choices,
        help_text="Destination rail",
    )

    phone_number = models.CharField(
        max_length=20,
        blank=True,
        default="",
        help_text="Normalized M-Pesa number (2547XXXXXXXX)",
    )

    bank_code = models.CharField(max_length=20, blank=True, default="")
    account_number = models.CharField(max_length=50, blank=True, default="")
    account_name = models.CharField(max_length=200, blank=True, default="")
    bank_name = models.CharField(max_length=200, blank=True, default="")

    # ==========================================================================
    # Paystack Integration
    # ==========================================================================

    recipient_code = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        help_text="Paystack transfer recipient code (RCP_xxx)",
    )

    transfer_code = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        help_text="Paystack transfer code (TRF_xxx)",
    )

    transfer_reference = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        unique=True,
        help_text="Our reference for the Paystack transfer",
    )

    # ==========================================================================
    # Timestamps & Error Info
    # ==========================================================================

    processed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    reversed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When Paystack returned a transfer that had completed",
    )

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Gateway message if the withdrawal failed",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.id}, {self.status}, {self.amount} {self.currency})"

    @property
    def reference(self) -> str:
        """Transfer reference sent to Paystack, e.g. ``wdrl_<id>``."""
        return f"{self.reference_prefix}_{self.id}"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=WithdrawalStatus.PENDING,
        target=WithdrawalStatus.PROCESSING,
    )
    def start_processing(
        self,
        recipient_code: str | None = None,
        transfer_code: str | None = None,
        transfer_reference: str | None = None,
    ):
        """
        Record that Paystack accepted the transfer.

        Transition: PENDING -> PROCESSING
        """
        self.recipient_code = recipient_code
        self.transfer_code = transfer_code
        self.transfer_reference = transfer_reference
        self.processed_at = timezone.now()

    @transition(
        field=status,
        source=WithdrawalStatus.PROCESSING,
        target=WithdrawalStatus.COMPLETED,
    )
    def complete(self):
        """
        Mark the transfer as delivered.

        Transition: PROCESSING -> COMPLETED
        """
        self.completed_at = timezone.now()

    @transition(
        field=status,
        source=[WithdrawalStatus.PENDING, WithdrawalStatus.PROCESSING],
        target=WithdrawalStatus.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark the transfer as failed.

        Transition: PENDING/PROCESSING -> FAILED
        """
        self.failed_at = timezone.now()
        if reason:
            self.failure_reason = reason

    @transition(
        field=status,
        source=WithdrawalStatus.COMPLETED,
        target=WithdrawalStatus.FAILED,
    )
    def reverse(self, reason: str | None = None):
        """
        Record that a delivered transfer came back.

        Transition: COMPLETED -> FAILED
        """
        self.reversed_at = timezone.now()
        self.failed_at = self.reversed_at
        if reason:
            self.failure_reason = reason

    @property
    def is_terminal(self) -> bool:
        return self.status in (WithdrawalStatus.COMPLETED, WithdrawalStatus.FAILED)


class Withdrawal(BaseWithdrawal):
    """A seller withdrawing from their available balance."""

    reference_prefix = "wdrl"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="withdrawals",
        help_text="Seller withdrawing funds",
    )

    class Meta(BaseWithdrawal.Meta):
        verbose_name = "Withdrawal"
        verbose_name_plural = "Withdrawals"
        indexes = [
            models.Index(fields=["user", "status"]),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(amount__gt=0),
                name="withdrawal_amount_positive",
            ),
        ]


class AdminFeeWithdrawal(BaseWithdrawal):
    """An admin withdrawing from the platform fee pool."""

    reference_prefix = "pfw"

    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="fee_withdrawals",
        help_text="Admin who requested the withdrawal",
    )

    class Meta(BaseWithdrawal.Meta):
        verbose_name = "Platform Fee Withdrawal"
        verbose_name_plural = "Platform Fee Withdrawals"
        constraints = [
            models.CheckConstraint(
                check=models.Q(amount__gt=0),
                name="admin_fee_withdrawal_amount_positive",
            ),
        ]
