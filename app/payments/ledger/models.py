"""
Ledger models for double-entry bookkeeping.

- LedgerAccount: Holds monetary value (user balances, escrow, fee pool)
- LedgerEntry: Records movements between accounts

Every balance in the marketplace is derived from entries: a seller's
"available balance" is the balance of their USER_BALANCE account and the
platform's "total fees" is the balance of the PLATFORM_FEES account.

Money flows:
    payment confirmed   EXTERNAL_GATEWAY -> PLATFORM_ESCROW   (gross)
    payment released    PLATFORM_ESCROW  -> USER_BALANCE      (net, seller)
                        PLATFORM_ESCROW  -> PLATFORM_FEES     (fee)
    payment refunded    PLATFORM_ESCROW  -> USER_BALANCE      (gross, buyer)
    seller withdrawal   USER_BALANCE     -> EXTERNAL_GATEWAY
    fee withdrawal      PLATFORM_FEES    -> EXTERNAL_GATEWAY
    withdrawal failed   EXTERNAL_GATEWAY -> source account    (reversal)
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.db.models import Case, Q, Sum, Value, When
from django.db.models.functions import Coalesce

from core.model_mixins import UUIDPrimaryKeyMixin

from payments.ledger.types import DEFAULT_CURRENCY


def _amount_output() -> models.DecimalField:
    return models.DecimalField(max_digits=14, decimal_places=2)


class AccountType(models.TextChoices):
    """
    Types of ledger accounts.

    Values:
        USER_BALANCE: A user's available balance (seller earnings, buyer refunds)
        PLATFORM_ESCROW: Money held for payments awaiting resolution
        PLATFORM_FEES: Platform fee pool, withdrawable by admins
        EXTERNAL_GATEWAY: Money in/out of the payment gateway (outside world)
    """

    USER_BALANCE = "user_balance", "User Balance"
    PLATFORM_ESCROW = "platform_escrow", "Platform Escrow"
    PLATFORM_FEES = "platform_fees", "Platform Fees"
    EXTERNAL_GATEWAY = "external_gateway", "External Gateway"


class EntryType(models.TextChoices):
    """
    Types of ledger entries.

    Values:
        PAYMENT_RECEIVED: Buyer's money arrived at the platform
        PAYMENT_RELEASED: Net amount released from escrow to the seller
        FEE_COLLECTED: Platform fee moved from escrow to the fee pool
        REFUND: Gross amount returned from escrow to the buyer
        WITHDRAWAL: Money leaving a balance towards the gateway
        WITHDRAWAL_REVERSAL: Withdrawal debit undone after gateway failure
        ADJUSTMENT: Manual correction
    """

    PAYMENT_RECEIVED = "payment_received", "Payment Received"
    PAYMENT_RELEASED = "payment_released", "Payment Released"
    FEE_COLLECTED = "fee_collected", "Fee Collected"
    REFUND = "refund", "Refund"
    WITHDRAWAL = "withdrawal", "Withdrawal"
    WITHDRAWAL_REVERSAL = "withdrawal_reversal", "Withdrawal Reversal"
    ADJUSTMENT = "adjustment", "Adjustment"


class LedgerAccount(UUIDPrimaryKeyMixin, models.Model):
    """
    A ledger account that holds monetary value.

    The balance is computed from the sum of all credits minus debits in
    related entries; it is never stored.

    Fields:
        type: Account category
        owner_id: UUID of the owning user (USER_BALANCE accounts only)
        currency: ISO 4217 currency code
        allow_negative: Whether balance can go negative (gateway account)
        is_active: Whether the account accepts new entries
        created_at: Timestamp when account was created

    Constraints:
        - Unique combination of (type, owner_id, currency)
    """

    type = models.CharField(
        max_length=50,
        choices=AccountType.choices,
        help_text="Category of this account",
    )
    owner_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="UUID of the user that owns this account",
    )
    currency = models.CharField(
        max_length=3,
        default=DEFAULT_CURRENCY,
        help_text="ISO 4217 currency code",
    )
    allow_negative = models.BooleanField(
        default=False,
        help_text="Whether this account can have a negative balance",
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether this account is active",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this account was created",
    )

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["type", "owner_id", "currency"],
                name="unique_account_per_owner",
            ),
            # NULL owner_id is distinct in the constraint above
            models.UniqueConstraint(
                fields=["type", "currency"],
                condition=Q(owner_id__isnull=True),
                name="unique_platform_account",
            ),
        ]
        indexes = [
            models.Index(fields=["type", "currency"]),
        ]

    def __str__(self) -> str:
        if self.owner_id:
            return f"{self.get_type_display()} ({self.owner_id})"
        return self.get_type_display()

    def get_balance(self) -> Decimal:
        """
        Compute current balance from entries.

        Returns:
            Credits minus debits (negative only if allow_negative)
        """
        result = LedgerEntry.objects.filter(
            Q(credit_account=self) | Q(debit_account=self)
        ).aggregate(
            credits=Coalesce(
                Sum(
                    Case(
                        When(credit_account=self, then="amount"),
                        default=Value(Decimal("0")),
                        output_field=_amount_output(),
                    )
                ),
                Value(Decimal("0")),
                output_field=_amount_output(),
            ),
            debits=Coalesce(
                Sum(
                    Case(
                        When(debit_account=self, then="amount"),
                        default=Value(Decimal("0")),
                        output_field=_amount_output(),
                    )
                ),
                Value(Decimal("0")),
                output_field=_amount_output(),
            ),
        )
        return Decimal(result["credits"]) - Decimal(result["debits"])


class LedgerEntry(UUIDPrimaryKeyMixin, models.Model):
    """
    A ledger entry recording movement of money between accounts.

    Entries are immutable once created. Corrections are new entries
    (a failed withdrawal gets a WITHDRAWAL_REVERSAL, never a deletion).

    Constraints:
        - amount must be positive
        - idempotency_key must be unique
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this entry was recorded",
    )

    debit_account = models.ForeignKey(
        LedgerAccount,
        on_delete=models.PROTECT,
        related_name="debit_entries",
        help_text="Account money is taken from",
    )
    credit_account = models.ForeignKey(
        LedgerAccount,
        on_delete=models.PROTECT,
        related_name="credit_entries",
        help_text="Account money is added to",
    )
    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Amount in major currency units (always positive)",
    )
    currency = models.CharField(
        max_length=3,
        default=DEFAULT_CURRENCY,
        help_text="ISO 4217 currency code",
    )

    entry_type = models.CharField(
        max_length=50,
        choices=EntryType.choices,
        help_text="Category of this entry",
    )
    reference_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="UUID of related business entity (payment, withdrawal)",
    )
    reference_type = models.CharField(
        max_length=50,
        null=True,
        blank=True,
        help_text="Type of related entity (e.g., 'payment', 'withdrawal')",
    )

    description = models.TextField(
        null=True,
        blank=True,
        help_text="Human-readable description of this entry",
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON data for extensibility",
    )

    created_by = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Identifier of service/user that created this entry",
    )
    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Unique key to prevent duplicate entries",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "ledger entries"
        indexes = [
            models.Index(fields=["reference_type", "reference_id"]),
            models.Index(fields=["entry_type"]),
        ]
        constraints = [
            models.CheckConstraint(
                check=Q(amount__gt=0),
                name="ledger_entry_amount_positive",
            )
        ]

    def __str__(self) -> str:
        return f"{self.get_entry_type_display()}: {self.amount} {self.currency}"
