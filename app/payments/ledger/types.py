"""
Data types for ledger operations.

Types:
    Money: A Decimal amount with currency, always quantized to 2 places
    RecordEntryParams: Parameters for recording a ledger entry

Amounts are Decimal in major currency units (shillings, not cents).
Floats are never accepted: every value goes through to_decimal_amount().

Usage:
    from payments.ledger.types import Money, RecordEntryParams

    params = RecordEntryParams(
        debit_account_id=escrow.id,
        credit_account_id=seller_balance.id,
        amount=Decimal("900.00"),
        entry_type=EntryType.PAYMENT_RELEASED,
        idempotency_key=f"payment:{payment.id}:release:net",
    )
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

DEFAULT_CURRENCY = "KES"

CENT = Decimal("0.01")


def to_decimal_amount(value: Decimal | int | str) -> Decimal:
    """
    Convert a value to a 2-place Decimal amount.

    Raises:
        ValueError: For floats, non-numeric strings and non-finite values
    """
    if isinstance(value, float):
        raise ValueError("Monetary amounts must not be floats")
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Invalid monetary amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Monetary amount must be finite: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money:
    """
    Represents a monetary amount.

    Attributes:
        amount: Decimal in major units, 2 decimal places
        currency: ISO 4217 currency code (default: 'KES')

    Example:
        balance = Money(amount=Decimal("1500.00"))
        print(balance)  # "1500.00 KES"
    """

    amount: Decimal
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal_amount(self.amount))

    def __str__(self) -> str:
        return f"{self.amount:.2f} {self.currency.upper()}"

    def __add__(self, other: Money) -> Money:
        """Add two Money objects (must have same currency)."""
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot add Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        """Subtract two Money objects (must have same currency)."""
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot subtract Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return Money(amount=self.amount - other.amount, currency=self.currency)


@dataclass
class RecordEntryParams:
    """
    Parameters for recording a ledger entry.

    Every entry debits one account and credits another.

    Required Attributes:
        debit_account_id: UUID of the account being debited (money out)
        credit_account_id: UUID of the account being credited (money in)
        amount: Positive Decimal amount
        entry_type: Type of entry (e.g., 'payment_released', 'withdrawal')
        idempotency_key: Unique key to prevent duplicate entries

    Optional Attributes:
        reference_id: UUID of related business entity (payment, withdrawal)
        reference_type: Type of related entity ('payment', 'withdrawal', ...)
        description: Human-readable description
        metadata: Arbitrary JSON-serializable data
        created_by: Identifier of the service/user creating the entry
    """

    debit_account_id: uuid.UUID
    credit_account_id: uuid.UUID
    amount: Decimal
    entry_type: str
    idempotency_key: str

    reference_id: uuid.UUID | None = None
    reference_type: str | None = None
    description: str | None = None
    metadata: dict[str, Any] | None = field(default_factory=dict)
    created_by: str | None = None

    def __post_init__(self) -> None:
        """Validate params after initialization."""
        self.amount = to_decimal_amount(self.amount)
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if self.debit_account_id == self.credit_account_id:
            raise ValueError("debit_account_id and credit_account_id must be different")
