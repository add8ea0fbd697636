"""
Ledger-specific exceptions for financial operations.

Exception Hierarchy:
    LedgerError (base)
    ├── AccountNotFound - Account lookup failures (404)
    ├── InsufficientBalance - Debit exceeds balance (409)
    └── InactiveAccount - Operations on inactive accounts (409)

Usage:
    from payments.ledger.exceptions import InsufficientBalance

    try:
        ledger.record_entry(params)
    except InsufficientBalance as e:
        print(f"Need {e.required}, have {e.available}")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError, NotFoundError

if TYPE_CHECKING:
    import uuid
    from decimal import Decimal
    from typing import Any


class LedgerError(BaseApplicationError):
    """Base exception for all ledger operations."""

    default_error_code: str = "LEDGER_ERROR"


class AccountNotFound(LedgerError, NotFoundError):
    """Raised when a ledger account cannot be found."""

    default_error_code: str = "ACCOUNT_NOT_FOUND"


class InsufficientBalance(LedgerError, ConflictError):
    """
    Raised when an account has insufficient funds for a debit.

    A seller asking to withdraw more than their available balance, or an
    admin asking for more than the platform fee pool holds, ends here.

    Attributes:
        account_id: The UUID of the account with insufficient funds
        required: The amount that was required
        available: The amount that was available
    """

    default_error_code: str = "INSUFFICIENT_BALANCE"

    def __init__(
        self,
        account_id: uuid.UUID,
        required: Decimal,
        available: Decimal,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.account_id = account_id
        self.required = required
        self.available = available

        message = (
            f"Insufficient balance: required {required}, available {available}"
        )

        full_details = {
            "account_id": str(account_id),
            "required": str(required),
            "available": str(available),
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=message,
            error_code=error_code,
            details=full_details,
        )


class InactiveAccount(LedgerError, ConflictError):
    """
    Raised when attempting to use an inactive account.

    Accounts can be deactivated but their history is preserved.
    """

    default_error_code: str = "INACTIVE_ACCOUNT"
