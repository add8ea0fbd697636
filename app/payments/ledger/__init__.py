"""
Ledger - Double-entry bookkeeping for marketplace money.

Every balance shown to users (seller available balance, buyer refund
balance, platform fee pool) is derived from ledger entries. Nothing stores
a running total.

Public API:
    Models:
        LedgerAccount - Holds monetary value (balances, escrow, fee pool)
        LedgerEntry - Records movements between accounts
        AccountType - Enum of account categories
        EntryType - Enum of transaction types

    Service:
        ledger - Singleton instance of LedgerService
        LedgerService - Class with all ledger operations

    Types:
        Money - Decimal amount with currency
        RecordEntryParams - Parameters for recording entries

    Exceptions:
        LedgerError - Base exception for ledger operations
        AccountNotFound - Account lookup failures
        InsufficientBalance - Balance validation failures
        InactiveAccount - Operations on inactive accounts

Usage:
    from payments.ledger import ledger, EntryType

    fees = ledger.fees_account()
    print(ledger.get_balance(fees.id))  # Money(amount=Decimal('100.00'), ...)
"""

from .exceptions import (
    AccountNotFound,
    InactiveAccount,
    InsufficientBalance,
    LedgerError,
)
from .models import AccountType, EntryType, LedgerAccount, LedgerEntry
from .services import LedgerService, ledger
from .types import DEFAULT_CURRENCY, Money, RecordEntryParams, to_decimal_amount

__all__ = [
    # Models
    "LedgerAccount",
    "LedgerEntry",
    "AccountType",
    "EntryType",
    # Service
    "ledger",
    "LedgerService",
    # Types
    "DEFAULT_CURRENCY",
    "Money",
    "RecordEntryParams",
    "to_decimal_amount",
    # Exceptions
    "LedgerError",
    "AccountNotFound",
    "InsufficientBalance",
    "InactiveAccount",
]
