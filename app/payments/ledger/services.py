"""
Ledger service layer for financial operations.

All ledger writes go through LedgerService so that validation, account
locking and idempotency are applied uniformly.

Usage:
    from payments.ledger import ledger

    escrow = ledger.escrow_account()
    seller_balance = ledger.user_balance_account(seller.id)
    ledger.transfer(
        from_account_id=escrow.id,
        to_account_id=seller_balance.id,
        amount=Decimal("900.00"),
        entry_type=EntryType.PAYMENT_RELEASED,
        idempotency_key=f"payment:{payment.id}:release:net",
    )
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction

from .exceptions import AccountNotFound, InactiveAccount, InsufficientBalance
from .models import AccountType, LedgerAccount, LedgerEntry
from .types import DEFAULT_CURRENCY, Money, RecordEntryParams

if TYPE_CHECKING:
    from typing import Any


class LedgerService:
    """
    Service class for ledger operations.

    Key features:
    - Atomic transactions for multi-entry operations
    - Idempotency via unique keys (safe to retry)
    - Balance validation before debits
    - Account locking in id order to prevent deadlocks

    All methods are static - no instance state is maintained.
    """

    # ==========================================================================
    # Accounts
    # ==========================================================================

    @staticmethod
    def get_or_create_account(
        account_type: AccountType | str,
        owner_id: uuid.UUID | None = None,
        currency: str = DEFAULT_CURRENCY,
        allow_negative: bool = False,
    ) -> LedgerAccount:
        """
        Get existing account or create new one.

        Looks up an account by (type, owner_id, currency). If not found,
        creates a new account with the specified parameters.
        """
        try:
            account, _ = LedgerAccount.objects.get_or_create(
                type=account_type,
                owner_id=owner_id,
                currency=currency,
                defaults={"allow_negative": allow_negative},
            )
        except IntegrityError:
            # Concurrent creator won the unique constraint
            account = LedgerAccount.objects.get(
                type=account_type, owner_id=owner_id, currency=currency
            )
        return account

    @staticmethod
    def user_balance_account(
        user_id: uuid.UUID, currency: str = DEFAULT_CURRENCY
    ) -> LedgerAccount:
        """A user's available-balance account."""
        return LedgerService.get_or_create_account(
            AccountType.USER_BALANCE, owner_id=user_id, currency=currency
        )

    @staticmethod
    def escrow_account(currency: str = DEFAULT_CURRENCY) -> LedgerAccount:
        """Platform escrow holding paid, unresolved payments."""
        return LedgerService.get_or_create_account(
            AccountType.PLATFORM_ESCROW, currency=currency
        )

    @staticmethod
    def fees_account(currency: str = DEFAULT_CURRENCY) -> LedgerAccount:
        """Global platform fee pool."""
        return LedgerService.get_or_create_account(
            AccountType.PLATFORM_FEES, currency=currency
        )

    @staticmethod
    def gateway_account(currency: str = DEFAULT_CURRENCY) -> LedgerAccount:
        """The payment gateway (outside world); may go negative."""
        return LedgerService.get_or_create_account(
            AccountType.EXTERNAL_GATEWAY, currency=currency, allow_negative=True
        )

    @staticmethod
    def get_account(account_id: uuid.UUID) -> LedgerAccount:
        """
        Get account by ID.

        Raises:
            AccountNotFound: If account doesn't exist
        """
        try:
            return LedgerAccount.objects.get(id=account_id)
        except LedgerAccount.DoesNotExist:
            raise AccountNotFound(
                f"Account {account_id} not found",
                details={"account_id": str(account_id)},
            )

    # ==========================================================================
    # Validation
    # ==========================================================================

    @staticmethod
    def _validate_account_for_debit(account: LedgerAccount, amount: Decimal) -> None:
        """
        Validate that an account can be debited.

        Raises:
            InactiveAccount: If account is inactive
            InsufficientBalance: If account lacks funds
        """
        if not account.is_active:
            raise InactiveAccount(
                f"Account {account.id} is inactive",
                details={"account_id": str(account.id)},
            )

        if not account.allow_negative:
            current_balance = account.get_balance()
            if current_balance < amount:
                raise InsufficientBalance(
                    account_id=account.id,
                    required=amount,
                    available=current_balance,
                )

    @staticmethod
    def _validate_account_for_credit(account: LedgerAccount) -> None:
        if not account.is_active:
            raise InactiveAccount(
                f"Account {account.id} is inactive",
                details={"account_id": str(account.id)},
            )

    # ==========================================================================
    # Recording
    # ==========================================================================

    @staticmethod
    def record_entry(params: RecordEntryParams) -> LedgerEntry:
        """
        Record a single ledger entry.

        Idempotent: if an entry with the same key already exists, returns it.
        """
        return LedgerService.record_entries([params])[0]

    @staticmethod
    def record_entries(entries: list[RecordEntryParams]) -> list[LedgerEntry]:
        """
        Record multiple ledger entries atomically.

        All entries succeed or all fail. Entries are processed sequentially,
        so balance changes from earlier entries in the batch affect
        validation of later entries (a release's net and fee legs both
        draw on the same escrow balance).

        Raises:
            AccountNotFound: If any account doesn't exist
            InactiveAccount: If any account is inactive
            InsufficientBalance: If any debit account lacks funds
        """
        if not entries:
            return []

        results: list[LedgerEntry] = []

        with transaction.atomic():
            account_ids: set[uuid.UUID] = set()
            for params in entries:
                account_ids.add(params.debit_account_id)
                account_ids.add(params.credit_account_id)

            # Consistent lock order prevents circular waits
            accounts = {
                acc.id: acc
                for acc in LedgerAccount.objects.filter(id__in=account_ids)
                .select_for_update()
                .order_by("id")
            }

            for account_id in account_ids:
                if account_id not in accounts:
                    raise AccountNotFound(
                        f"Account {account_id} not found",
                        details={"account_id": str(account_id)},
                    )

            for params in entries:
                debit_account = accounts[params.debit_account_id]
                credit_account = accounts[params.credit_account_id]

                # Idempotency check must precede the balance check
                existing = LedgerEntry.objects.filter(
                    idempotency_key=params.idempotency_key
                ).first()
                if existing is not None:
                    results.append(existing)
                    continue

                LedgerService._validate_account_for_debit(debit_account, params.amount)
                LedgerService._validate_account_for_credit(credit_account)

                try:
                    with transaction.atomic():
                        entry = LedgerEntry.objects.create(
                            idempotency_key=params.idempotency_key,
                            debit_account=debit_account,
                            credit_account=credit_account,
                            amount=params.amount,
                            currency=debit_account.currency,
                            entry_type=params.entry_type,
                            reference_id=params.reference_id,
                            reference_type=params.reference_type,
                            description=params.description,
                            metadata=params.metadata or {},
                            created_by=params.created_by,
                        )
                except IntegrityError:
                    # Another process recorded the same key first
                    entry = LedgerEntry.objects.get(
                        idempotency_key=params.idempotency_key
                    )

                results.append(entry)

        return results

    @staticmethod
    def transfer(
        from_account_id: uuid.UUID,
        to_account_id: uuid.UUID,
        amount: Decimal,
        entry_type: str,
        idempotency_key: str,
        description: str | None = None,
        reference_type: str | None = None,
        reference_id: uuid.UUID | None = None,
        created_by: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> LedgerEntry:
        """Convenience wrapper recording one account-to-account movement."""
        return LedgerService.record_entry(
            RecordEntryParams(
                debit_account_id=from_account_id,
                credit_account_id=to_account_id,
                amount=amount,
                entry_type=entry_type,
                idempotency_key=idempotency_key,
                description=description,
                reference_type=reference_type,
                reference_id=reference_id,
                created_by=created_by,
                metadata=metadata or {},
            )
        )

    # ==========================================================================
    # Queries
    # ==========================================================================

    @staticmethod
    def get_balance(account_id: uuid.UUID) -> Money:
        """
        Get current balance for an account.

        Raises:
            AccountNotFound: If account doesn't exist
        """
        account = LedgerService.get_account(account_id)
        return Money(amount=account.get_balance(), currency=account.currency)

    @staticmethod
    def get_user_balance(user_id: uuid.UUID, currency: str = DEFAULT_CURRENCY) -> Money:
        """A user's available balance (zero if they never had an account)."""
        account = LedgerAccount.objects.filter(
            type=AccountType.USER_BALANCE, owner_id=user_id, currency=currency
        ).first()
        if account is None:
            return Money(amount=Decimal("0"), currency=currency)
        return Money(amount=account.get_balance(), currency=currency)

    @staticmethod
    def get_entries_by_reference(
        reference_type: str,
        reference_id: uuid.UUID,
    ) -> list[LedgerEntry]:
        """
        Get all entries for a given reference, oldest first.

        Used to audit every movement caused by a payment or withdrawal.
        """
        return list(
            LedgerEntry.objects.filter(
                reference_type=reference_type,
                reference_id=reference_id,
            ).order_by("created_at")
        )


# Singleton instance for convenience
# Usage: from payments.ledger.services import ledger
ledger = LedgerService()
