"""
Tests for LedgerService.

Covers account lookup, entry recording (validation, idempotency,
atomic batches) and balance queries with Decimal amounts.
"""

import uuid
from decimal import Decimal

import pytest

from core.exceptions import ConflictError, NotFoundError
from payments.ledger.exceptions import (
    AccountNotFound,
    InactiveAccount,
    InsufficientBalance,
)
from payments.ledger.models import AccountType, EntryType, LedgerEntry
from payments.ledger.services import LedgerService
from payments.ledger.tests.factories import LedgerEntryFactory
from payments.ledger.types import Money, RecordEntryParams


class TestPlatformAccounts:
    """Tests for the named account helpers."""

    def test_escrow_account_is_singleton(self, db):
        first = LedgerService.escrow_account()
        second = LedgerService.escrow_account()

        assert first.id == second.id
        assert first.type == AccountType.PLATFORM_ESCROW

    def test_gateway_account_allows_negative(self, db):
        gateway = LedgerService.gateway_account()

        assert gateway.allow_negative is True

    def test_fees_account_does_not_allow_negative(self, db):
        assert LedgerService.fees_account().allow_negative is False

    def test_user_balance_account_per_user(self, db):
        user_a, user_b = uuid.uuid4(), uuid.uuid4()

        account_a = LedgerService.user_balance_account(user_a)
        account_b = LedgerService.user_balance_account(user_b)

        assert account_a.id != account_b.id
        assert LedgerService.user_balance_account(user_a).id == account_a.id


class TestGetAccount:
    """Tests for LedgerService.get_account()."""

    def test_raises_account_not_found_for_invalid_id(self, db):
        with pytest.raises(AccountNotFound) as exc_info:
            LedgerService.get_account(uuid.uuid4())

        assert isinstance(exc_info.value, NotFoundError)


class TestRecordEntry:
    """Tests for LedgerService.record_entry()."""

    def test_records_single_entry_successfully(
        self, db, gateway_account, escrow_account, unique_idempotency_key
    ):
        entry = LedgerService.record_entry(
            RecordEntryParams(
                debit_account_id=gateway_account.id,
                credit_account_id=escrow_account.id,
                amount=Decimal("1500.00"),
                entry_type=EntryType.PAYMENT_RECEIVED,
                idempotency_key=unique_idempotency_key,
            )
        )

        assert entry.amount == Decimal("1500.00")
        assert escrow_account.get_balance() == Decimal("1500.00")
        assert gateway_account.get_balance() == Decimal("-1500.00")

    def test_idempotency_returns_existing_entry_for_same_key(
        self, db, gateway_account, escrow_account
    ):
        key = f"idempotent-{uuid.uuid4()}"
        params = RecordEntryParams(
            debit_account_id=gateway_account.id,
            credit_account_id=escrow_account.id,
            amount=Decimal("500.00"),
            entry_type=EntryType.PAYMENT_RECEIVED,
            idempotency_key=key,
        )

        entry1 = LedgerService.record_entry(params)
        entry2 = LedgerService.record_entry(params)

        assert entry1.id == entry2.id
        assert LedgerEntry.objects.filter(idempotency_key=key).count() == 1
        assert escrow_account.get_balance() == Decimal("500.00")

    def test_raises_insufficient_balance_when_debit_exceeds_balance(
        self, db, funded_escrow_account, user_balance_account, unique_idempotency_key
    ):
        params = RecordEntryParams(
            debit_account_id=funded_escrow_account.id,
            credit_account_id=user_balance_account.id,
            amount=Decimal("1000.01"),
            entry_type=EntryType.PAYMENT_RELEASED,
            idempotency_key=unique_idempotency_key,
        )

        with pytest.raises(InsufficientBalance) as exc_info:
            LedgerService.record_entry(params)

        assert exc_info.value.required == Decimal("1000.01")
        assert exc_info.value.available == Decimal("1000.00")
        assert isinstance(exc_info.value, ConflictError)

    def test_raises_inactive_account_on_credit(
        self, db, gateway_account, inactive_account, unique_idempotency_key
    ):
        params = RecordEntryParams(
            debit_account_id=gateway_account.id,
            credit_account_id=inactive_account.id,
            amount=Decimal("10.00"),
            entry_type=EntryType.ADJUSTMENT,
            idempotency_key=unique_idempotency_key,
        )

        with pytest.raises(InactiveAccount):
            LedgerService.record_entry(params)

    def test_raises_account_not_found_for_invalid_debit_account(
        self, db, escrow_account, unique_idempotency_key
    ):
        params = RecordEntryParams(
            debit_account_id=uuid.uuid4(),
            credit_account_id=escrow_account.id,
            amount=Decimal("10.00"),
            entry_type=EntryType.ADJUSTMENT,
            idempotency_key=unique_idempotency_key,
        )

        with pytest.raises(AccountNotFound):
            LedgerService.record_entry(params)


class TestRecordEntries:
    """Tests for LedgerService.record_entries()."""

    def test_release_legs_recorded_together(
        self, db, funded_escrow_account, user_balance_account, fees_account
    ):
        """Net and fee legs both draw on escrow and leave it empty."""
        LedgerService.record_entries(
            [
                RecordEntryParams(
                    debit_account_id=funded_escrow_account.id,
                    credit_account_id=user_balance_account.id,
                    amount=Decimal("900.00"),
                    entry_type=EntryType.PAYMENT_RELEASED,
                    idempotency_key=f"net-{uuid.uuid4()}",
                ),
                RecordEntryParams(
                    debit_account_id=funded_escrow_account.id,
                    credit_account_id=fees_account.id,
                    amount=Decimal("100.00"),
                    entry_type=EntryType.FEE_COLLECTED,
                    idempotency_key=f"fee-{uuid.uuid4()}",
                ),
            ]
        )

        assert funded_escrow_account.get_balance() == Decimal("0.00")
        assert user_balance_account.get_balance() == Decimal("900.00")
        assert fees_account.get_balance() == Decimal("100.00")

    def test_rolls_back_all_on_second_entry_failure(
        self, db, gateway_account, escrow_account, user_balance_account
    ):
        params_list = [
            RecordEntryParams(
                debit_account_id=gateway_account.id,
                credit_account_id=escrow_account.id,
                amount=Decimal("500.00"),
                entry_type=EntryType.PAYMENT_RECEIVED,
                idempotency_key=f"rollback1-{uuid.uuid4()}",
            ),
            RecordEntryParams(
                debit_account_id=user_balance_account.id,  # Has 0 balance
                credit_account_id=gateway_account.id,
                amount=Decimal("100.00"),
                entry_type=EntryType.WITHDRAWAL,
                idempotency_key=f"rollback2-{uuid.uuid4()}",
            ),
        ]

        with pytest.raises(InsufficientBalance):
            LedgerService.record_entries(params_list)

        assert escrow_account.get_balance() == Decimal("0")
        assert LedgerEntry.objects.count() == 0

    def test_sequential_balance_validation_within_batch(
        self, db, funded_escrow_account, user_balance_account
    ):
        params_list = [
            RecordEntryParams(
                debit_account_id=funded_escrow_account.id,
                credit_account_id=user_balance_account.id,
                amount=Decimal("600.00"),
                entry_type=EntryType.PAYMENT_RELEASED,
                idempotency_key=f"seq1-{uuid.uuid4()}",
            ),
            RecordEntryParams(
                debit_account_id=funded_escrow_account.id,
                credit_account_id=user_balance_account.id,
                amount=Decimal("600.00"),
                entry_type=EntryType.PAYMENT_RELEASED,
                idempotency_key=f"seq2-{uuid.uuid4()}",
            ),
        ]

        with pytest.raises(InsufficientBalance) as exc_info:
            LedgerService.record_entries(params_list)

        assert exc_info.value.available == Decimal("400.00")

    def test_empty_entries_list_returns_empty(self, db):
        assert LedgerService.record_entries([]) == []


class TestRecordEntryParams:
    """Tests for RecordEntryParams validation."""

    def test_rejects_float_amount(self):
        with pytest.raises(ValueError, match="float"):
            RecordEntryParams(
                debit_account_id=uuid.uuid4(),
                credit_account_id=uuid.uuid4(),
                amount=10.5,
                entry_type=EntryType.ADJUSTMENT,
                idempotency_key="k",
            )

    def test_rejects_non_positive_amount(self):
        with pytest.raises(ValueError, match="positive"):
            RecordEntryParams(
                debit_account_id=uuid.uuid4(),
                credit_account_id=uuid.uuid4(),
                amount=Decimal("0"),
                entry_type=EntryType.ADJUSTMENT,
                idempotency_key="k",
            )

    def test_rejects_same_account_on_both_sides(self):
        account_id = uuid.uuid4()
        with pytest.raises(ValueError, match="different"):
            RecordEntryParams(
                debit_account_id=account_id,
                credit_account_id=account_id,
                amount=Decimal("1"),
                entry_type=EntryType.ADJUSTMENT,
                idempotency_key="k",
            )


class TestBalances:
    """Tests for balance queries."""

    def test_get_balance_returns_money(self, db, funded_escrow_account):
        balance = LedgerService.get_balance(funded_escrow_account.id)

        assert balance == Money(amount=Decimal("1000.00"), currency="KES")

    def test_user_without_account_has_zero_balance(self, db):
        balance = LedgerService.get_user_balance(uuid.uuid4())

        assert balance.amount == Decimal("0.00")

    def test_get_entries_by_reference(self, db, gateway_account, escrow_account):
        reference_id = uuid.uuid4()
        LedgerEntryFactory(
            debit_account=gateway_account,
            credit_account=escrow_account,
            reference_type="payment",
            reference_id=reference_id,
        )
        LedgerEntryFactory(debit_account=gateway_account, credit_account=escrow_account)

        entries = LedgerService.get_entries_by_reference("payment", reference_id)

        assert len(entries) == 1
        assert entries[0].reference_id == reference_id
