"""
Pytest fixtures for ledger tests.

Sections:
    - Account Fixtures: Pre-configured ledger accounts
    - Funded Fixtures: Accounts seeded with a balance
"""

import uuid
from decimal import Decimal

import pytest

from payments.ledger.models import AccountType, EntryType
from payments.ledger.tests.factories import LedgerAccountFactory, LedgerEntryFactory


# ==========================================================================
# Account Fixtures
# ==========================================================================


@pytest.fixture
def gateway_account(db):
    """External gateway account; may go negative."""
    return LedgerAccountFactory(
        type=AccountType.EXTERNAL_GATEWAY,
        owner_id=None,
        allow_negative=True,
    )


@pytest.fixture
def escrow_account(db):
    """Platform escrow account, empty."""
    return LedgerAccountFactory(type=AccountType.PLATFORM_ESCROW, owner_id=None)


@pytest.fixture
def fees_account(db):
    """Platform fee pool, empty."""
    return LedgerAccountFactory(type=AccountType.PLATFORM_FEES, owner_id=None)


@pytest.fixture
def user_balance_account(db):
    """A user's balance account, empty."""
    return LedgerAccountFactory(type=AccountType.USER_BALANCE, owner_id=uuid.uuid4())


@pytest.fixture
def inactive_account(db):
    """Deactivated user balance account."""
    return LedgerAccountFactory(
        type=AccountType.USER_BALANCE,
        owner_id=uuid.uuid4(),
        is_active=False,
    )


# ==========================================================================
# Funded Fixtures
# ==========================================================================


@pytest.fixture
def funded_escrow_account(db, gateway_account, escrow_account):
    """Escrow holding 1000.00 received from the gateway."""
    LedgerEntryFactory(
        debit_account=gateway_account,
        credit_account=escrow_account,
        amount=Decimal("1000.00"),
        entry_type=EntryType.PAYMENT_RECEIVED,
    )
    return escrow_account


@pytest.fixture
def unique_idempotency_key():
    """Generate a unique idempotency key for testing."""
    return f"test-{uuid.uuid4()}"
