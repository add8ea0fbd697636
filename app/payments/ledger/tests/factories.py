"""
Factory Boy factories for ledger test data.

Usage:
    from payments.ledger.tests.factories import LedgerAccountFactory, LedgerEntryFactory

    escrow = LedgerAccountFactory(type=AccountType.PLATFORM_ESCROW, owner_id=None)
    entry = LedgerEntryFactory(
        debit_account=gateway,
        credit_account=escrow,
        amount=Decimal("1000.00"),
    )
"""

import uuid
from decimal import Decimal

import factory

from payments.ledger.models import AccountType, EntryType, LedgerAccount, LedgerEntry


class LedgerAccountFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating LedgerAccount instances.

    Default creates a USER_BALANCE account with a unique owner_id.
    """

    class Meta:
        model = LedgerAccount
        skip_postgeneration_save = True

    type = AccountType.USER_BALANCE
    owner_id = factory.LazyFunction(uuid.uuid4)
    currency = "KES"
    allow_negative = False
    is_active = True


class LedgerEntryFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating LedgerEntry instances directly.

    Bypasses LedgerService validation; use it to seed balances.
    """

    class Meta:
        model = LedgerEntry
        skip_postgeneration_save = True

    debit_account = factory.SubFactory(
        LedgerAccountFactory,
        type=AccountType.EXTERNAL_GATEWAY,
        owner_id=None,
        allow_negative=True,
    )
    credit_account = factory.SubFactory(
        LedgerAccountFactory,
        type=AccountType.PLATFORM_ESCROW,
        owner_id=None,
    )
    amount = Decimal("1000.00")
    currency = "KES"
    entry_type = EntryType.PAYMENT_RECEIVED
    idempotency_key = factory.Sequence(lambda n: f"test-entry-{n}-{uuid.uuid4()}")

    reference_id = None
    reference_type = None
    description = factory.Faker("sentence")
    metadata = factory.LazyFunction(dict)
    created_by = "test_factory"
