"""
Pytest fixtures for payment tests.

Payments in escrow are produced through PaymentService so the ledger holds
the matching escrow balance; factory-built payments carry no ledger entries.

Sections:
    - User Fixtures
    - Payment State Fixtures
    - Paystack Fixtures
    - API Client Fixtures

Usage:
    def test_release(paid_payment, admin_user):
        outcome = ResolutionService.admin_release(paid_payment.id, admin_user)
        assert outcome.net_amount == Decimal("900.00")
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import AdminUserFactory, UserFactory
from listings.tests.factories import ItemFactory
from payments.adapters import RecipientResult, TransactionResult, TransferResult
from payments.services import PaymentService, WithdrawalService
from payments.tests.factories import PaymentFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def buyer(db):
    return UserFactory()


@pytest.fixture
def seller(db):
    """Seller with an M-Pesa payout number on file."""
    return UserFactory(payout_phone_number="0712345678")


@pytest.fixture
def other_user(db):
    """A user unrelated to any payment."""
    return UserFactory()


@pytest.fixture
def admin_user(db):
    return AdminUserFactory()


# =============================================================================
# Payment State Fixtures
# =============================================================================


@pytest.fixture
def item(db, seller):
    """Single-unit item priced 1000.00 KES."""
    return ItemFactory(seller=seller, price=Decimal("1000.00"), quantity=1)


@pytest.fixture
def initiated_payment(db, item, buyer):
    """Payment awaiting the charge.success webhook."""
    return PaymentFactory(item=item, buyer=buyer)


@pytest.fixture
def paid_payment(db, initiated_payment):
    """Payment held in escrow, with 1000.00 in platform_escrow."""
    return PaymentService.confirm_payment_received(
        initiated_payment.id,
        gateway_ref=initiated_payment.gateway_reference,
    )


@pytest.fixture
def released_payment(db, paid_payment, buyer):
    """Payment released by the buyer: seller balance 900.00, fees 100.00."""
    return PaymentService.confirm_receipt(paid_payment.id, buyer=buyer)


# =============================================================================
# Paystack Fixtures
# =============================================================================


@pytest.fixture
def mock_paystack():
    """
    Install a MagicMock Paystack adapter on the payment services.

    Every call succeeds by default; tests override side_effect to simulate
    gateway failures.
    """
    adapter = MagicMock()
    adapter.initialize_transaction.side_effect = lambda params: TransactionResult(
        reference=params.reference,
        authorization_url=f"https://checkout.paystack.com/{params.reference}",
        access_code="access_test",
    )
    adapter.create_transfer_recipient.return_value = RecipientResult(
        recipient_code="RCP_test"
    )
    adapter.initiate_transfer.side_effect = lambda params: TransferResult(
        transfer_code="TRF_test",
        reference=params.reference,
        status="pending",
    )

    PaymentService.set_adapter(adapter)
    WithdrawalService.set_adapter(adapter)
    yield adapter
    PaymentService.set_adapter(None)
    WithdrawalService.set_adapter(None)


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for(api_client):
    """
    Return an API client authenticated as the given user.

    Usage:
        response = client_for(buyer).post(url, data, format="json")
    """

    def _client(user):
        api_client.force_authenticate(user=user)
        return api_client

    return _client
