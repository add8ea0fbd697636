"""
Pytest fixtures for webhook tests.

Provides signed Paystack payloads, WebhookEvent objects in each processing
state, and the payment/withdrawal records those events refer to. The user
and payment state fixtures come from payments/conftest.py.
"""

import hashlib
import hmac
import json

import pytest
from django.test import override_settings

from payments.state_machines import WebhookEventStatus
from payments.tests.factories import WebhookEventFactory, WithdrawalFactory

WEBHOOK_SECRET = "sk_test_webhook_secret"


@pytest.fixture(autouse=True)
def paystack_secret():
    with override_settings(PAYSTACK_SECRET_KEY=WEBHOOK_SECRET):
        yield


def sign(body: bytes) -> str:
    """HMAC-SHA512 of the raw body, as Paystack sends it."""
    return hmac.new(WEBHOOK_SECRET.encode(), body, hashlib.sha512).hexdigest()


# =============================================================================
# Payload Fixtures
# =============================================================================


@pytest.fixture
def charge_success_payload(initiated_payment):
    """charge.success for the initiated payment, full amount."""
    return {
        "event": "charge.success",
        "data": {
            "id": 4099260516,
            "reference": initiated_payment.gateway_reference,
            "amount": initiated_payment.amount_minor,
            "currency": "KES",
            "status": "success",
        },
    }


@pytest.fixture
def processing_withdrawal(db):
    return WithdrawalFactory(processing=True)


@pytest.fixture
def transfer_payload(processing_withdrawal):
    """
    Build a transfer.* payload for the processing withdrawal.

    Usage:
        payload = transfer_payload("transfer.failed", reason="Invalid account")
    """

    def _payload(event: str, **data):
        return {
            "event": event,
            "data": {
                "id": 37272792,
                "reference": processing_withdrawal.reference,
                "transfer_code": processing_withdrawal.transfer_code,
                "status": event.split(".")[-1],
                **data,
            },
        }

    return _payload


@pytest.fixture
def signed_body():
    """Serialize a payload and sign it: returns (body, signature)."""

    def _signed(payload: dict) -> tuple[bytes, str]:
        body = json.dumps(payload).encode()
        return body, sign(body)

    return _signed


# =============================================================================
# WebhookEvent Fixtures
# =============================================================================


@pytest.fixture
def pending_webhook_event(db):
    return WebhookEventFactory()


@pytest.fixture
def processed_webhook_event(db):
    return WebhookEventFactory(status=WebhookEventStatus.PROCESSED, retry_count=1)


@pytest.fixture
def failed_webhook_event(db):
    return WebhookEventFactory(
        status=WebhookEventStatus.FAILED,
        retry_count=1,
        error_message="Handler returned failure",
    )
