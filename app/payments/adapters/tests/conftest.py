"""
Pytest fixtures for Paystack adapter tests.

Paystack is never contacted: PaystackAdapter._client is patched to return
an httpx.Client backed by httpx.MockTransport.

Sections:
    - Settings Fixtures
    - Mock Transport Fixtures
"""

import json
from unittest.mock import patch

import httpx
import pytest
from django.test import override_settings

TEST_SECRET_KEY = "sk_test_secret"


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def paystack_settings():
    """Pin Paystack settings for every adapter test."""
    with override_settings(
        PAYSTACK_SECRET_KEY=TEST_SECRET_KEY,
        PAYSTACK_BASE_URL="https://api.paystack.test",
        PAYSTACK_API_TIMEOUT_SECONDS=5,
        PHONE_COUNTRY_CODE=254,
    ):
        yield


# =============================================================================
# Mock Transport Fixtures
# =============================================================================


@pytest.fixture
def paystack_api():
    """
    Install a programmable Paystack API.

    Usage:
        def test_x(paystack_api):
            paystack_api.respond(200, {"status": True, "data": {...}})
            ...
            assert paystack_api.requests[0].url.path == "/transfer"
    """

    class _FakePaystack:
        def __init__(self):
            self.requests: list[httpx.Request] = []
            self._responses: list[httpx.Response | Exception] = []

        def respond(self, status_code: int, body: dict) -> None:
            self._responses.append(httpx.Response(status_code, json=body))

        def raise_error(self, error: Exception) -> None:
            self._responses.append(error)

        def handler(self, request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            outcome = self._responses.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        def last_json(self) -> dict:
            return json.loads(self.requests[-1].content)

        def client(self) -> httpx.Client:
            return httpx.Client(
                base_url="https://api.paystack.test",
                transport=httpx.MockTransport(self.handler),
                headers={"Authorization": f"Bearer {TEST_SECRET_KEY}"},
            )

    fake = _FakePaystack()
    with patch(
        "payments.adapters.paystack_adapter.PaystackAdapter._client",
        side_effect=fake.client,
    ):
        yield fake
