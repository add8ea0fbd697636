"""
Tests for project settings as loaded by the test run.

Tests cover:
- Decimal-valued payment settings
- Plain HTTP requests reaching views under the test client
"""

from decimal import Decimal

import pytest
from django.conf import settings


class TestPaymentSettings:
    @pytest.mark.parametrize(
        "name",
        ["PLATFORM_DEFAULT_FEE_PERCENT", "PAYMENTS_MIN_WITHDRAWAL_AMOUNT"],
    )
    def test_money_settings_are_decimals(self, name):
        assert isinstance(getattr(settings, name), Decimal)


class TestHttpUnderTests:
    def test_health_check_is_not_redirected(self, client, db):
        response = client.get("/health/")

        assert response.status_code == 200
        assert response.json()["database"] == "connected"
