"""
Tests for payment models.

Tests cover:
- Payment minor units and terminal states
- One open dispute per payment
- One release earning per payment
- FeeRule ranges and PlatformSettings singleton
"""

from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction

from payments.models import Dispute, Earning, FeeRule, PlatformSettings
from payments.state_machines import DisputeRole, DisputeStatus, PaymentStatus
from payments.tests.factories import DisputeFactory, EarningFactory, PaymentFactory


class TestPayment:
    @pytest.mark.parametrize(
        "amount,expected",
        [
            (Decimal("1000.00"), 100000),
            (Decimal("0.01"), 1),
            (Decimal("1234.56"), 123456),
        ],
    )
    def test_amount_minor(self, db, amount, expected):
        payment = PaymentFactory.build(amount=amount)

        assert payment.amount_minor == expected

    def test_new_payment_is_not_terminal(self, db):
        payment = PaymentFactory()

        assert payment.status == PaymentStatus.INITIATED
        assert payment.version == 1
        assert payment.is_terminal is False

    def test_str(self, db):
        payment = PaymentFactory(amount=Decimal("1000.00"))

        assert str(payment) == f"Payment({payment.id}, initiated, 1000.00 KES)"


class TestDispute:
    def test_second_open_dispute_rejected(self, db):
        dispute = DisputeFactory()

        with pytest.raises(IntegrityError), transaction.atomic():
            Dispute.objects.create(
                payment=dispute.payment,
                item_id=dispute.payment.item_id,
                filed_by=dispute.payment.seller,
                filed_by_role=DisputeRole.SELLER,
                reason="Buyer unreachable",
                description="Second dispute while the first is open",
            )

    def test_new_dispute_allowed_after_resolution(self, db, admin_user):
        first = DisputeFactory()
        first.resolve(DisputeStatus.RESOLVED_RELEASE, admin_user.id, "Delivered")
        first.save()

        second = DisputeFactory(payment=first.payment)

        assert Dispute.objects.filter(payment=first.payment).count() == 2
        assert list(Dispute.objects.open_for(first.payment)) == [second]

    def test_resolve_records_outcome(self, db, admin_user):
        dispute = DisputeFactory()

        dispute.resolve(DisputeStatus.RESOLVED_REFUND, admin_user.id, "Never shipped")

        assert dispute.is_open is False
        assert dispute.resolved_by_id == admin_user.id
        assert dispute.resolved_at is not None
        assert dispute.resolution_notes == "Never shipped"


class TestEarning:
    def test_second_release_earning_rejected(self, db):
        earning = EarningFactory()

        with pytest.raises(IntegrityError), transaction.atomic():
            EarningFactory(payment=earning.payment)

    def test_split_remainder_shares_payment(self, db):
        earning = EarningFactory()

        remainder = EarningFactory(
            payment=earning.payment, split_from=earning, amount=Decimal("400.00")
        )

        assert set(Earning.objects.filter(payment=earning.payment)) == {earning, remainder}


class TestFeeRule:
    @pytest.mark.parametrize(
        "amount,matches",
        [
            (Decimal("99.99"), False),
            (Decimal("100.00"), True),
            (Decimal("500.00"), True),
            (Decimal("500.01"), False),
        ],
    )
    def test_matches_inclusive_range(self, amount, matches):
        rule = FeeRule(
            name="Mid",
            min_amount=Decimal("100.00"),
            max_amount=Decimal("500.00"),
            fee_percentage=Decimal("5.00"),
        )

        assert rule.matches(amount) is matches

    def test_open_ended_rule(self):
        rule = FeeRule(name="Large", min_amount=Decimal("10000.00"), fee_percentage=Decimal("3"))

        assert rule.matches(Decimal("99999999.99")) is True

    def test_percentage_above_100_rejected_by_database(self, db):
        with pytest.raises(IntegrityError), transaction.atomic():
            FeeRule.objects.create(name="Broken", fee_percentage=Decimal("150.00"))


class TestPlatformSettings:
    def test_saves_as_single_row(self, db):
        PlatformSettings(default_fee_percentage=Decimal("7.50")).save()
        PlatformSettings(default_fee_percentage=Decimal("8.00")).save()

        assert PlatformSettings.objects.count() == 1
        assert PlatformSettings.default_fee_percentage_value() == Decimal("8.00")

    def test_falls_back_to_setting(self, db, settings):
        settings.PLATFORM_DEFAULT_FEE_PERCENT = Decimal("12")

        assert PlatformSettings.default_fee_percentage_value() == Decimal("12")
