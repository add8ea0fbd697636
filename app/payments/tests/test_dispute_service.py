"""
Tests for DisputeService.

Covers filing rules, the admin attention list and dismissal of disputes
on released payments.
"""

import uuid
from datetime import timedelta

import pytest
from django.utils import timezone
from freezegun import freeze_time

from core.exceptions import ConflictError, PermissionDeniedError
from notifications.models import Notification, NotificationType
from payments.exceptions import PaymentNotFoundError, PaymentValidationError
from payments.models import Dispute, Payment
from payments.services import DisputeService
from payments.state_machines import DisputeRole, DisputeStatus, PaymentStatus
from payments.tests.factories import DisputeFactory, PaymentFactory


def file(payment, user, reason="Item not received", description="Nothing arrived."):
    return DisputeService.file_dispute(
        payment_id=payment.id,
        item_id=payment.item_id,
        filed_by=user,
        reason=reason,
        description=description,
    )


# =============================================================================
# file_dispute
# =============================================================================


class TestFileDispute:
    def test_buyer_disputes_escrowed_payment(self, paid_payment, buyer):
        dispute = file(paid_payment, buyer)

        assert dispute.status == DisputeStatus.OPEN
        assert dispute.filed_by_role == DisputeRole.BUYER
        payment = Payment.objects.get(pk=paid_payment.pk)
        assert payment.is_disputed
        assert payment.dispute_reason == "Item not received"
        # Status is untouched: funds stay in escrow
        assert payment.status == PaymentStatus.PAID_TO_PLATFORM

    def test_seller_disputes_escrowed_payment(self, paid_payment, seller):
        dispute = file(paid_payment, seller, reason="Buyer unreachable")

        assert dispute.filed_by_role == DisputeRole.SELLER

    def test_strips_whitespace(self, paid_payment, buyer):
        dispute = file(paid_payment, buyer, reason="  Damaged  ", description="  Screen cracked ")

        assert dispute.reason == "Damaged"
        assert dispute.description == "Screen cracked"

    def test_non_party_rejected(self, paid_payment, other_user):
        with pytest.raises(PermissionDeniedError) as exc_info:
            file(paid_payment, other_user)

        assert exc_info.value.error_code == "NOT_PAYMENT_PARTY"

    def test_item_must_match_payment(self, paid_payment, buyer):
        other_payment = PaymentFactory()

        with pytest.raises(PaymentValidationError) as exc_info:
            DisputeService.file_dispute(
                payment_id=paid_payment.id,
                item_id=other_payment.item_id,
                filed_by=buyer,
                reason="Wrong item",
                description="Different item",
            )

        assert exc_info.value.error_code == "ITEM_MISMATCH"

    @pytest.mark.parametrize(
        "reason,description,field",
        [
            ("", "Nothing arrived.", "reason"),
            ("Late", "   ", "description"),
            ("Late", "x" * 2001, "description"),
        ],
    )
    def test_text_validation(self, paid_payment, buyer, reason, description, field):
        with pytest.raises(PaymentValidationError) as exc_info:
            file(paid_payment, buyer, reason=reason, description=description)

        assert exc_info.value.error_code == "INVALID_DISPUTE"
        assert field in exc_info.value.details

    def test_second_open_dispute_rejected(self, paid_payment, buyer, seller):
        file(paid_payment, buyer)

        with pytest.raises(ConflictError) as exc_info:
            file(paid_payment, seller)

        assert exc_info.value.error_code == "DISPUTE_ALREADY_OPEN"
        assert Dispute.objects.filter(payment=paid_payment).count() == 1

    def test_initiated_payment_not_eligible(self, initiated_payment, buyer):
        with pytest.raises(ConflictError) as exc_info:
            file(initiated_payment, buyer)

        assert exc_info.value.error_code == "DISPUTE_NOT_ALLOWED"

    def test_buyer_disputes_recent_release(self, settings, released_payment, buyer):
        settings.PAYMENTS_DISPUTE_WINDOW_DAYS = 7
        dispute = file(released_payment, buyer)

        assert dispute.status == DisputeStatus.OPEN

    def test_buyer_cannot_dispute_old_release(self, settings, released_payment, buyer):
        settings.PAYMENTS_DISPUTE_WINDOW_DAYS = 7
        with freeze_time(timezone.now() + timedelta(days=8)):
            with pytest.raises(ConflictError) as exc_info:
                file(released_payment, buyer)

        assert exc_info.value.error_code == "DISPUTE_NOT_ALLOWED"

    def test_seller_cannot_dispute_released_payment(self, released_payment, seller):
        with pytest.raises(ConflictError):
            file(released_payment, seller)

    def test_notifies_other_party_and_admins(
        self, paid_payment, buyer, seller, admin_user, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            dispute = file(paid_payment, buyer)

        notified = set(
            Notification.objects.filter(
                type_key=NotificationType.DISPUTE_FILED, dispute_id=dispute.id
            ).values_list("recipient_id", flat=True)
        )
        assert notified == {seller.pk, admin_user.pk}


# =============================================================================
# list_disputed_or_overdue_payments
# =============================================================================


class TestListDisputedOrOverdue:
    @pytest.fixture(autouse=True)
    def overdue_days(self, settings):
        settings.PAYMENTS_OVERDUE_DAYS = 7

    def test_includes_old_escrowed_and_disputed_payments(self, db):
        with freeze_time("2024-03-01 12:00:00"):
            overdue = PaymentFactory(paid=True)
            old_initiated = PaymentFactory()
        with freeze_time("2024-03-07 12:00:00"):
            recent = PaymentFactory(paid=True)
            disputed = PaymentFactory(paid=True, is_disputed=True)

        with freeze_time("2024-03-09 12:00:00"):
            result = list(DisputeService.list_disputed_or_overdue_payments())

        assert result == [overdue, disputed]
        assert recent not in result
        assert old_initiated not in result

    def test_boundary_is_inclusive(self, db):
        with freeze_time("2024-03-01 12:00:00"):
            payment = PaymentFactory(paid=True)

        with freeze_time("2024-03-08 12:00:00"):
            assert list(DisputeService.list_disputed_or_overdue_payments()) == [payment]
        with freeze_time("2024-03-08 11:59:59"):
            assert list(DisputeService.list_disputed_or_overdue_payments()) == []

    def test_released_payments_are_not_overdue(self, db):
        with freeze_time("2024-03-01 12:00:00"):
            PaymentFactory(released=True)

        with freeze_time("2024-04-01 12:00:00"):
            assert list(DisputeService.list_disputed_or_overdue_payments()) == []

    def test_accepts_explicit_now(self, db):
        with freeze_time("2024-03-01 12:00:00"):
            payment = PaymentFactory(paid=True)

        now = payment.created_at + timedelta(days=30)
        assert list(DisputeService.list_disputed_or_overdue_payments(now=now)) == [payment]


# =============================================================================
# dismiss_dispute
# =============================================================================


class TestDismissDispute:
    def test_closes_dispute_on_released_payment(self, released_payment, buyer, admin_user):
        dispute = file(released_payment, buyer)

        result = DisputeService.dismiss_dispute(dispute.id, admin_user, notes="Delivered")

        assert result.status == DisputeStatus.RESOLVED_RELEASE
        assert result.resolved_by_id == admin_user.pk
        assert result.resolution_notes == "Delivered"
        payment = Payment.objects.get(pk=released_payment.pk)
        assert payment.is_disputed is False
        assert payment.dispute_reason == ""
        assert payment.status == PaymentStatus.RELEASED_TO_SELLER_BALANCE

    def test_requires_admin(self, released_payment, buyer):
        dispute = file(released_payment, buyer)

        with pytest.raises(PermissionDeniedError):
            DisputeService.dismiss_dispute(dispute.id, buyer)

    def test_escrowed_payment_must_be_resolved_instead(self, paid_payment, buyer, admin_user):
        dispute = file(paid_payment, buyer)

        with pytest.raises(ConflictError) as exc_info:
            DisputeService.dismiss_dispute(dispute.id, admin_user)

        assert exc_info.value.error_code == "PAYMENT_NOT_RELEASED"

    def test_already_resolved(self, admin_user):
        dispute = DisputeFactory(
            payment=PaymentFactory(released=True), status=DisputeStatus.RESOLVED_RELEASE
        )

        with pytest.raises(ConflictError) as exc_info:
            DisputeService.dismiss_dispute(dispute.id, admin_user)

        assert exc_info.value.error_code == "DISPUTE_ALREADY_RESOLVED"

    def test_unknown_dispute(self, admin_user):
        with pytest.raises(PaymentNotFoundError):
            DisputeService.dismiss_dispute(uuid.uuid4(), admin_user)

