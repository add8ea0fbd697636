"""
Tests for PaymentService.

Covers payment creation, Paystack checkout, escrow confirmation from the
charge.success webhook and buyer-confirmed release.
"""

import uuid
from decimal import Decimal

import pytest

from core.exceptions import ConflictError, PermissionDeniedError
from listings.models import ItemStatus
from listings.tests.factories import ItemFactory
from notifications.models import Notification, NotificationType
from payments.exceptions import (
    InvalidStateTransitionError,
    PaymentNotFoundError,
    PaymentValidationError,
    PaystackAPIUnavailableError,
)
from payments.ledger import ledger
from payments.models import Earning, Payment
from payments.services import PaymentService
from payments.state_machines import EarningStatus, PaymentStatus


# =============================================================================
# create_payment
# =============================================================================


class TestCreatePayment:
    def test_creates_initiated_payment(self, item, buyer, seller):
        payment = PaymentService.create_payment(
            item_id=item.id, buyer=buyer, seller=seller, amount=Decimal("1000.00")
        )

        assert payment.status == PaymentStatus.INITIATED
        assert payment.amount == Decimal("1000.00")
        assert payment.currency == item.currency
        assert payment.item_title == item.title
        assert payment.gateway_reference == f"pay_{payment.id.hex}"

    def test_item_not_found(self, buyer, seller):
        with pytest.raises(PaymentNotFoundError) as exc_info:
            PaymentService.create_payment(uuid.uuid4(), buyer, seller, Decimal("1000.00"))

        assert exc_info.value.error_code == "ITEM_NOT_FOUND"

    def test_item_out_of_stock(self, buyer, seller):
        item = ItemFactory(seller=seller, quantity=0)

        with pytest.raises(PaymentValidationError) as exc_info:
            PaymentService.create_payment(item.id, buyer, seller, item.price)

        assert exc_info.value.error_code == "ITEM_NOT_AVAILABLE"

    def test_seller_cannot_buy_own_item(self, item, seller):
        with pytest.raises(PaymentValidationError) as exc_info:
            PaymentService.create_payment(item.id, seller, seller, item.price)

        assert exc_info.value.error_code == "SELF_PURCHASE"

    def test_seller_must_own_item(self, item, buyer, other_user):
        with pytest.raises(PaymentValidationError) as exc_info:
            PaymentService.create_payment(item.id, buyer, other_user, item.price)

        assert exc_info.value.error_code == "SELLER_MISMATCH"

    @pytest.mark.parametrize("amount", [Decimal("999.99"), 1000.0])
    def test_amount_must_equal_price(self, item, buyer, seller, amount):
        with pytest.raises(PaymentValidationError) as exc_info:
            PaymentService.create_payment(item.id, buyer, seller, amount)

        assert exc_info.value.error_code == "AMOUNT_MISMATCH"
        assert not Payment.objects.exists()


# =============================================================================
# initialize_checkout
# =============================================================================


class TestInitializeCheckout:
    def test_stores_authorization_url(self, initiated_payment, mock_paystack):
        payment = PaymentService.initialize_checkout(
            initiated_payment, email="buyer@example.com", callback_url="https://example.com/done"
        )

        params = mock_paystack.initialize_transaction.call_args.args[0]
        assert params.amount_minor == 100000
        assert params.reference == initiated_payment.gateway_reference
        assert params.callback_url == "https://example.com/done"
        payment.refresh_from_db(fields=["authorization_url", "metadata"])
        assert payment.authorization_url.endswith(initiated_payment.gateway_reference)
        assert payment.metadata["paystack_access_code"] == "access_test"

    def test_gateway_failure_fails_payment(self, initiated_payment, mock_paystack):
        mock_paystack.initialize_transaction.side_effect = PaystackAPIUnavailableError(
            "Paystack is down"
        )

        with pytest.raises(PaystackAPIUnavailableError):
            PaymentService.initialize_checkout(initiated_payment, email="buyer@example.com")

        payment = Payment.objects.get(pk=initiated_payment.pk)
        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason == "Paystack is down"

    def test_rejects_payment_past_initiated(self, paid_payment, mock_paystack):
        with pytest.raises(ConflictError) as exc_info:
            PaymentService.initialize_checkout(paid_payment, email="buyer@example.com")

        assert exc_info.value.error_code == "PAYMENT_NOT_INITIATED"
        mock_paystack.initialize_transaction.assert_not_called()


# =============================================================================
# confirm_payment_received
# =============================================================================


class TestConfirmPaymentReceived:
    def test_moves_funds_into_escrow(self, initiated_payment):
        payment = PaymentService.confirm_payment_received(
            initiated_payment.id,
            gateway_ref=initiated_payment.gateway_reference,
            amount_minor=100000,
            gateway_transaction_id="4099260516",
        )

        assert payment.status == PaymentStatus.PAID_TO_PLATFORM
        assert payment.gateway_transaction_id == "4099260516"
        assert ledger.get_balance(ledger.escrow_account("KES").id).amount == Decimal("1000.00")

    def test_reserves_item_unit(self, initiated_payment):
        PaymentService.confirm_payment_received(
            initiated_payment.id, gateway_ref=initiated_payment.gateway_reference
        )

        initiated_payment.item.refresh_from_db()
        assert initiated_payment.item.quantity == 0
        assert initiated_payment.item.status == ItemStatus.RESERVED

    def test_is_idempotent(self, initiated_payment):
        for _ in range(2):
            PaymentService.confirm_payment_received(
                initiated_payment.id, gateway_ref=initiated_payment.gateway_reference
            )

        entries = ledger.get_entries_by_reference("payment", initiated_payment.id)
        assert len(entries) == 1
        assert ledger.get_balance(ledger.escrow_account("KES").id).amount == Decimal("1000.00")

    def test_rejects_amount_mismatch(self, initiated_payment):
        with pytest.raises(PaymentValidationError) as exc_info:
            PaymentService.confirm_payment_received(
                initiated_payment.id,
                gateway_ref=initiated_payment.gateway_reference,
                amount_minor=50000,
            )

        assert exc_info.value.error_code == "AMOUNT_MISMATCH"
        assert Payment.objects.get(pk=initiated_payment.pk).status == PaymentStatus.INITIATED

    def test_rejects_reference_mismatch(self, initiated_payment):
        with pytest.raises(PaymentValidationError) as exc_info:
            PaymentService.confirm_payment_received(initiated_payment.id, gateway_ref="pay_other")

        assert exc_info.value.error_code == "REFERENCE_MISMATCH"

    def test_notifies_both_parties_after_commit(
        self, initiated_payment, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            PaymentService.confirm_payment_received(
                initiated_payment.id, gateway_ref=initiated_payment.gateway_reference
            )

        recipients = set(
            Notification.objects.filter(type_key=NotificationType.PAYMENT_RECEIVED).values_list(
                "recipient_id", flat=True
            )
        )
        assert recipients == {initiated_payment.buyer_id, initiated_payment.seller_id}


# =============================================================================
# confirm_receipt
# =============================================================================


class TestConfirmReceipt:
    def test_releases_to_seller(self, paid_payment, buyer, seller):
        payment = PaymentService.confirm_receipt(paid_payment.id, buyer=buyer)

        assert payment.status == PaymentStatus.RELEASED_TO_SELLER_BALANCE
        assert payment.platform_fee == Decimal("100.00")
        assert payment.net_amount == Decimal("900.00")
        assert ledger.get_user_balance(seller.pk, "KES").amount == Decimal("900.00")
        assert ledger.get_balance(ledger.fees_account("KES").id).amount == Decimal("100.00")
        assert ledger.get_balance(ledger.escrow_account("KES").id).amount == Decimal("0.00")

    def test_creates_available_earning(self, paid_payment, buyer, seller):
        PaymentService.confirm_receipt(paid_payment.id, buyer=buyer)

        earning = Earning.objects.get(payment=paid_payment)
        assert earning.seller_id == seller.pk
        assert earning.amount == Decimal("900.00")
        assert earning.status == EarningStatus.AVAILABLE

    def test_marks_single_unit_item_sold(self, paid_payment, buyer):
        PaymentService.confirm_receipt(paid_payment.id, buyer=buyer)

        paid_payment.item.refresh_from_db()
        assert paid_payment.item.status == ItemStatus.SOLD

    def test_only_buyer_can_confirm(self, paid_payment, seller):
        with pytest.raises(PermissionDeniedError) as exc_info:
            PaymentService.confirm_receipt(paid_payment.id, buyer=seller)

        assert exc_info.value.error_code == "NOT_PAYMENT_BUYER"

    def test_disputed_payment_cannot_be_confirmed(self, paid_payment, buyer):
        Payment.objects.filter(pk=paid_payment.pk).update(is_disputed=True)

        with pytest.raises(ConflictError) as exc_info:
            PaymentService.confirm_receipt(paid_payment.id, buyer=buyer)

        assert exc_info.value.error_code == "PAYMENT_DISPUTED"

    def test_initiated_payment_cannot_be_confirmed(self, initiated_payment, buyer):
        with pytest.raises(InvalidStateTransitionError):
            PaymentService.confirm_receipt(initiated_payment.id, buyer=buyer)

    def test_second_confirmation_changes_nothing(self, released_payment, buyer, seller):
        with pytest.raises(InvalidStateTransitionError):
            PaymentService.confirm_receipt(released_payment.id, buyer=buyer)

        assert ledger.get_user_balance(seller.pk, "KES").amount == Decimal("900.00")
        assert Earning.objects.filter(payment=released_payment).count() == 1
