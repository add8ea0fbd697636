"""
Payment service: creating payments and moving money into escrow.

This module provides the PaymentService class, the entry point for the
buyer side of a purchase:

1. create_payment: Validate the purchase and create an INITIATED payment
2. initialize_checkout: Ask Paystack for a checkout URL (outside any transaction)
3. confirm_payment_received: Gateway confirmed the charge; hold funds in escrow
4. confirm_receipt: Buyer received the item; release funds to the seller

Every state change re-reads the payment under select_for_update() inside
transaction.atomic() before transitioning, so concurrent webhooks and
buyer actions serialize on the payment row.

Usage:
    from payments.services import PaymentService

    payment = PaymentService.create_payment(
        item_id=item.id,
        buyer=buyer,
        seller=item.seller,
        amount=item.price,
    )
    payment = PaymentService.initialize_checkout(
        payment, email=buyer.email, callback_url="https://example.com/done"
    )

    # From the charge.success webhook
    PaymentService.confirm_payment_received(
        payment.id, gateway_ref=payment.gateway_reference, amount_minor=100000
    )
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import transaction

from core.exceptions import ConflictError, PermissionDeniedError
from core.services import BaseService

from listings.models import Item
from notifications.models import NotificationType
from notifications.services import NotificationService
from payments.adapters import InitializeTransactionParams, PaystackAdapter, to_minor_units
from payments.exceptions import (
    PaymentNotFoundError,
    PaymentValidationError,
    PaystackError,
)
from payments.ledger import EntryType, ledger
from payments.locks import lock_for_update
from payments.models import Payment
from payments.services.resolution_service import ResolutionService
from payments.state_machines import PaymentStatus
from payments.state_machines.transitions import apply_transition

if TYPE_CHECKING:
    from authentication.models import User


class PaymentService(BaseService):
    """
    Service for the buyer side of the payment lifecycle.

    Methods:
        create_payment: Create an INITIATED payment for one unit of an item
        initialize_checkout: Start a Paystack checkout for a payment
        confirm_payment_received: INITIATED -> PAID_TO_PLATFORM (idempotent)
        confirm_receipt: Buyer-confirmed release to the seller

    The Paystack adapter can be swapped for tests with set_adapter().
    """

    _adapter: type | None = None

    @classmethod
    def get_adapter(cls) -> type:
        """Get the Paystack adapter class."""
        return cls._adapter or PaystackAdapter

    @classmethod
    def set_adapter(cls, adapter: type | None) -> None:
        """Set the Paystack adapter class (for testing)."""
        cls._adapter = adapter

    # ==========================================================================
    # Creation & Checkout
    # ==========================================================================

    @classmethod
    def create_payment(
        cls,
        item_id: uuid.UUID,
        buyer: User,
        seller: User,
        amount: Decimal,
    ) -> Payment:
        """
        Create an INITIATED payment for one unit of an item.

        Raises:
            PaymentNotFoundError: If the item doesn't exist
            PaymentValidationError: If the item is not purchasable, the amount
                differs from the price, or the parties are wrong
        """
        item = Item.objects.filter(pk=item_id).first()
        if item is None:
            raise PaymentNotFoundError(
                f"Item {item_id} not found",
                error_code="ITEM_NOT_FOUND",
                details={"item_id": str(item_id)},
            )

        if not item.is_purchasable:
            raise PaymentValidationError(
                "Item is not available for purchase",
                error_code="ITEM_NOT_AVAILABLE",
                details={
                    "item_id": str(item.id),
                    "status": item.status,
                    "quantity": item.quantity,
                },
            )

        if buyer.pk == seller.pk:
            raise PaymentValidationError(
                "Buyer and seller must be different users",
                error_code="SELF_PURCHASE",
            )

        if item.seller_id != seller.pk:
            raise PaymentValidationError(
                "Seller does not own this item",
                error_code="SELLER_MISMATCH",
                details={"item_id": str(item.id)},
            )

        if isinstance(amount, float) or Decimal(amount) != item.price:
            raise PaymentValidationError(
                "Amount must equal the item price",
                error_code="AMOUNT_MISMATCH",
                details={"amount": str(amount), "price": str(item.price)},
            )

        payment = Payment(
            item=item,
            item_title=item.title,
            buyer=buyer,
            seller=seller,
            amount=item.price,
            currency=item.currency,
        )
        payment.gateway_reference = f"pay_{payment.id.hex}"
        payment.save()

        cls.get_logger().info(
            "Payment created",
            extra={
                "payment_id": str(payment.id),
                "item_id": str(item.id),
                "buyer_id": str(buyer.pk),
                "amount": str(payment.amount),
            },
        )
        return payment

    @classmethod
    def initialize_checkout(
        cls,
        payment: Payment,
        email: str,
        callback_url: str | None = None,
    ) -> Payment:
        """
        Request a Paystack checkout URL for an INITIATED payment.

        The gateway call happens outside any transaction. If it fails the
        payment is marked FAILED and the Paystack error propagates.

        Raises:
            ConflictError: If the payment is no longer INITIATED
            PaystackError: Gateway failure
        """
        if payment.status != PaymentStatus.INITIATED:
            raise ConflictError(
                "Checkout can only be started for an initiated payment",
                error_code="PAYMENT_NOT_INITIATED",
                details={"payment_id": str(payment.id), "status": payment.status},
            )

        adapter = cls.get_adapter()
        try:
            result = adapter.initialize_transaction(
                InitializeTransactionParams(
                    email=email,
                    amount_minor=payment.amount_minor,
                    reference=payment.gateway_reference,
                    currency=payment.currency,
                    callback_url=callback_url,
                    metadata={"payment_id": str(payment.id)},
                )
            )
        except PaystackError as e:
            cls.get_logger().warning(
                "Checkout initialization failed, failing payment",
                extra={"payment_id": str(payment.id), "error": e.message},
            )
            with transaction.atomic():
                locked = lock_for_update(Payment, payment.id)
                if locked.status == PaymentStatus.INITIATED:
                    locked.fail(reason=e.message)
                    locked.save()
            raise

        payment.authorization_url = result.authorization_url
        payment.set_meta("paystack_access_code", result.access_code, save=False)
        payment.save(update_fields=["authorization_url", "metadata", "updated_at"])
        return payment

    # ==========================================================================
    # Escrow
    # ==========================================================================

    @classmethod
    def confirm_payment_received(
        cls,
        payment_id: uuid.UUID,
        gateway_ref: str | None,
        amount_minor: int | None = None,
        gateway_transaction_id: str | None = None,
    ) -> Payment:
        """
        Record that the buyer's money reached the platform.

        Moves the gross amount from the gateway account into escrow and
        takes one unit of the item out of stock. A payment that is already
        past INITIATED is returned unchanged.

        Raises:
            NotFoundError: If the payment doesn't exist
            PaymentValidationError: If the reference or paid amount mismatch
        """
        with transaction.atomic():
            payment = lock_for_update(Payment, payment_id)

            if gateway_ref and payment.gateway_reference != gateway_ref:
                raise PaymentValidationError(
                    "Gateway reference does not match payment",
                    error_code="REFERENCE_MISMATCH",
                    details={
                        "payment_id": str(payment.id),
                        "gateway_reference": gateway_ref,
                    },
                )

            if payment.status != PaymentStatus.INITIATED:
                cls.get_logger().info(
                    "Payment already confirmed, returning unchanged",
                    extra={"payment_id": str(payment.id), "status": payment.status},
                )
                return payment

            if amount_minor is not None and int(amount_minor) != payment.amount_minor:
                raise PaymentValidationError(
                    "Paid amount does not match payment amount",
                    error_code="AMOUNT_MISMATCH",
                    details={
                        "payment_id": str(payment.id),
                        "expected_minor": payment.amount_minor,
                        "received_minor": int(amount_minor),
                    },
                )

            apply_transition(payment, "mark_paid", gateway_transaction_id)
            payment.save()

            ledger.transfer(
                from_account_id=ledger.gateway_account(payment.currency).id,
                to_account_id=ledger.escrow_account(payment.currency).id,
                amount=payment.amount,
                entry_type=EntryType.PAYMENT_RECEIVED,
                idempotency_key=f"payment:{payment.id}:received",
                reference_type="payment",
                reference_id=payment.id,
                description=f"Payment received for {payment.item_title}",
            )

            if payment.item_id:
                item = Item.objects.select_for_update().filter(pk=payment.item_id).first()
                if item is not None:
                    item.reserve_unit()
                    item.save(update_fields=["quantity", "status", "updated_at"])

            for recipient, title in (
                (payment.buyer, "Payment received"),
                (payment.seller, "Item paid for"),
            ):
                NotificationService.notify_on_commit(
                    recipient=recipient,
                    type_key=NotificationType.PAYMENT_RECEIVED,
                    title=title,
                    body=(
                        f"{payment.currency} {payment.amount} for {payment.item_title} "
                        "is held by the platform until the buyer confirms receipt."
                    ),
                    payment_id=payment.id,
                    idempotency_key=f"payment:{payment.id}:received:{recipient.pk}",
                )

        cls.get_logger().info(
            "Payment received into escrow",
            extra={
                "payment_id": str(payment.id),
                "amount": str(payment.amount),
                "amount_minor": to_minor_units(payment.amount),
            },
        )
        return payment

    @classmethod
    def confirm_receipt(cls, payment_id: uuid.UUID, buyer: User) -> Payment:
        """
        Buyer confirms delivery; release escrow to the seller.

        Raises:
            NotFoundError: If the payment doesn't exist
            PermissionDeniedError: If the caller is not the buyer
            ConflictError: If the payment is disputed
            InvalidStateTransitionError: If the payment is not in escrow
        """
        with transaction.atomic():
            payment = lock_for_update(Payment, payment_id)

            if payment.buyer_id != buyer.pk:
                raise PermissionDeniedError(
                    "Only the buyer can confirm receipt",
                    error_code="NOT_PAYMENT_BUYER",
                    details={"payment_id": str(payment.id)},
                )

            if payment.is_disputed:
                raise ConflictError(
                    "Payment is under dispute and awaits admin resolution",
                    error_code="PAYMENT_DISPUTED",
                    details={"payment_id": str(payment.id)},
                )

            breakdown = ResolutionService.release_locked(payment)

            NotificationService.notify_on_commit(
                recipient=payment.seller,
                type_key=NotificationType.PAYMENT_RELEASED,
                title="Payment released",
                body=(
                    f"{payment.currency} {breakdown.net} for {payment.item_title} "
                    "was added to your balance."
                ),
                payment_id=payment.id,
                idempotency_key=f"payment:{payment.id}:released:{payment.seller_id}",
            )

        cls.get_logger().info(
            "Buyer confirmed receipt",
            extra={
                "payment_id": str(payment.id),
                "net_amount": str(breakdown.net),
                "fee": str(breakdown.fee),
            },
        )
        return payment


__all__ = [
    "PaymentService",
]
