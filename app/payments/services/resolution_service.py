"""
Admin resolution of escrowed payments.

This module provides the ResolutionService class which settles a payment
held in escrow one of two ways:

- Release: the seller gets the net amount, the platform keeps the fee
- Refund: the buyer gets the gross amount back as balance

Each resolution runs in one transaction with the payment row locked, so
of two concurrent resolutions only the first commits. The second reads the
terminal status and fails with InvalidStateTransitionError (409).

Ledger movements per resolution:
    release:  platform_escrow -> seller user_balance   (net)
              platform_escrow -> platform_fees         (fee)
    refund:   platform_escrow -> buyer user_balance    (gross)

Usage:
    from payments.services import ResolutionService

    outcome = ResolutionService.admin_release(payment.id, acting_admin=request.user)
    outcome.net_amount  # Decimal("900.00")

    outcome = ResolutionService.admin_refund(
        payment.id, acting_admin=request.user, dispute_id=dispute.id,
        notes="Item never shipped",
    )
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import transaction

from core.exceptions import ConflictError
from core.services import BaseService

from authentication.capabilities import require_admin
from listings.models import Item
from notifications.models import NotificationType
from notifications.services import NotificationService
from payments.exceptions import PaymentNotFoundError, PaymentValidationError
from payments.ledger import EntryType, RecordEntryParams, ledger
from payments.locks import lock_for_update
from payments.models import Dispute, Earning, Payment
from payments.services.fee_calculator import FeeBreakdown, FeeCalculator
from payments.state_machines import DisputeStatus, EarningStatus
from payments.state_machines.transitions import apply_transition

if TYPE_CHECKING:
    from authentication.models import User


# =============================================================================
# Result Types
# =============================================================================


@dataclass(frozen=True)
class ReleaseOutcome:
    """What an admin release paid out."""

    seller_id: uuid.UUID
    net_amount: Decimal
    item_id: uuid.UUID | None


@dataclass(frozen=True)
class RefundOutcome:
    """What an admin refund returned."""

    buyer_id: uuid.UUID
    seller_id: uuid.UUID
    amount_refunded: Decimal
    item_id: uuid.UUID | None


# =============================================================================
# Resolution Service
# =============================================================================


class ResolutionService(BaseService):
    """
    Service for releasing and refunding escrowed payments.

    Methods:
        admin_release: Admin releases escrow to the seller
        admin_refund: Admin refunds escrow to the buyer
        release_locked: Release bookkeeping shared with buyer confirmation

    Both admin operations accept an optional expected_version; when given,
    a payment modified since the admin loaded it fails with StaleRecordError.
    """

    @classmethod
    def admin_release(
        cls,
        payment_id: uuid.UUID,
        acting_admin: User,
        notes: str | None = None,
        expected_version: int | None = None,
    ) -> ReleaseOutcome:
        """
        Release an escrowed payment to the seller.

        Raises:
            PermissionDeniedError: If acting_admin is not an active admin
            NotFoundError: If the payment doesn't exist
            StaleRecordError: If expected_version no longer matches
            InvalidStateTransitionError: If the payment is not in escrow
        """
        admin = require_admin(acting_admin)

        with transaction.atomic():
            payment = lock_for_update(Payment, payment_id, expected_version)
            breakdown = cls.release_locked(payment, resolved_by=admin.user, notes=notes)

            cls._notify_parties(
                payment,
                type_key=NotificationType.PAYMENT_RELEASED,
                seller_message=(
                    "Payment released",
                    f"{payment.currency} {breakdown.net} for {payment.item_title} "
                    "was added to your balance.",
                ),
                buyer_message=(
                    "Payment released to seller",
                    f"Your payment for {payment.item_title} was released to the seller.",
                ),
                actor=admin.user,
            )

        cls.get_logger().info(
            "Payment released by admin",
            extra={
                "payment_id": str(payment.id),
                "admin_id": str(admin.user_id),
                "net_amount": str(breakdown.net),
                "fee": str(breakdown.fee),
            },
        )
        return ReleaseOutcome(
            seller_id=payment.seller_id,
            net_amount=breakdown.net,
            item_id=payment.item_id,
        )

    @classmethod
    def admin_refund(
        cls,
        payment_id: uuid.UUID,
        acting_admin: User,
        dispute_id: uuid.UUID | None = None,
        notes: str | None = None,
        expected_version: int | None = None,
    ) -> RefundOutcome:
        """
        Refund an escrowed payment to the buyer's balance.

        The card refund itself is an operational step outside the platform.

        Raises:
            PermissionDeniedError: If acting_admin is not an active admin
            NotFoundError: If the payment or given dispute doesn't exist
            PaymentValidationError: If the dispute belongs to another payment
            ConflictError: If the given dispute is already resolved
            StaleRecordError: If expected_version no longer matches
            InvalidStateTransitionError: If the payment is not in escrow
        """
        admin = require_admin(acting_admin)

        with transaction.atomic():
            payment = lock_for_update(Payment, payment_id, expected_version)

            target_dispute = None
            if dispute_id is not None:
                target_dispute = cls._get_dispute_for_payment(dispute_id, payment)

            apply_transition(payment, "refund")
            payment.resolved_by = admin.user
            payment.save()

            if payment.item_id:
                item = Item.objects.select_for_update().filter(pk=payment.item_id).first()
                if item is not None:
                    item.restock_unit()
                    item.save(update_fields=["quantity", "status", "updated_at"])

            ledger.transfer(
                from_account_id=ledger.escrow_account(payment.currency).id,
                to_account_id=ledger.user_balance_account(
                    payment.buyer_id, payment.currency
                ).id,
                amount=payment.amount,
                entry_type=EntryType.REFUND,
                idempotency_key=f"payment:{payment.id}:refund",
                reference_type="payment",
                reference_id=payment.id,
                description=f"Refund for {payment.item_title}",
                created_by=str(admin.user_id),
            )

            if target_dispute is not None:
                target_dispute.resolve(DisputeStatus.RESOLVED_REFUND, admin.user_id, notes)
                target_dispute.save()
            cls._resolve_open_disputes(
                payment, DisputeStatus.RESOLVED_REFUND, admin.user_id, notes
            )

            cls._notify_parties(
                payment,
                type_key=NotificationType.PAYMENT_REFUNDED,
                seller_message=(
                    "Payment refunded",
                    f"The payment for {payment.item_title} was refunded to the buyer.",
                ),
                buyer_message=(
                    "Payment refunded",
                    f"{payment.currency} {payment.amount} for {payment.item_title} "
                    "was returned to your balance.",
                ),
                actor=admin.user,
            )

        cls.get_logger().info(
            "Payment refunded by admin",
            extra={
                "payment_id": str(payment.id),
                "admin_id": str(admin.user_id),
                "amount": str(payment.amount),
                "dispute_id": str(dispute_id) if dispute_id else None,
            },
        )
        return RefundOutcome(
            buyer_id=payment.buyer_id,
            seller_id=payment.seller_id,
            amount_refunded=payment.amount,
            item_id=payment.item_id,
        )

    # ==========================================================================
    # Shared Release Bookkeeping
    # ==========================================================================

    @classmethod
    def release_locked(
        cls,
        payment: Payment,
        resolved_by: User | None = None,
        notes: str | None = None,
    ) -> FeeBreakdown:
        """
        Release a payment whose row the caller has locked.

        Must run inside the caller's transaction. Applies the fee, moves
        the item to its post-sale status, creates the seller's Earning,
        records the ledger legs and closes any open dispute.
        """
        breakdown = FeeCalculator.compute_fee(payment.amount)

        apply_transition(payment, "release", breakdown)
        payment.resolved_by = resolved_by
        payment.save()

        if payment.item_id:
            item = Item.objects.select_for_update().filter(pk=payment.item_id).first()
            if item is not None:
                item.settle_sale()
                item.save(update_fields=["status", "updated_at"])

        Earning.objects.create(
            seller_id=payment.seller_id,
            payment=payment,
            item_id=payment.item_id,
            item_title=payment.item_title,
            amount=breakdown.net,
            status=EarningStatus.AVAILABLE,
        )

        escrow = ledger.escrow_account(payment.currency)
        legs = []
        if breakdown.net > 0:
            legs.append(
                RecordEntryParams(
                    debit_account_id=escrow.id,
                    credit_account_id=ledger.user_balance_account(
                        payment.seller_id, payment.currency
                    ).id,
                    amount=breakdown.net,
                    entry_type=EntryType.PAYMENT_RELEASED,
                    idempotency_key=f"payment:{payment.id}:release:net",
                    reference_type="payment",
                    reference_id=payment.id,
                    description=f"Release for {payment.item_title}",
                )
            )
        if breakdown.fee > 0:
            legs.append(
                RecordEntryParams(
                    debit_account_id=escrow.id,
                    credit_account_id=ledger.fees_account(payment.currency).id,
                    amount=breakdown.fee,
                    entry_type=EntryType.FEE_COLLECTED,
                    idempotency_key=f"payment:{payment.id}:release:fee",
                    reference_type="payment",
                    reference_id=payment.id,
                    description=f"Platform fee ({breakdown.percentage}%)",
                )
            )
        ledger.record_entries(legs)

        cls._resolve_open_disputes(
            payment,
            DisputeStatus.RESOLVED_RELEASE,
            resolved_by.pk if resolved_by else None,
            notes,
        )
        return breakdown

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @staticmethod
    def _get_dispute_for_payment(dispute_id: uuid.UUID, payment: Payment) -> Dispute:
        dispute = Dispute.objects.select_for_update().filter(pk=dispute_id).first()
        if dispute is None:
            raise PaymentNotFoundError(
                f"Dispute {dispute_id} not found",
                error_code="DISPUTE_NOT_FOUND",
                details={"dispute_id": str(dispute_id)},
            )
        if dispute.payment_id != payment.id:
            raise PaymentValidationError(
                "Dispute does not belong to this payment",
                error_code="DISPUTE_PAYMENT_MISMATCH",
                details={
                    "dispute_id": str(dispute_id),
                    "payment_id": str(payment.id),
                },
            )
        if not dispute.is_open:
            raise ConflictError(
                "Dispute is already resolved",
                error_code="DISPUTE_ALREADY_RESOLVED",
                details={"dispute_id": str(dispute_id), "status": dispute.status},
            )
        return dispute

    @staticmethod
    def _resolve_open_disputes(
        payment: Payment,
        status: DisputeStatus,
        resolved_by_id: uuid.UUID | None,
        notes: str | None,
    ) -> None:
        for dispute in Dispute.objects.open_for(payment).select_for_update():
            dispute.resolve(status, resolved_by_id, notes)
            dispute.save()

    @staticmethod
    def _notify_parties(
        payment: Payment,
        type_key: str,
        seller_message: tuple[str, str],
        buyer_message: tuple[str, str],
        actor: User | None = None,
    ) -> None:
        for recipient, (title, body) in (
            (payment.seller, seller_message),
            (payment.buyer, buyer_message),
        ):
            NotificationService.notify_on_commit(
                recipient=recipient,
                type_key=type_key,
                title=title,
                body=body,
                actor=actor,
                payment_id=payment.id,
                idempotency_key=f"payment:{payment.id}:{type_key}:{recipient.pk}",
            )


__all__ = [
    "RefundOutcome",
    "ReleaseOutcome",
    "ResolutionService",
]
