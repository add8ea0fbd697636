"""
Dispute service: filing disputes and finding payments that need an admin.

A dispute never changes a payment's status. Filing one sets the payment's
is_disputed flag, which blocks the buyer's own confirmation and puts the
payment on the admin attention list until an admin releases or refunds it
(see ResolutionService) or dismisses the dispute.

Eligibility:
    buyer:  PAID_TO_PLATFORM, or RELEASED_TO_SELLER_BALANCE within
            PAYMENTS_DISPUTE_WINDOW_DAYS of the release
    seller: PAID_TO_PLATFORM

Usage:
    from payments.services import DisputeService

    dispute = DisputeService.file_dispute(
        payment_id=payment.id,
        item_id=payment.item_id,
        filed_by=buyer,
        reason="Item not received",
        description="Seller stopped responding after payment.",
    )

    for payment in DisputeService.list_disputed_or_overdue_payments():
        ...
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from core.exceptions import ConflictError, PermissionDeniedError
from core.services import BaseService

from authentication.capabilities import require_admin
from notifications.models import NotificationType
from notifications.services import NotificationService
from payments.exceptions import PaymentNotFoundError, PaymentValidationError
from payments.locks import lock_for_update
from payments.models import Dispute, Payment
from payments.models.dispute import MAX_DISPUTE_DESCRIPTION_LENGTH
from payments.state_machines import DisputeRole, DisputeStatus, PaymentStatus

if TYPE_CHECKING:
    from authentication.models import User


class DisputeService(BaseService):
    """
    Service for dispute operations.

    Methods:
        file_dispute: Buyer or seller opens a dispute on a payment
        list_disputed_or_overdue_payments: Admin attention list
        dismiss_dispute: Admin closes a dispute on a released payment
    """

    @classmethod
    def file_dispute(
        cls,
        payment_id: uuid.UUID,
        item_id: uuid.UUID | None,
        filed_by: User,
        reason: str,
        description: str,
    ) -> Dispute:
        """
        Open a dispute on a payment.

        Raises:
            NotFoundError: If the payment doesn't exist
            PermissionDeniedError: If filed_by is not a party to the payment
            PaymentValidationError: If the item doesn't match or the text is invalid
            ConflictError: If a dispute is already open or the payment is not eligible
        """
        reason = (reason or "").strip()
        description = (description or "").strip()

        with transaction.atomic():
            payment = lock_for_update(Payment, payment_id)

            if filed_by.pk == payment.buyer_id:
                role = DisputeRole.BUYER
            elif filed_by.pk == payment.seller_id:
                role = DisputeRole.SELLER
            else:
                raise PermissionDeniedError(
                    "Only the buyer or seller can dispute a payment",
                    error_code="NOT_PAYMENT_PARTY",
                    details={"payment_id": str(payment.id)},
                )

            if str(payment.item_id) != str(item_id):
                raise PaymentValidationError(
                    "Item does not match the payment",
                    error_code="ITEM_MISMATCH",
                    details={"payment_id": str(payment.id), "item_id": str(item_id)},
                )

            cls._validate_text(reason, description)

            if Dispute.objects.open_for(payment).exists():
                raise ConflictError(
                    "An open dispute already exists for this payment",
                    error_code="DISPUTE_ALREADY_OPEN",
                    details={"payment_id": str(payment.id)},
                )

            cls._check_eligibility(payment, role)

            payment.is_disputed = True
            payment.dispute_reason = reason
            payment.save(update_fields=["is_disputed", "dispute_reason", "updated_at"])

            try:
                with transaction.atomic():
                    dispute = Dispute.objects.create(
                        payment=payment,
                        item_id=payment.item_id,
                        filed_by=filed_by,
                        filed_by_role=role,
                        reason=reason,
                        description=description,
                    )
            except IntegrityError:
                raise ConflictError(
                    "An open dispute already exists for this payment",
                    error_code="DISPUTE_ALREADY_OPEN",
                    details={"payment_id": str(payment.id)},
                )

            other_party = payment.seller if role == DisputeRole.BUYER else payment.buyer
            NotificationService.notify_on_commit(
                recipient=other_party,
                type_key=NotificationType.DISPUTE_FILED,
                title="Dispute filed",
                body=f"A dispute was filed on the payment for {payment.item_title}: {reason}",
                actor=filed_by,
                payment_id=payment.id,
                dispute_id=dispute.id,
            )
            NotificationService.notify_admins_on_commit(
                type_key=NotificationType.DISPUTE_FILED,
                title="New dispute",
                body=f"The {role} of {payment.item_title} filed a dispute: {reason}",
                actor=filed_by,
                payment_id=payment.id,
                dispute_id=dispute.id,
                idempotency_key=f"dispute:{dispute.id}:filed",
            )

        cls.get_logger().info(
            "Dispute filed",
            extra={
                "dispute_id": str(dispute.id),
                "payment_id": str(payment.id),
                "role": role,
            },
        )
        return dispute

    @classmethod
    def list_disputed_or_overdue_payments(
        cls, now: datetime | None = None
    ) -> QuerySet[Payment]:
        """
        Payments an admin should look at, oldest first.

        A payment qualifies when it is disputed, or when it has been held
        in escrow for PAYMENTS_OVERDUE_DAYS or longer.
        """
        now = now or timezone.now()
        cutoff = now - timedelta(days=settings.PAYMENTS_OVERDUE_DAYS)
        return (
            Payment.objects.filter(
                Q(status=PaymentStatus.PAID_TO_PLATFORM, created_at__lte=cutoff)
                | Q(is_disputed=True)
            )
            .select_related("buyer", "seller", "item")
            .distinct()
            .order_by("created_at")
        )

    @classmethod
    def dismiss_dispute(
        cls,
        dispute_id: uuid.UUID,
        admin: User,
        notes: str | None = None,
    ) -> Dispute:
        """
        Close an open dispute on an already released payment.

        The release stands: the dispute is marked RESOLVED_RELEASE and the
        payment's dispute flag is cleared. Disputes on payments still in
        escrow are settled with admin_release or admin_refund instead.

        Raises:
            PermissionDeniedError: If admin is not an active admin
            PaymentNotFoundError: If the dispute doesn't exist
            ConflictError: If the dispute is closed or its payment is in escrow
        """
        principal = require_admin(admin)

        payment_id = (
            Dispute.objects.filter(pk=dispute_id).values_list("payment_id", flat=True).first()
        )
        if payment_id is None:
            raise PaymentNotFoundError(
                f"Dispute {dispute_id} not found",
                error_code="DISPUTE_NOT_FOUND",
                details={"dispute_id": str(dispute_id)},
            )

        with transaction.atomic():
            # Payment first, then dispute: same lock order as the resolutions
            payment = lock_for_update(Payment, payment_id)
            dispute = Dispute.objects.select_for_update().get(pk=dispute_id)

            if not dispute.is_open:
                raise ConflictError(
                    "Dispute is already resolved",
                    error_code="DISPUTE_ALREADY_RESOLVED",
                    details={"dispute_id": str(dispute.id), "status": dispute.status},
                )

            if payment.status != PaymentStatus.RELEASED_TO_SELLER_BALANCE:
                raise ConflictError(
                    "Only disputes on released payments can be dismissed",
                    error_code="PAYMENT_NOT_RELEASED",
                    details={"payment_id": str(payment.id), "status": payment.status},
                )

            dispute.resolve(DisputeStatus.RESOLVED_RELEASE, principal.user_id, notes)
            dispute.save()

            payment.clear_dispute()
            payment.save(update_fields=["is_disputed", "dispute_reason", "updated_at"])

            NotificationService.notify_on_commit(
                recipient=dispute.filed_by,
                type_key=NotificationType.DISPUTE_RESOLVED,
                title="Dispute closed",
                body=f"Your dispute on {payment.item_title} was closed. The release stands.",
                actor=principal.user,
                payment_id=payment.id,
                dispute_id=dispute.id,
            )

        cls.get_logger().info(
            "Dispute dismissed",
            extra={"dispute_id": str(dispute.id), "admin_id": str(principal.user_id)},
        )
        return dispute

    # ==========================================================================
    # Validation
    # ==========================================================================

    @staticmethod
    def _validate_text(reason: str, description: str) -> None:
        errors = {}
        if not reason:
            errors["reason"] = "Reason is required"
        if not description:
            errors["description"] = "Description is required"
        elif len(description) > MAX_DISPUTE_DESCRIPTION_LENGTH:
            errors["description"] = (
                f"Description must be at most {MAX_DISPUTE_DESCRIPTION_LENGTH} characters"
            )
        if errors:
            raise PaymentValidationError(
                "Invalid dispute",
                error_code="INVALID_DISPUTE",
                details=errors,
            )

    @staticmethod
    def _check_eligibility(payment: Payment, role: DisputeRole) -> None:
        if payment.status == PaymentStatus.PAID_TO_PLATFORM:
            return

        if (
            role == DisputeRole.BUYER
            and payment.status == PaymentStatus.RELEASED_TO_SELLER_BALANCE
            and payment.released_at is not None
            and payment.released_at
            >= timezone.now() - timedelta(days=settings.PAYMENTS_DISPUTE_WINDOW_DAYS)
        ):
            return

        raise ConflictError(
            "Payment cannot be disputed in its current state",
            error_code="DISPUTE_NOT_ALLOWED",
            details={
                "payment_id": str(payment.id),
                "status": payment.status,
                "role": role,
            },
        )


__all__ = [
    "DisputeService",
]
