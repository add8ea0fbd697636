"""
Dispute model: an append-only log of disputes filed against payments.

A payment can accumulate several disputes over its life, but at most one
of them is OPEN at any time (partial unique constraint). The "current"
dispute of a payment is always a query, never a stored pointer:

    Dispute.objects.open_for(payment).first()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import DisputeRole, DisputeStatus

if TYPE_CHECKING:
    from payments.models.payment import Payment

MAX_DISPUTE_DESCRIPTION_LENGTH = 2000


class DisputeQuerySet(models.QuerySet):
    def open(self) -> DisputeQuerySet:
        return self.filter(status=DisputeStatus.OPEN)

    def open_for(self, payment: Payment) -> DisputeQuerySet:
        return self.filter(payment=payment, status=DisputeStatus.OPEN)


class Dispute(UUIDPrimaryKeyMixin, BaseModel):
    """
    A complaint filed by the buyer or seller of a payment.

    Fields:
        payment: The disputed payment
        item: Item of the payment at filing time
        filed_by / filed_by_role: Who filed it and in which capacity
        reason: Short reason
        description: Free text (max 2000 characters)
        status: OPEN until an admin resolves the payment
        resolution_notes / resolved_by / resolved_at: Set on resolution
        submitted_at: When the dispute was filed
    """

    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.CASCADE,
        related_name="disputes",
        help_text="Payment being disputed",
    )

    item = models.ForeignKey(
        "listings.Item",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="disputes",
        help_text="Item the disputed payment was for",
    )

    filed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="filed_disputes",
        help_text="User who filed the dispute",
    )

    filed_by_role = models.CharField(
        max_length=10,
        choices=DisputeRole.choices,
        help_text="Whether the filer is the buyer or the seller",
    )

    reason = models.CharField(
        max_length=255,
        help_text="Short reason for the dispute",
    )

    description = models.TextField(
        max_length=MAX_DISPUTE_DESCRIPTION_LENGTH,
        help_text="Details of the complaint",
    )

    status = models.CharField(
        max_length=20,
        choices=DisputeStatus.choices,
        default=DisputeStatus.OPEN,
        db_index=True,
        help_text="Resolution status",
    )

    resolution_notes = models.TextField(
        blank=True,
        default="",
        help_text="Admin notes recorded at resolution",
    )

    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="resolved_disputes",
        help_text="Admin who resolved the dispute",
    )

    submitted_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the dispute was filed",
    )

    resolved_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the dispute was resolved",
    )

    objects = DisputeQuerySet.as_manager()

    class Meta:
        ordering = ["-submitted_at"]
        verbose_name = "Dispute"
        verbose_name_plural = "Disputes"
        indexes = [
            models.Index(fields=["payment", "status"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["payment"],
                condition=models.Q(status=DisputeStatus.OPEN),
                name="unique_open_dispute_per_payment",
            ),
        ]

    def __str__(self) -> str:
        return f"Dispute({self.id}, {self.status}, payment={self.payment_id})"

    @property
    def is_open(self) -> bool:
        return self.status == DisputeStatus.OPEN

    def resolve(
        self,
        status: DisputeStatus,
        resolved_by_id,
        notes: str | None = None,
    ) -> None:
        """
        Close the dispute with the given outcome.

        Note: Does not save - caller must save after calling.
        """
        self.status = status
        self.resolved_by_id = resolved_by_id
        self.resolved_at = timezone.now()
        if notes:
            self.resolution_notes = notes
