"""
Notification models.

This module defines the in-app notification record written whenever a
payment, dispute or withdrawal changes state:
- NotificationType: The fixed set of notification kinds
- Notification: One message to one user

Design Decisions:
    - Notification inherits from BaseModel (timestamps, ordering)
    - Actor uses SET_NULL (preserve notification when actor deleted)
    - Related payment/dispute/withdrawal are plain UUIDs so notifications
      never block deletion of, or lock, the payment rows
    - idempotency_key is unique when set so a retried flow does not notify twice

Usage:
    from notifications.models import Notification, NotificationType

    Notification.objects.create(
        recipient=seller,
        type_key=NotificationType.PAYMENT_RELEASED,
        title="Payment released",
        body="KES 900.00 was added to your balance.",
        payment_id=payment.id,
    )
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import BaseModel


# =============================================================================
# Enums
# =============================================================================


class NotificationType(models.TextChoices):
    """Kinds of notifications raised by the payment flows."""

    PAYMENT_RECEIVED = "payment_received", "Payment Received"
    PAYMENT_RELEASED = "payment_released", "Payment Released"
    PAYMENT_REFUNDED = "payment_refunded", "Payment Refunded"
    DISPUTE_FILED = "dispute_filed", "Dispute Filed"
    DISPUTE_RESOLVED = "dispute_resolved", "Dispute Resolved"
    PAYMENTS_NEED_REVIEW = "payments_need_review", "Payments Need Review"
    WITHDRAWAL_INITIATED = "withdrawal_initiated", "Withdrawal Initiated"
    WITHDRAWAL_COMPLETED = "withdrawal_completed", "Withdrawal Completed"
    WITHDRAWAL_FAILED = "withdrawal_failed", "Withdrawal Failed"


# =============================================================================
# Notification
# =============================================================================


class Notification(BaseModel):
    """
    Individual notification record for a user.

    Notifications are immutable once created except for read status.

    Fields:
        recipient: User receiving the notification (scopes all queries)
        actor: Optional user who triggered the notification
        type_key: NotificationType value
        title / body: Fully rendered strings
        data: Arbitrary JSON context (amounts, deep links)
        payment_id / dispute_id / withdrawal_id: Related records, if any
        is_read / read_at: Read status
        idempotency_key: Optional key preventing duplicates
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="User receiving this notification",
    )

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="triggered_notifications",
        help_text="User who triggered this notification (optional)",
    )

    type_key = models.CharField(
        max_length=50,
        choices=NotificationType.choices,
        db_index=True,
        help_text="Kind of notification",
    )

    title = models.CharField(
        max_length=500,
        help_text="Fully rendered notification title",
    )

    body = models.TextField(
        blank=True,
        default="",
        help_text="Fully rendered notification body",
    )

    data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary context data (amounts, deep links)",
    )

    payment_id = models.UUIDField(null=True, blank=True, db_index=True)
    dispute_id = models.UUIDField(null=True, blank=True)
    withdrawal_id = models.UUIDField(null=True, blank=True)

    is_read = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether recipient has read this notification",
    )

    read_at = models.DateTimeField(null=True, blank=True)

    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Idempotency key to prevent duplicate notifications",
    )

    class Meta:
        ordering = ["-created_at"]  # Newest first
        indexes = [
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["idempotency_key"],
                name="notif_idempotency_key_unique",
                condition=models.Q(idempotency_key__isnull=False),
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return f"Notification({self.type_key}) -> User {self.recipient_id} [{read_status}]"

    def mark_read(self) -> None:
        """Mark as read. Does not save - caller must save after calling."""
        self.is_read = True
        self.read_at = timezone.now()
