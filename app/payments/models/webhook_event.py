"""
WebhookEvent model for Paystack webhook event tracking.

Stores every webhook event received from Paystack for idempotent
processing and audit trails. Paystack payloads carry no event id, so the
unique event_key is derived from the event name and the id of the object
it describes (see build_event_key).

Usage:
    from payments.models import WebhookEvent

    event, created = WebhookEvent.objects.get_or_create(
        event_key=WebhookEvent.build_event_key(payload),
        defaults={"event_type": payload["event"], "payload": payload},
    )

    if not created:
        # Duplicate delivery - already stored
        return HttpResponse(status=200)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import WebhookEventStatus

if TYPE_CHECKING:
    from typing import Any

MAX_WEBHOOK_RETRIES = 5


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks Paystack webhook events for idempotent processing.

    Processing Flow:
        1. Webhook arrives, verify x-paystack-signature
        2. Insert/get WebhookEvent by event_key
        3. If it already existed -> return 200 (duplicate)
        4. Queue process_webhook_event task
        5. Task sets PROCESSING, routes to handler
        6. Task sets PROCESSED or FAILED (Celery retries FAILED)

    Fields:
        event_key: Unique key derived from event name and object id
        event_type: Paystack event name (e.g., 'charge.success')
        payload: Full JSON payload from Paystack
        status: Processing status
        processed_at: When event was successfully processed
        error_message: Error details if processing failed
        retry_count: Number of processing attempts
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    event_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Event name plus object id - unique constraint for idempotency",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Paystack event type (e.g., 'charge.success')",
    )

    # ==========================================================================
    # Payload
    # ==========================================================================

    payload = models.JSONField(
        help_text="Full webhook payload from Paystack (JSON)",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When event was successfully processed",
    )

    # ==========================================================================
    # Error Handling
    # ==========================================================================

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"]),
            models.Index(fields=["event_type", "created_at"]),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.event_key})"

    @staticmethod
    def build_event_key(payload: dict[str, Any]) -> str:
        """
        Derive the idempotency key for a Paystack payload.

        Paystack retries a delivery with an identical body, so the event
        name plus the object id (or reference when no id is present) is
        stable across retries.
        """
        data = payload.get("data") or {}
        object_id = data.get("id") or data.get("reference") or ""
        return f"{payload.get('event', 'unknown')}:{object_id}"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def can_retry(self) -> bool:
        """Check if event can be retried (failed with retry count < max)."""
        return (
            self.status == WebhookEventStatus.FAILED
            and self.retry_count < MAX_WEBHOOK_RETRIES
        )

    @property
    def data(self) -> dict[str, Any]:
        """The ``data`` object of the payload."""
        return self.payload.get("data") or {}

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    def mark_processing(self) -> None:
        """
        Mark event as being processed.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        """
        Mark event as successfully processed.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        """
        Mark event as failed with error message.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message
