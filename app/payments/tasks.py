"""
Celery tasks for payment processing.

This module provides async tasks for:
- Processing Paystack webhook events
- Retrying failed webhook events
- Alerting admins about disputed and overdue payments

Usage:
    from payments.tasks import process_webhook_event

    # Queue a webhook for async processing
    process_webhook_event.delay(str(webhook_event.id))

    # Run the overdue scan (typically via celery-beat)
    from payments.tasks import scan_overdue_payments
    scan_overdue_payments.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from notifications.models import NotificationType
from notifications.services import NotificationService
from payments.models import WebhookEvent
from payments.models.webhook_event import MAX_WEBHOOK_RETRIES
from payments.services import DisputeService
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)

# PENDING events older than this were never handed to a worker
UNQUEUED_THRESHOLD_MINUTES = 10


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_WEBHOOK_RETRIES},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process a Paystack webhook event asynchronously.

    This task:
    1. Loads the WebhookEvent by ID
    2. Checks if already processed (idempotency)
    3. Marks as processing
    4. Dispatches to the registered handler
    5. Marks as processed or failed

    Raises:
        Exception: Re-raised to trigger Celery retry mechanism
    """
    # Import here to avoid circular imports
    from payments.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    webhook_event = WebhookEvent.objects.filter(id=webhook_event_id).first()
    if webhook_event is None:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.is_processed:
        logger.info(
            "WebhookEvent already processed, skipping",
            extra={"event_key": webhook_event.event_key},
        )
        return {
            "status": "already_processed",
            "webhook_event_id": str(webhook_event_id),
        }

    webhook_event.mark_processing()
    webhook_event.save()

    logger.info(
        f"Dispatching webhook: {webhook_event.event_type}",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "event_key": webhook_event.event_key,
            "retry_count": webhook_event.retry_count,
        },
    )

    try:
        with transaction.atomic():
            result = dispatch_webhook(webhook_event)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.exception(
            "Webhook processing failed with exception",
            extra={"event_key": webhook_event.event_key, "error": error_msg},
        )
        # Re-raise to trigger Celery retry
        raise

    if not result.success:
        error_msg = result.error or "Handler returned failure"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.warning(
            f"Webhook handler failed: {error_msg}",
            extra={
                "event_key": webhook_event.event_key,
                "error_code": result.error_code,
            },
        )
        return {
            "status": "handler_failed",
            "webhook_event_id": str(webhook_event_id),
            "error": error_msg,
            "error_code": result.error_code,
        }

    webhook_event.mark_processed()
    webhook_event.save()
    logger.info(
        "Webhook processed successfully",
        extra={"event_key": webhook_event.event_key},
    )
    return {
        "status": "processed",
        "webhook_event_id": str(webhook_event_id),
        "event_key": webhook_event.event_key,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task re-queuing webhook events that did not get processed.

    Picks up FAILED events below the retry limit and PENDING events that
    were never queued (the broker was down when the webhook arrived).
    Handler failures are retried too: a charge.success that arrived before
    its payment row committed succeeds on a later attempt.
    """
    queued_before = timezone.now() - timedelta(minutes=UNQUEUED_THRESHOLD_MINUTES)
    webhooks = WebhookEvent.objects.filter(
        Q(status=WebhookEventStatus.FAILED, retry_count__lt=MAX_WEBHOOK_RETRIES)
        | Q(status=WebhookEventStatus.PENDING, created_at__lt=queued_before)
    ).order_by("created_at")[:100]

    queued_count = 0
    for webhook in webhooks:
        process_webhook_event.delay(str(webhook.id))
        queued_count += 1

    if queued_count:
        logger.info(
            f"Queued {queued_count} webhooks for retry",
            extra={"queued_count": queued_count},
        )
    return {"queued_count": queued_count}


# =============================================================================
# Admin Review
# =============================================================================


@shared_task
def scan_overdue_payments() -> dict:
    """
    Notify admins about payments that are disputed or held too long.

    At most one notification per admin per day.
    """
    payments = list(DisputeService.list_disputed_or_overdue_payments())
    if not payments:
        return {"payment_count": 0, "notified": 0}

    disputed = sum(1 for payment in payments if payment.is_disputed)
    notified = NotificationService.notify_admins(
        type_key=NotificationType.PAYMENTS_NEED_REVIEW,
        title=f"{len(payments)} payments need review",
        body=(
            f"{disputed} disputed and {len(payments) - disputed} overdue payments "
            "are waiting for release or refund."
        ),
        data={"payment_ids": [str(payment.id) for payment in payments]},
        idempotency_key=f"payments-review:{timezone.localdate().isoformat()}",
    )

    logger.info(
        "Overdue payment scan complete",
        extra={
            "payment_count": len(payments),
            "disputed_count": disputed,
            "notified": notified,
        },
    )
    return {"payment_count": len(payments), "notified": notified}
