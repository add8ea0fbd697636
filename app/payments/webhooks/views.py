"""
Webhook endpoint view for Paystack.

The view:
1. Verifies the x-paystack-signature header (HMAC-SHA512 of the raw body)
2. Creates/retrieves the WebhookEvent record (idempotent)
3. Queues the event for async processing
4. Returns immediately

Usage:
    # In urls.py
    from payments.webhooks.views import paystack_webhook

    urlpatterns = [
        path("webhooks/paystack/", paystack_webhook, name="paystack_webhook"),
    ]
"""

from __future__ import annotations

import json
import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import PaystackAdapter
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus


logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def paystack_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and queue Paystack webhook events.

    Idempotency:
    - WebhookEvent.event_key (event name + object id) is unique
    - Duplicate deliveries of a processed event return 200 without reprocessing

    Returns:
        HttpResponse with status:
        - 200: Event accepted (new or duplicate)
        - 400: Missing/invalid signature or payload
    """
    payload = request.body
    signature = request.headers.get("x-paystack-signature", "")

    if not signature:
        logger.warning("Webhook received without x-paystack-signature header")
        return HttpResponse("Missing signature", status=400)

    # Step 1: Verify signature
    if not PaystackAdapter.verify_webhook_signature(payload, signature):
        logger.warning("Webhook signature verification failed")
        return HttpResponse("Invalid signature", status=400)

    try:
        event_data = json.loads(payload)
    except (ValueError, UnicodeDecodeError):
        logger.warning("Webhook body is not valid JSON")
        return HttpResponse("Invalid payload", status=400)

    event_type = event_data.get("event") if isinstance(event_data, dict) else None
    if not event_type:
        logger.warning("Webhook missing event field")
        return HttpResponse("Invalid event", status=400)

    event_key = WebhookEvent.build_event_key(event_data)
    logger.info(
        f"Received Paystack webhook: {event_type}",
        extra={"event_key": event_key, "event_type": event_type},
    )

    # Step 2: Create/get WebhookEvent (idempotent)
    webhook_event, created = WebhookEvent.objects.get_or_create(
        event_key=event_key,
        defaults={
            "event_type": event_type,
            "payload": event_data,
            "status": WebhookEventStatus.PENDING,
        },
    )

    if not created and webhook_event.is_processed:
        logger.info(
            "Webhook already processed, returning success",
            extra={"event_key": event_key},
        )
        return HttpResponse("Already processed", status=200)

    # Step 3: Queue for async processing
    try:
        from payments.tasks import process_webhook_event

        process_webhook_event.delay(str(webhook_event.id))
        logger.info(
            "Webhook queued for processing",
            extra={"event_key": event_key, "webhook_event_id": str(webhook_event.id)},
        )
    except Exception as e:
        # Paystack retries undelivered webhooks; the stored event is retried by beat
        logger.error(
            f"Failed to queue webhook: {type(e).__name__}",
            extra={"event_key": event_key},
            exc_info=True,
        )

    return HttpResponse("Accepted", status=200)
