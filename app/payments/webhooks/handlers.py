"""
Webhook event handlers for Paystack events.

This module provides a handler registry and implementations for
processing different Paystack webhook events.

Handled events:
    charge.success     -> PaymentService.confirm_payment_received
    transfer.success   -> WithdrawalService.complete_transfer
    transfer.failed    -> WithdrawalService.fail_transfer
    transfer.reversed  -> WithdrawalService.fail_transfer (also undoes a completion)

Handlers return ServiceResult. Domain errors (unknown reference, amount
mismatch) become failures that are recorded on the WebhookEvent and not
retried; anything else propagates so the Celery task retries it.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    # Register a custom handler
    @register_handler("custom.event")
    def handle_custom_event(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    # Dispatch an event to its handler
    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from typing import Callable

from core.exceptions import BaseApplicationError
from core.services import ServiceResult

from payments.models import Payment, WebhookEvent
from payments.services import PaymentService, WithdrawalService

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(*event_types: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler("transfer.failed", "transfer.reversed")
        def handle_transfer_failed(webhook_event: WebhookEvent) -> ServiceResult:
            ...
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        for event_type in event_types:
            WEBHOOK_HANDLERS[event_type] = func
            logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to the appropriate handler.

    If no handler is registered, logs and returns success (to avoid
    failing on events we don't act on).
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"event_key": webhook_event.event_key},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"event_key": webhook_event.event_key},
    )

    return handler(webhook_event)


def _require_reference(webhook_event: WebhookEvent) -> str | None:
    reference = webhook_event.data.get("reference")
    if not reference:
        logger.error(
            f"{webhook_event.event_type}: payload has no reference",
            extra={"event_key": webhook_event.event_key},
        )
    return reference


def _missing_reference() -> ServiceResult:
    return ServiceResult.failure(
        "Could not extract reference from webhook",
        error_code="INVALID_WEBHOOK_PAYLOAD",
    )


# =============================================================================
# Charge Handlers
# =============================================================================


@register_handler("charge.success")
def handle_charge_success(webhook_event: WebhookEvent) -> ServiceResult:
    """Buyer's charge succeeded: move the payment into escrow."""
    reference = _require_reference(webhook_event)
    if not reference:
        return _missing_reference()

    payment_id = (
        Payment.objects.filter(gateway_reference=reference)
        .values_list("id", flat=True)
        .first()
    )
    if payment_id is None:
        logger.warning(
            "Payment not found for charge reference",
            extra={"reference": reference, "event_key": webhook_event.event_key},
        )
        return ServiceResult.failure(
            f"Payment not found for reference: {reference}",
            error_code="PAYMENT_NOT_FOUND",
        )

    data = webhook_event.data
    try:
        payment = PaymentService.confirm_payment_received(
            payment_id,
            gateway_ref=reference,
            amount_minor=data.get("amount"),
            gateway_transaction_id=str(data["id"]) if data.get("id") else None,
        )
    except BaseApplicationError as e:
        logger.warning(
            "charge.success rejected",
            extra={"reference": reference, "error_code": e.error_code},
        )
        return ServiceResult.from_exception(e)

    return ServiceResult.success(payment)


# =============================================================================
# Transfer Handlers
# =============================================================================


@register_handler("transfer.success")
def handle_transfer_success(webhook_event: WebhookEvent) -> ServiceResult:
    """Transfer delivered: complete the withdrawal."""
    reference = _require_reference(webhook_event)
    if not reference:
        return _missing_reference()

    try:
        withdrawal = WithdrawalService.complete_transfer(reference)
    except BaseApplicationError as e:
        return ServiceResult.from_exception(e)

    return ServiceResult.success(withdrawal)


@register_handler("transfer.failed", "transfer.reversed")
def handle_transfer_failed(webhook_event: WebhookEvent) -> ServiceResult:
    """Transfer failed or reversed: fail the withdrawal and refund the source."""
    reference = _require_reference(webhook_event)
    if not reference:
        return _missing_reference()

    data = webhook_event.data
    reason = (
        data.get("reason")
        or data.get("gateway_response")
        or f"Transfer {webhook_event.event_type.split('.')[-1]}"
    )

    try:
        withdrawal = WithdrawalService.fail_transfer(
            reference,
            reason,
            is_reversal=webhook_event.event_type == "transfer.reversed",
        )
    except BaseApplicationError as e:
        return ServiceResult.from_exception(e)

    return ServiceResult.success(withdrawal)
