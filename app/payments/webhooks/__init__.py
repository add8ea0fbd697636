"""
Webhook handling for payment events from Paystack.

This module provides the view and handlers for processing Paystack
webhooks. Webhooks are verified, stored idempotently, and processed
asynchronously via Celery tasks.

Usage:
    # In urls.py
    from payments.webhooks.views import paystack_webhook

    urlpatterns = [
        path("webhooks/paystack/", paystack_webhook, name="paystack_webhook"),
    ]
"""

from payments.webhooks.handlers import dispatch_webhook, register_handler
from payments.webhooks.views import paystack_webhook

__all__ = [
    "dispatch_webhook",
    "paystack_webhook",
    "register_handler",
]
