"""
Payments app configuration.

This app provides escrow payment processing:
- Double-entry bookkeeping ledger
- Payment and withdrawal state machines
- Paystack integration and webhook handling
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
