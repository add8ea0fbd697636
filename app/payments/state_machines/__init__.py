"""
State machine enums and helpers for payment models.

This module defines the state enums used by payment models with django-fsm.
"""

from payments.state_machines.states import (
    TERMINAL_PAYMENT_STATUSES,
    DisputeRole,
    DisputeStatus,
    EarningStatus,
    PaymentStatus,
    PayoutMethod,
    WebhookEventStatus,
    WithdrawalStatus,
)

__all__ = [
    "DisputeRole",
    "DisputeStatus",
    "EarningStatus",
    "PaymentStatus",
    "PayoutMethod",
    "TERMINAL_PAYMENT_STATUSES",
    "WebhookEventStatus",
    "WithdrawalStatus",
]
