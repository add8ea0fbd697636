"""
State enums for payment models.

This module defines all state enums used by payment models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Payment States:
    initiated → paid_to_platform → released_to_seller_balance
    initiated → paid_to_platform → refunded
    initiated → failed
    initiated → cancelled

    "Disputed" and "needs admin review" are not states: a dispute sets the
    Payment.is_disputed flag and admin review is a query over paid payments.

Withdrawal States (seller and platform fee withdrawals):
    pending → processing → completed
    pending → failed (gateway rejected the transfer request)
    processing → failed (transfer.failed / transfer.reversed webhook)

Dispute Status:
    open → resolved_refund
    open → resolved_release
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    States for the Payment model lifecycle.

    Terminal states: RELEASED_TO_SELLER_BALANCE, REFUNDED, FAILED, CANCELLED

    State Flow:
        INITIATED → PAID_TO_PLATFORM → RELEASED_TO_SELLER_BALANCE
        INITIATED → PAID_TO_PLATFORM → REFUNDED

    Failure Flow:
        INITIATED → FAILED
        INITIATED → CANCELLED
    """

    INITIATED = "initiated", "Initiated"
    PAID_TO_PLATFORM = "paid_to_platform", "Paid to Platform"
    RELEASED_TO_SELLER_BALANCE = (
        "released_to_seller_balance",
        "Released to Seller Balance",
    )
    REFUNDED = "refunded", "Refunded"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


TERMINAL_PAYMENT_STATUSES = frozenset(
    {
        PaymentStatus.RELEASED_TO_SELLER_BALANCE,
        PaymentStatus.REFUNDED,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
    }
)


class WithdrawalStatus(models.TextChoices):
    """
    States shared by seller withdrawals and platform fee withdrawals.

    Terminal states: COMPLETED, FAILED

    State Flow:
        PENDING → PROCESSING → COMPLETED
        PENDING → FAILED
        PROCESSING → FAILED
        COMPLETED → FAILED (transfer reversed)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class PayoutMethod(models.TextChoices):
    """Destination rails supported for withdrawals."""

    MPESA = "mpesa", "M-Pesa"
    BANK_ACCOUNT = "bank_account", "Bank Account"


class EarningStatus(models.TextChoices):
    """
    Lifecycle of a seller earning.

    AVAILABLE → WITHDRAWAL_PENDING → WITHDRAWN
    WITHDRAWAL_PENDING → AVAILABLE (withdrawal failed)
    """

    AVAILABLE = "available", "Available"
    WITHDRAWAL_PENDING = "withdrawal_pending", "Withdrawal Pending"
    WITHDRAWN = "withdrawn", "Withdrawn"


class DisputeStatus(models.TextChoices):
    """Status of a dispute record."""

    OPEN = "open", "Open"
    RESOLVED_REFUND = "resolved_refund", "Resolved (Refund)"
    RESOLVED_RELEASE = "resolved_release", "Resolved (Release)"


class DisputeRole(models.TextChoices):
    """Which party filed a dispute."""

    BUYER = "buyer", "Buyer"
    SELLER = "seller", "Seller"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    Tracks the lifecycle of webhook event processing for idempotency.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


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
