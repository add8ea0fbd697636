"""
Payment domain models.

This module contains all payment-related models:
- Payment: Buyer payment held in escrow, with its FSM
- Dispute: Append-only dispute log per payment
- Earning: Seller's net share of a released payment
- FeeRule / PlatformSettings: Fee configuration
- Withdrawal / AdminFeeWithdrawal: Payouts through Paystack
- WebhookEvent: Paystack webhook event tracking for idempotent processing
- LedgerAccount / LedgerEntry: Double-entry ledger (payments.ledger)
"""

from payments.ledger.models import LedgerAccount, LedgerEntry
from payments.models.dispute import Dispute
from payments.models.earning import Earning
from payments.models.fee_rule import FeeRule, PlatformSettings
from payments.models.payment import Payment
from payments.models.webhook_event import WebhookEvent
from payments.models.withdrawal import AdminFeeWithdrawal, BaseWithdrawal, Withdrawal

__all__ = [
    "AdminFeeWithdrawal",
    "BaseWithdrawal",
    "Dispute",
    "Earning",
    "FeeRule",
    "LedgerAccount",
    "LedgerEntry",
    "Payment",
    "PlatformSettings",
    "WebhookEvent",
    "Withdrawal",
]
