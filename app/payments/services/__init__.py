"""
Payment services for coordinating payment operations.

This module provides:
- FeeCalculator: Platform fee for a gross amount
- PaymentService: Payment creation, checkout and escrow confirmation
- DisputeService: Filing disputes and the admin attention list
- ResolutionService: Admin release and refund of escrowed payments
- WithdrawalService: Seller and platform fee withdrawals

Usage:
    from payments.services import PaymentService, ResolutionService

    # Create a payment for an item
    payment = PaymentService.create_payment(
        item_id=item.id, buyer=buyer, seller=item.seller, amount=item.price
    )

    # Release a disputed payment
    outcome = ResolutionService.admin_release(payment.id, acting_admin=admin)

    # Withdraw a seller's balance to M-Pesa
    from payments.services import PayoutDestination, WithdrawalService

    withdrawal = WithdrawalService.request_seller_withdrawal(
        user=seller,
        amount=Decimal("500.00"),
        destination=PayoutDestination(phone_number="0712345678"),
    )
"""

from payments.services.dispute_service import DisputeService
from payments.services.fee_calculator import FeeBreakdown, FeeCalculator, calculate_fee
from payments.services.payment_service import PaymentService
from payments.services.resolution_service import (
    RefundOutcome,
    ReleaseOutcome,
    ResolutionService,
)
from payments.services.withdrawal_service import PayoutDestination, WithdrawalService

__all__ = [
    "DisputeService",
    "FeeBreakdown",
    "FeeCalculator",
    "PaymentService",
    "PayoutDestination",
    "RefundOutcome",
    "ReleaseOutcome",
    "ResolutionService",
    "WithdrawalService",
    "calculate_fee",
]
