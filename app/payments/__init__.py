"""
Payments app: marketplace escrow with Paystack.

This app handles:
- Buyer payments held in escrow until delivery is confirmed
- Disputes and admin release/refund decisions
- Platform fees and seller earnings
- Seller and platform fee withdrawals via Paystack transfers
- Webhook event handling

Related apps:
    - authentication: Users and admin capability
    - listings: Items being sold
    - notifications: Payment event notifications

Usage:
    from payments.services import PaymentService, ResolutionService

    payment = PaymentService.create_payment(item.id, buyer, item.seller, item.price)
    ResolutionService.admin_release(payment.id, acting_admin=admin)
"""
