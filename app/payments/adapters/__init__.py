"""
Payment adapters for external services.

This module provides the adapter for Paystack. All external payment API
calls should go through it to ensure consistent error handling, timeouts
and observability.

Usage:
    from payments.adapters import PaystackAdapter, TransferParams

    result = PaystackAdapter.initiate_transfer(
        TransferParams(
            amount_minor=90000,
            recipient_code="RCP_xxx",
            reference=f"wdrl_{withdrawal.id}",
        )
    )
"""

from payments.adapters.paystack_adapter import (
    InitializeTransactionParams,
    PaystackAdapter,
    RecipientParams,
    RecipientResult,
    TransactionResult,
    TransferParams,
    TransferResult,
    normalize_phone_number,
    to_local_msisdn,
    to_minor_units,
)

__all__ = [
    "InitializeTransactionParams",
    "PaystackAdapter",
    "RecipientParams",
    "RecipientResult",
    "TransactionResult",
    "TransferParams",
    "TransferResult",
    "normalize_phone_number",
    "to_local_msisdn",
    "to_minor_units",
]
