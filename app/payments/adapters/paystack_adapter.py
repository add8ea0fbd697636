"""
Paystack API adapter for checkout and transfer operations.

This module provides the PaystackAdapter class which encapsulates all
Paystack API interactions. All Paystack calls should go through this
adapter to ensure consistent error handling, timeouts and observability.

Features:
- Configurable timeout on all API calls
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Webhook signature verification (HMAC-SHA512)

Configuration (via settings):
- PAYSTACK_SECRET_KEY: Paystack secret key (also signs webhooks)
- PAYSTACK_BASE_URL: API base URL (default: https://api.paystack.co)
- PAYSTACK_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- PAYSTACK_CURRENCY: Transfer currency (default: KES)
- PAYSTACK_MPESA_BANK_CODE: Bank code for M-Pesa recipients (default: MPESA)
- PAYSTACK_BANK_RECIPIENT_TYPE: Recipient type for bank accounts (default: kepss)

Usage:
    from payments.adapters import PaystackAdapter, TransferParams

    recipient = PaystackAdapter.create_transfer_recipient(
        RecipientParams(
            recipient_type="mobile_money",
            name="Jane Seller",
            account_number="0712345678",
            bank_code="MPESA",
        )
    )
    transfer = PaystackAdapter.initiate_transfer(
        TransferParams(
            amount_minor=90000,
            recipient_code=recipient.recipient_code,
            reference=f"wdrl_{withdrawal.id}",
        )
    )
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import httpx
from django.conf import settings

from payments.exceptions import (
    PaymentValidationError,
    PaystackAPIUnavailableError,
    PaystackAuthenticationError,
    PaystackInvalidRequestError,
    PaystackRateLimitError,
    PaystackTimeoutError,
)

DEFAULT_BASE_URL = "https://api.paystack.co"

# Accepts 07XXXXXXXX, 01XXXXXXXX, 2547XXXXXXXX, +2547XXXXXXXX and 7XXXXXXXX
MPESA_PHONE_PATTERN = re.compile(r"^(?:254|\+254|0)?([17]\d{8})$")

# Transfer statuses Paystack reports for transfers that will never pay out
FAILED_TRANSFER_STATUSES = frozenset({"failed", "abandoned", "reversed"})


# =============================================================================
# Helpers
# =============================================================================


def normalize_phone_number(phone: str) -> str:
    """
    Normalize a Kenyan mobile number to international form.

    Examples:
        normalize_phone_number("0712345678")     -> "254712345678"
        normalize_phone_number("+254712345678")  -> "254712345678"
        normalize_phone_number("254 712 345 678") -> "254712345678"

    Raises:
        PaymentValidationError: If the number is not a valid M-Pesa number
    """
    cleaned = re.sub(r"\s+", "", phone or "")
    match = MPESA_PHONE_PATTERN.match(cleaned)
    if not match:
        raise PaymentValidationError(
            "Invalid M-Pesa phone number",
            error_code="INVALID_PHONE_NUMBER",
            details={"phone_number": phone},
        )
    country_code = str(getattr(settings, "PHONE_COUNTRY_CODE", "254"))
    return f"{country_code}{match.group(1)}"


def to_local_msisdn(normalized_phone: str) -> str:
    """Local 0-prefixed form Paystack expects for mobile money recipients."""
    return f"0{normalized_phone[-9:]}"


def to_minor_units(amount: Decimal) -> int:
    """
    Convert a major-unit Decimal amount to integer minor units.

    Example:
        to_minor_units(Decimal("1234.50")) -> 123450
    """
    return int((Decimal(amount) * 100).to_integral_value())


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class InitializeTransactionParams:
    """
    Parameters for initializing a Paystack checkout.

    Attributes:
        email: Buyer email (Paystack requires one)
        amount_minor: Amount in minor units
        reference: Our unique payment reference
        currency: ISO 4217 currency code
        callback_url: Where Paystack redirects after checkout
        metadata: Key-value pairs echoed back in webhooks
    """

    email: str
    amount_minor: int
    reference: str
    currency: str = "KES"
    callback_url: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.amount_minor <= 0:
            raise ValueError("amount_minor must be positive")
        if not self.reference:
            raise ValueError("reference is required")


@dataclass
class TransactionResult:
    """Result of transaction initialize / verify calls."""

    reference: str
    authorization_url: str | None = None
    access_code: str | None = None
    status: str | None = None
    amount_minor: int | None = None
    transaction_id: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class RecipientParams:
    """
    Parameters for creating a Paystack transfer recipient.

    Attributes:
        recipient_type: 'mobile_money' or a bank type such as 'nuban'
        name: Account holder name
        account_number: Phone number (local form) or bank account number
        bank_code: Paystack bank code ('MPESA' for M-Pesa)
        currency: ISO 4217 currency code
    """

    recipient_type: str
    name: str
    account_number: str
    bank_code: str
    currency: str = "KES"
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class RecipientResult:
    recipient_code: str
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class TransferParams:
    """
    Parameters for initiating a Paystack transfer from balance.

    Attributes:
        amount_minor: Amount in minor units
        recipient_code: Paystack recipient code (RCP_xxx)
        reference: Our unique transfer reference (wdrl_<id> / pfw_<id>)
        reason: Narration shown to the recipient
    """

    amount_minor: int
    recipient_code: str
    reference: str
    reason: str = ""
    currency: str = "KES"
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.amount_minor <= 0:
            raise ValueError("amount_minor must be positive")
        if not self.reference:
            raise ValueError("reference is required")


@dataclass
class TransferResult:
    """
    Result from Paystack transfer initiation.

    Attributes:
        transfer_code: Paystack transfer code (TRF_xxx)
        reference: Transfer reference echoed back
        status: 'pending', 'success', 'otp', ...
    """

    transfer_code: str
    reference: str
    status: str
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Adapter
# =============================================================================


class PaystackAdapter:
    """
    Adapter for Paystack API operations.

    All methods are classmethods - no instance state is maintained.
    Thread-safe for use from Celery workers.

    Usage:
        result = PaystackAdapter.initialize_transaction(params)
        result = PaystackAdapter.initiate_transfer(params)
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _client() -> httpx.Client:
        """Build an HTTP client with auth header and timeout."""
        timeout = getattr(settings, "PAYSTACK_API_TIMEOUT_SECONDS", 10)
        return httpx.Client(
            base_url=getattr(settings, "PAYSTACK_BASE_URL", DEFAULT_BASE_URL),
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {settings.PAYSTACK_SECRET_KEY}",
                "Content-Type": "application/json",
            },
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Checkout
    # =========================================================================

    @classmethod
    def initialize_transaction(
        cls, params: InitializeTransactionParams
    ) -> TransactionResult:
        """
        Start a Paystack checkout for a payment.

        Returns:
            TransactionResult with authorization_url for the buyer

        Raises:
            PaystackError: Any gateway failure
        """
        body: dict[str, Any] = {
            "email": params.email,
            "amount": params.amount_minor,
            "reference": params.reference,
            "currency": params.currency,
            "metadata": params.metadata,
        }
        if params.callback_url:
            body["callback_url"] = params.callback_url

        data = cls._request(
            "POST",
            "/transaction/initialize",
            operation="initialize_transaction",
            json=body,
            log_context={"reference": params.reference},
        )
        return TransactionResult(
            reference=data.get("reference") or params.reference,
            authorization_url=data.get("authorization_url"),
            access_code=data.get("access_code"),
            raw_response=data,
        )

    @classmethod
    def verify_transaction(cls, reference: str) -> TransactionResult:
        """
        Look up the outcome of a checkout by reference.

        Raises:
            PaystackError: Any gateway failure
        """
        data = cls._request(
            "GET",
            f"/transaction/verify/{reference}",
            operation="verify_transaction",
            log_context={"reference": reference},
        )
        return TransactionResult(
            reference=data.get("reference") or reference,
            status=data.get("status"),
            amount_minor=data.get("amount"),
            transaction_id=str(data["id"]) if data.get("id") is not None else None,
            raw_response=data,
        )

    # =========================================================================
    # Transfers
    # =========================================================================

    @classmethod
    def create_transfer_recipient(cls, params: RecipientParams) -> RecipientResult:
        """
        Register a payout destination with Paystack.

        Raises:
            PaystackInvalidRequestError: Paystack rejected the destination
            PaystackError: Any other gateway failure
        """
        data = cls._request(
            "POST",
            "/transferrecipient",
            operation="create_transfer_recipient",
            json={
                "type": params.recipient_type,
                "name": params.name,
                "account_number": params.account_number,
                "bank_code": params.bank_code,
                "currency": params.currency,
                "metadata": params.metadata,
            },
            log_context={"recipient_type": params.recipient_type},
        )
        recipient_code = data.get("recipient_code")
        if not recipient_code:
            raise PaystackInvalidRequestError(
                "Paystack did not return a recipient code",
                details={"response": data},
            )
        return RecipientResult(recipient_code=recipient_code, raw_response=data)

    @classmethod
    def initiate_transfer(cls, params: TransferParams) -> TransferResult:
        """
        Send money from the Paystack balance to a recipient.

        A transfer that Paystack immediately reports as failed or abandoned
        is raised as PaystackInvalidRequestError so callers compensate.

        Raises:
            PaystackInvalidRequestError: Transfer rejected
            PaystackError: Any other gateway failure
        """
        data = cls._request(
            "POST",
            "/transfer",
            operation="initiate_transfer",
            json={
                "source": "balance",
                "amount": params.amount_minor,
                "recipient": params.recipient_code,
                "reference": params.reference,
                "reason": params.reason,
                "currency": params.currency,
                "metadata": params.metadata,
            },
            log_context={
                "reference": params.reference,
                "amount_minor": params.amount_minor,
            },
        )
        status = data.get("status") or ""
        if status in FAILED_TRANSFER_STATUSES:
            raise PaystackInvalidRequestError(
                data.get("gateway_response") or f"Transfer {status}",
                details={"reference": params.reference, "transfer_status": status},
            )
        return TransferResult(
            transfer_code=data.get("transfer_code") or "",
            reference=data.get("reference") or params.reference,
            status=status,
            raw_response=data,
        )

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @staticmethod
    def verify_webhook_signature(payload: bytes, signature: str | None) -> bool:
        """
        Check the x-paystack-signature header of a webhook delivery.

        Paystack signs the raw body with HMAC-SHA512 using the secret key.
        """
        if not signature:
            return False
        expected = hmac.new(
            settings.PAYSTACK_SECRET_KEY.encode("utf-8"),
            payload,
            hashlib.sha512,
        ).hexdigest()
        return hmac.compare_digest(expected, signature)

    # =========================================================================
    # HTTP
    # =========================================================================

    @classmethod
    def _request(
        cls,
        method: str,
        path: str,
        operation: str,
        json: dict[str, Any] | None = None,
        log_context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Perform one API call and return the ``data`` object of the response.

        Raises:
            PaystackError subclasses for every failure mode
        """
        logger = cls.get_logger()
        log_context = {"operation": operation, **(log_context or {})}

        start_time = time.time()
        logger.info("Starting Paystack operation", extra=log_context)

        try:
            with cls._client() as client:
                response = client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Paystack request timed out",
                extra={**log_context, "duration_ms": duration_ms},
            )
            raise PaystackTimeoutError(
                "Paystack request timed out. Please retry.",
                details={"error": str(e)},
            )
        except httpx.HTTPError as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Connection error to Paystack",
                extra={**log_context, "duration_ms": duration_ms},
                exc_info=True,
            )
            raise PaystackAPIUnavailableError(
                "Could not connect to Paystack. Please retry.",
                details={"error": str(e)},
            )

        duration_ms = (time.time() - start_time) * 1000
        body = cls._parse_body(response)

        if response.is_success and body.get("status"):
            logger.info(
                "Paystack operation completed",
                extra={
                    **log_context,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
            return body.get("data") or {}

        cls._handle_error_response(response, body, log_context, duration_ms)
        raise  # Never reached, but satisfies type checker

    @staticmethod
    def _parse_body(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    @classmethod
    def _handle_error_response(
        cls,
        response: httpx.Response,
        body: dict[str, Any],
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate a failed Paystack response to a domain exception.

        The Paystack ``message`` is kept verbatim as the exception message.

        Raises:
            PaystackAuthenticationError: 401
            PaystackRateLimitError: 429
            PaystackAPIUnavailableError: 5xx
            PaystackInvalidRequestError: Other 4xx, or a 2xx with status false
        """
        logger = cls.get_logger()
        status_code = response.status_code
        message = body.get("message") or f"Paystack returned HTTP {status_code}"
        log_context = {
            **log_context,
            "status_code": status_code,
            "duration_ms": duration_ms,
            "paystack_message": message,
        }

        if status_code == 401:
            logger.critical(
                "Paystack authentication failed - check secret key",
                extra=log_context,
            )
            raise PaystackAuthenticationError(message, http_status_code=status_code)

        if status_code == 429:
            logger.warning("Rate limited by Paystack", extra=log_context)
            raise PaystackRateLimitError(message, http_status_code=status_code)

        if status_code >= 500:
            logger.error("Paystack API error", extra=log_context)
            raise PaystackAPIUnavailableError(message, http_status_code=status_code)

        logger.error("Paystack rejected request", extra=log_context)
        raise PaystackInvalidRequestError(message, http_status_code=status_code)

