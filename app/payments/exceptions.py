"""
Payment-specific exceptions for escrow, dispute and payout operations.

Every payment exception also inherits from one of the generic categories in
core.exceptions, so callers can catch either the payment-specific class or
the broad category (NotFoundError, ConflictError, ...) and API views can map
any of them to an HTTP status via ``http_status``.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - Payment/dispute/withdrawal lookup failures (404)
    ├── PaymentValidationError - Invalid amounts, phones, destinations (400)
    └── PaymentProcessingError - Gateway failures (502)
        └── PaystackError - Base for all Paystack errors
            ├── PaystackAuthenticationError - Bad secret key (permanent)
            ├── PaystackInvalidRequestError - Rejected request params (permanent)
            ├── PaystackRateLimitError - Rate limited (transient)
            ├── PaystackAPIUnavailableError - 5xx / network failures (transient)
            └── PaystackTimeoutError - Request timeout (transient)
        └── PayoutGatewayError - Withdrawal failed at the gateway and was reversed

    StaleRecordError - Optimistic locking conflict (inherits ConflictError)
    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)

Usage:
    from payments.exceptions import InvalidStateTransitionError

    try:
        payment.release(breakdown)
    except TransitionNotAllowed:
        raise InvalidStateTransitionError(
            f"Cannot release payment from '{payment.status}' status",
            details={"current_status": payment.status, "transition": "release"},
        )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    Example:
        try:
            ResolutionService.admin_release(payment_id, admin)
        except PaymentError as e:
            logger.error(f"Payment operation failed: {e}")
            return Response(e.to_dict(), status=e.http_status)
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError, NotFoundError):
    """
    Raised when a payment entity cannot be found.

    Use for Payment, Dispute, Withdrawal and AdminFeeWithdrawal lookups.

    Example:
        payment = Payment.objects.filter(id=payment_id).first()
        if not payment:
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)}
            )
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"


class PaymentValidationError(PaymentError, ValidationError):
    """
    Raised when payment input validation fails.

    Use for:
    - Amount below the withdrawal minimum or different from the item price
    - Malformed M-Pesa phone numbers
    - Missing bank destination fields
    - Item and payment mismatches
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class PaymentProcessingError(PaymentError, ExternalServiceError):
    """
    Raised when payment processing fails at the gateway.

    Example:
        raise PaymentProcessingError(
            "Transfer could not be initiated",
            error_code="TRANSFER_FAILED",
            details={"withdrawal_id": str(withdrawal.id)}
        )
    """

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"


# =============================================================================
# Paystack-Specific Exceptions
# =============================================================================


class PaystackError(PaymentProcessingError):
    """
    Base exception for all Paystack-related errors.

    Attributes:
        http_status_code: Status returned by Paystack, when a response arrived
        is_retryable: Whether the operation can be retried

    The gateway's own message is kept verbatim in ``message`` so it can be
    stored as a withdrawal failure reason.
    """

    default_error_code: str = "PAYSTACK_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        http_status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if http_status_code is not None:
            details["paystack_status"] = http_status_code
        super().__init__(message, error_code=error_code, details=details)
        self.http_status_code = http_status_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class PaystackAuthenticationError(PaystackError):
    """Paystack rejected the secret key (HTTP 401)."""

    default_error_code: str = "PAYSTACK_AUTHENTICATION_FAILED"


class PaystackInvalidRequestError(PaystackError):
    """
    Paystack rejected the request parameters.

    Raised for 4xx responses and for 2xx responses whose body carries
    ``"status": false`` (for example an unknown bank code or a balance
    too low to cover a transfer).
    """

    default_error_code: str = "PAYSTACK_INVALID_REQUEST"


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class PaystackRateLimitError(PaystackError):
    """Rate limited by the Paystack API (HTTP 429)."""

    default_error_code: str = "PAYSTACK_RATE_LIMITED"
    is_retryable: bool = True


class PaystackAPIUnavailableError(PaystackError):
    """
    Paystack API is temporarily unavailable.

    Covers 5xx responses, connection errors and DNS failures.
    """

    default_error_code: str = "PAYSTACK_UNAVAILABLE"
    is_retryable: bool = True


class PaystackTimeoutError(PaystackError):
    """
    Paystack API call timed out.

    IMPORTANT: The operation may have succeeded on Paystack's side.
    Transfers carry a unique reference so a retried transfer with the
    same reference is rejected as a duplicate rather than paid twice.
    """

    default_error_code: str = "PAYSTACK_TIMEOUT"
    is_retryable: bool = True


class PayoutGatewayError(PaymentProcessingError):
    """
    Raised after a withdrawal failed at the gateway and was compensated.

    By the time this is raised the ledger debit has been reversed and the
    withdrawal record is marked failed. ``details`` carries the withdrawal
    id so clients can show the failed record.
    """

    default_error_code: str = "PAYOUT_GATEWAY_ERROR"


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class StaleRecordError(ConflictError):
    """
    Raised when optimistic locking detects concurrent modification.

    The record was modified by another process between read and update.
    The caller should retry the operation with fresh data or abort.
    """

    default_error_code: str = "STALE_RECORD"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    This exception wraps django-fsm's TransitionNotAllowed to provide
    our standard error format. A second resolution attempt on a payment
    that was already released or refunded ends here.

    Attributes:
        details: Contains current_status and the attempted transition
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"
