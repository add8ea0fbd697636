"""
Withdrawal service for money leaving the platform through Paystack.

This module provides the WithdrawalService class which handles both payout
flows:
- Sellers withdrawing their available balance (Withdrawal)
- Admins withdrawing the platform fee pool (AdminFeeWithdrawal)

Both flows share a debit-call-compensate pattern:
1. Phase 1: Create the PENDING record and debit the ledger in one transaction
2. Phase 2: Call Paystack transferrecipient + transfer (outside transaction)
3. Phase 3: Store gateway identifiers and move the record to PROCESSING

If Paystack rejects the transfer, the debit is reversed and the record is
marked FAILED in a compensating transaction before PayoutGatewayError is
raised. If Paystack accepted the transfer but the phase 3 write fails,
the record stays PENDING with its debit in place and is logged for
reconciliation; the transfer webhook settles it later.

Usage:
    from payments.services import PayoutDestination, WithdrawalService

    withdrawal = WithdrawalService.request_seller_withdrawal(
        user=seller,
        amount=Decimal("900.00"),
        payout_method=PayoutMethod.MPESA,
        destination=PayoutDestination(phone_number="0712345678"),
    )

    # From transfer webhooks
    WithdrawalService.complete_transfer(f"wdrl_{withdrawal.id}")
    WithdrawalService.fail_transfer(f"wdrl_{withdrawal.id}", "Account blocked")
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction

from core.services import BaseService

from authentication.capabilities import require_admin
from notifications.models import NotificationType
from notifications.services import NotificationService
from payments.adapters import (
    PaystackAdapter,
    RecipientParams,
    TransferParams,
    normalize_phone_number,
    to_local_msisdn,
    to_minor_units,
)
from payments.exceptions import (
    PaymentNotFoundError,
    PaymentValidationError,
    PaystackError,
    PayoutGatewayError,
)
from payments.ledger import EntryType, LedgerAccount, ledger, to_decimal_amount
from payments.models import AdminFeeWithdrawal, BaseWithdrawal, Earning, Withdrawal
from payments.state_machines import EarningStatus, PayoutMethod, WithdrawalStatus
from payments.state_machines.transitions import apply_transition

if TYPE_CHECKING:
    from authentication.models import User


# =============================================================================
# Types
# =============================================================================


@dataclass
class PayoutDestination:
    """
    Where a withdrawal is paid to.

    M-Pesa withdrawals use phone_number; bank withdrawals require
    bank_code and account_number.
    """

    phone_number: str | None = None
    bank_code: str | None = None
    account_number: str | None = None
    account_name: str | None = None
    bank_name: str | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> PayoutDestination:
        data = data or {}
        return cls(**{key: data.get(key) for key in cls.__dataclass_fields__})


# =============================================================================
# Withdrawal Service
# =============================================================================


class WithdrawalService(BaseService):
    """
    Service for seller and platform fee withdrawals.

    Methods:
        request_seller_withdrawal: Seller cashes out their balance
        request_platform_fee_withdrawal: Admin cashes out the fee pool
        complete_transfer: Apply a transfer.success webhook
        fail_transfer: Apply a transfer.failed / transfer.reversed webhook

    The Paystack adapter can be swapped for tests with set_adapter().
    """

    _adapter: type | None = None

    @classmethod
    def get_adapter(cls) -> type:
        """Get the Paystack adapter class."""
        return cls._adapter or PaystackAdapter

    @classmethod
    def set_adapter(cls, adapter: type | None) -> None:
        """Set the Paystack adapter class (for testing)."""
        cls._adapter = adapter

    # ==========================================================================
    # Requests
    # ==========================================================================

    @classmethod
    def request_seller_withdrawal(
        cls,
        user: User,
        amount: Decimal | None = None,
        payout_method: str = PayoutMethod.MPESA,
        destination: PayoutDestination | None = None,
    ) -> Withdrawal:
        """
        Withdraw from a seller's available balance.

        When amount is omitted the whole available balance is withdrawn.
        For M-Pesa without a phone number the user's payout phone is used.

        Raises:
            PaymentValidationError: Bad amount or destination
            InsufficientBalance: Balance lower than the amount
            PayoutGatewayError: Paystack rejected the transfer (compensated)
        """
        destination = destination or PayoutDestination()
        if payout_method == PayoutMethod.MPESA and not destination.phone_number:
            destination.phone_number = user.payout_phone_number

        currency = settings.PAYSTACK_CURRENCY
        if amount is None:
            amount = ledger.get_user_balance(user.pk, currency).amount

        return cls._execute_payout(
            model_class=Withdrawal,
            owner={"user": user},
            source_account=ledger.user_balance_account(user.pk, currency),
            amount=amount,
            payout_method=payout_method,
            destination=destination,
            recipient_name=destination.account_name or user.get_full_name(),
            reserve_earnings_for=user,
            notify=user,
        )

    @classmethod
    def request_platform_fee_withdrawal(
        cls,
        admin: User,
        amount: Decimal,
        payout_method: str,
        destination: PayoutDestination,
    ) -> AdminFeeWithdrawal:
        """
        Withdraw from the platform fee pool.

        Raises:
            PermissionDeniedError: If admin is not an active admin
            PaymentValidationError: Bad amount or destination
            InsufficientBalance: Fee pool lower than the amount
            PayoutGatewayError: Paystack rejected the transfer (compensated)
        """
        principal = require_admin(admin)

        return cls._execute_payout(
            model_class=AdminFeeWithdrawal,
            owner={"admin": principal.user},
            source_account=ledger.fees_account(settings.PAYSTACK_CURRENCY),
            amount=amount,
            payout_method=payout_method,
            destination=destination,
            recipient_name=destination.account_name or "Platform fees",
            reserve_earnings_for=None,
            notify=principal.user,
        )

    # ==========================================================================
    # Shared Payout Flow
    # ==========================================================================

    @classmethod
    def _execute_payout(
        cls,
        model_class: type[BaseWithdrawal],
        owner: dict,
        source_account: LedgerAccount,
        amount: Decimal,
        payout_method: str,
        destination: PayoutDestination,
        recipient_name: str,
        reserve_earnings_for: User | None,
        notify: User,
    ) -> BaseWithdrawal:
        """
        Debit, call Paystack, compensate on failure.

        Validation happens before anything is written.
        """
        amount = cls._validate_amount(amount)
        destination = cls._validate_destination(payout_method, destination)

        # Phase 1: record + ledger debit (+ earnings reservation) atomically
        with transaction.atomic():
            withdrawal = model_class.objects.create(
                **owner,
                amount=amount,
                currency=source_account.currency,
                payout_method=payout_method,
                phone_number=destination.phone_number or "",
                bank_code=destination.bank_code or "",
                account_number=destination.account_number or "",
                account_name=destination.account_name or "",
                bank_name=destination.bank_name or "",
            )
            ledger.transfer(
                from_account_id=source_account.id,
                to_account_id=ledger.gateway_account(source_account.currency).id,
                amount=amount,
                entry_type=EntryType.WITHDRAWAL,
                idempotency_key=f"{withdrawal.reference}:debit",
                reference_type=model_class.__name__.lower(),
                reference_id=withdrawal.id,
                description=f"Withdrawal {withdrawal.reference}",
            )
            if reserve_earnings_for is not None:
                cls._reserve_earnings(withdrawal, reserve_earnings_for)

        cls.get_logger().info(
            "Phase 1 complete: withdrawal recorded and debited",
            extra={
                "withdrawal_id": str(withdrawal.id),
                "reference": withdrawal.reference,
                "amount": str(amount),
                "payout_method": payout_method,
            },
        )

        # Phase 2: Paystack (OUTSIDE transaction)
        adapter = cls.get_adapter()
        try:
            recipient = adapter.create_transfer_recipient(
                cls._recipient_params(withdrawal, recipient_name)
            )
            transfer = adapter.initiate_transfer(
                TransferParams(
                    amount_minor=to_minor_units(amount),
                    recipient_code=recipient.recipient_code,
                    reference=withdrawal.reference,
                    reason=f"Withdrawal {withdrawal.reference}",
                    currency=withdrawal.currency,
                )
            )
        except PaystackError as e:
            cls.get_logger().error(
                f"Paystack rejected withdrawal: {type(e).__name__}",
                extra={
                    "withdrawal_id": str(withdrawal.id),
                    "error": e.message,
                    "is_retryable": e.is_retryable,
                },
            )
            cls._compensate(withdrawal, e.message)
            raise PayoutGatewayError(
                e.message,
                details={
                    "withdrawal_id": str(withdrawal.id),
                    "gateway_error_code": e.error_code,
                },
            ) from e

        # Phase 3: store gateway identifiers
        try:
            with transaction.atomic():
                locked = model_class.objects.select_for_update().get(pk=withdrawal.pk)
                if locked.status == WithdrawalStatus.PENDING:
                    locked.start_processing(
                        recipient_code=recipient.recipient_code,
                        transfer_code=transfer.transfer_code,
                        transfer_reference=transfer.reference,
                    )
                    locked.save()
                else:
                    cls.get_logger().info(
                        "Withdrawal advanced by webhook before phase 3",
                        extra={
                            "withdrawal_id": str(withdrawal.id),
                            "current_status": locked.status,
                        },
                    )
            withdrawal = locked
        except Exception:
            # Paystack has the transfer but our record stays PENDING
            cls.get_logger().error(
                "Failed to store transfer after Paystack success - reconciliation needed",
                extra={
                    "withdrawal_id": str(withdrawal.id),
                    "reference": withdrawal.reference,
                    "recipient_code": recipient.recipient_code,
                    "transfer_code": transfer.transfer_code,
                },
                exc_info=True,
            )
            return withdrawal

        NotificationService.notify_on_commit(
            recipient=notify,
            type_key=NotificationType.WITHDRAWAL_INITIATED,
            title="Withdrawal on its way",
            body=f"{withdrawal.currency} {withdrawal.amount} is being sent to you.",
            withdrawal_id=withdrawal.id,
        )

        cls.get_logger().info(
            "Withdrawal submitted to Paystack",
            extra={
                "withdrawal_id": str(withdrawal.id),
                "transfer_code": transfer.transfer_code,
                "transfer_status": transfer.status,
            },
        )
        return withdrawal

    @classmethod
    def _compensate(cls, withdrawal: BaseWithdrawal, reason: str) -> None:
        """Reverse the phase 1 debit and fail the record."""
        try:
            cls._fail_locked(type(withdrawal), withdrawal.pk, reason)
        except Exception:
            cls.get_logger().critical(
                "Withdrawal compensation failed - ledger debit not reversed",
                extra={
                    "withdrawal_id": str(withdrawal.id),
                    "withdrawal_type": type(withdrawal).__name__,
                    "amount": str(withdrawal.amount),
                    "reason": reason,
                },
                exc_info=True,
            )
            raise

    # ==========================================================================
    # Webhook Outcomes
    # ==========================================================================

    @classmethod
    def complete_transfer(cls, reference: str) -> BaseWithdrawal:
        """
        Mark a withdrawal as paid out. Terminal records are returned unchanged.

        Raises:
            PaymentNotFoundError: If no withdrawal has this reference
        """
        model_class, pk = cls._resolve_reference(reference)

        with transaction.atomic():
            withdrawal = cls._lock_withdrawal(model_class, pk, reference)
            if withdrawal.is_terminal:
                cls.get_logger().info(
                    "Transfer already settled, skipping completion",
                    extra={"reference": reference, "status": withdrawal.status},
                )
                return withdrawal

            if withdrawal.status == WithdrawalStatus.PENDING:
                # Phase 3 never stored the identifiers
                apply_transition(
                    withdrawal, "start_processing", transfer_reference=reference
                )
            apply_transition(withdrawal, "complete")
            withdrawal.save()

            if isinstance(withdrawal, Withdrawal):
                Earning.objects.filter(
                    withdrawal=withdrawal, status=EarningStatus.WITHDRAWAL_PENDING
                ).update(status=EarningStatus.WITHDRAWN)

            NotificationService.notify_on_commit(
                recipient=cls._owner(withdrawal),
                type_key=NotificationType.WITHDRAWAL_COMPLETED,
                title="Withdrawal completed",
                body=f"{withdrawal.currency} {withdrawal.amount} was paid out.",
                withdrawal_id=withdrawal.id,
                idempotency_key=f"{reference}:completed",
            )

        cls.get_logger().info(
            "Withdrawal completed",
            extra={"withdrawal_id": str(withdrawal.id), "reference": reference},
        )
        return withdrawal

    @classmethod
    def fail_transfer(
        cls, reference: str, reason: str | None = None, is_reversal: bool = False
    ) -> BaseWithdrawal:
        """
        Mark a withdrawal as failed and return its money to the source.

        A reversal also undoes a completed withdrawal: the source is
        re-credited and its earnings become available again. A plain failure
        reported for a completed record changes nothing and is logged for
        reconciliation. Failed records are returned unchanged.

        Raises:
            PaymentNotFoundError: If no withdrawal has this reference
        """
        model_class, pk = cls._resolve_reference(reference)
        withdrawal = cls._fail_locked(
            model_class, pk, reason or "Transfer failed", is_reversal=is_reversal
        )

        cls.get_logger().info(
            "Withdrawal failed",
            extra={
                "withdrawal_id": str(withdrawal.id),
                "reference": reference,
                "status": withdrawal.status,
            },
        )
        return withdrawal

    @classmethod
    def _fail_locked(
        cls,
        model_class: type[BaseWithdrawal],
        pk: uuid.UUID,
        reason: str,
        is_reversal: bool = False,
    ) -> BaseWithdrawal:
        with transaction.atomic():
            withdrawal = cls._lock_withdrawal(model_class, pk, str(pk))
            if withdrawal.status == WithdrawalStatus.FAILED:
                return withdrawal

            if withdrawal.status == WithdrawalStatus.COMPLETED:
                if not is_reversal:
                    cls.get_logger().error(
                        "Transfer failure reported for completed withdrawal - reconciliation needed",
                        extra={
                            "withdrawal_id": str(withdrawal.id),
                            "reference": withdrawal.reference,
                            "amount": str(withdrawal.amount),
                            "reason": reason,
                        },
                    )
                    return withdrawal
                transition_name = "reverse"
                reserved_status = EarningStatus.WITHDRAWN
            else:
                transition_name = "fail"
                reserved_status = EarningStatus.WITHDRAWAL_PENDING

            source_account = cls._source_account(withdrawal)
            ledger.transfer(
                from_account_id=ledger.gateway_account(withdrawal.currency).id,
                to_account_id=source_account.id,
                amount=withdrawal.amount,
                entry_type=EntryType.WITHDRAWAL_REVERSAL,
                idempotency_key=f"{withdrawal.reference}:reversal",
                reference_type=model_class.__name__.lower(),
                reference_id=withdrawal.id,
                description=f"Reversal of withdrawal {withdrawal.reference}",
            )

            apply_transition(withdrawal, transition_name, reason)
            withdrawal.save()

            if isinstance(withdrawal, Withdrawal):
                Earning.objects.filter(
                    withdrawal=withdrawal, status=reserved_status
                ).update(status=EarningStatus.AVAILABLE, withdrawal=None)

            if transition_name == "reverse":
                cls.get_logger().warning(
                    "Completed withdrawal reversed by Paystack, source re-credited",
                    extra={
                        "withdrawal_id": str(withdrawal.id),
                        "reference": withdrawal.reference,
                        "amount": str(withdrawal.amount),
                    },
                )

            NotificationService.notify_on_commit(
                recipient=cls._owner(withdrawal),
                type_key=NotificationType.WITHDRAWAL_FAILED,
                title="Withdrawal failed",
                body=(
                    f"{withdrawal.currency} {withdrawal.amount} was returned to the "
                    f"balance: {reason}"
                ),
                withdrawal_id=withdrawal.id,
                idempotency_key=f"{withdrawal.reference}:failed",
            )
        return withdrawal

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @staticmethod
    def _validate_amount(amount) -> Decimal:
        try:
            value = to_decimal_amount(amount)
        except ValueError as e:
            raise PaymentValidationError(
                str(e),
                error_code="INVALID_AMOUNT",
                details={"amount": repr(amount)},
            )
        # to_decimal_amount rounds; sub-cent input is rejected instead
        if Decimal(amount) != value:
            raise PaymentValidationError(
                "Amount cannot have more than 2 decimal places",
                error_code="INVALID_AMOUNT",
                details={"amount": str(amount)},
            )
        minimum = Decimal(str(settings.PAYMENTS_MIN_WITHDRAWAL_AMOUNT))
        if value < minimum:
            raise PaymentValidationError(
                f"Minimum withdrawal amount is {minimum}",
                error_code="AMOUNT_BELOW_MINIMUM",
                details={"amount": str(value), "minimum": str(minimum)},
            )
        return value

    @staticmethod
    def _validate_destination(
        payout_method: str, destination: PayoutDestination
    ) -> PayoutDestination:
        if payout_method == PayoutMethod.MPESA:
            if not destination.phone_number:
                raise PaymentValidationError(
                    "A phone number is required for M-Pesa withdrawals",
                    error_code="PHONE_NUMBER_REQUIRED",
                )
            destination.phone_number = normalize_phone_number(destination.phone_number)
            return destination

        if payout_method == PayoutMethod.BANK_ACCOUNT:
            missing = [
                name
                for name in ("bank_code", "account_number")
                if not getattr(destination, name)
            ]
            if missing:
                raise PaymentValidationError(
                    "Bank withdrawals require bank_code and account_number",
                    error_code="BANK_DETAILS_REQUIRED",
                    details={"missing": missing},
                )
            return destination

        raise PaymentValidationError(
            f"Unsupported payout method: {payout_method}",
            error_code="INVALID_PAYOUT_METHOD",
            details={"payout_method": payout_method},
        )

    @staticmethod
    def _recipient_params(withdrawal: BaseWithdrawal, name: str) -> RecipientParams:
        if withdrawal.payout_method == PayoutMethod.MPESA:
            return RecipientParams(
                recipient_type="mobile_money",
                name=name,
                account_number=to_local_msisdn(withdrawal.phone_number),
                bank_code=settings.PAYSTACK_MPESA_BANK_CODE,
                currency=withdrawal.currency,
            )
        return RecipientParams(
            recipient_type=settings.PAYSTACK_BANK_RECIPIENT_TYPE,
            name=name,
            account_number=withdrawal.account_number,
            bank_code=withdrawal.bank_code,
            currency=withdrawal.currency,
        )

    @staticmethod
    def _reserve_earnings(withdrawal: Withdrawal, seller: User) -> None:
        """
        Allocate the seller's oldest available earnings to the withdrawal.

        The earning the amount ends in is split: the allocated part is
        reserved and the remainder stays AVAILABLE as a new record.
        """
        remaining = withdrawal.amount
        earnings = (
            Earning.objects.select_for_update()
            .filter(seller=seller, status=EarningStatus.AVAILABLE, withdrawal__isnull=True)
            .order_by("created_at", "id")
        )
        for earning in earnings:
            if remaining <= 0:
                break
            if earning.amount > remaining:
                Earning.objects.create(
                    seller_id=earning.seller_id,
                    payment_id=earning.payment_id,
                    split_from=earning,
                    item_id=earning.item_id,
                    item_title=earning.item_title,
                    amount=earning.amount - remaining,
                    status=EarningStatus.AVAILABLE,
                )
                earning.amount = remaining
            earning.status = EarningStatus.WITHDRAWAL_PENDING
            earning.withdrawal = withdrawal
            earning.save(update_fields=["amount", "status", "withdrawal", "updated_at"])
            remaining -= earning.amount

    @staticmethod
    def _source_account(withdrawal: BaseWithdrawal) -> LedgerAccount:
        if isinstance(withdrawal, Withdrawal):
            return ledger.user_balance_account(withdrawal.user_id, withdrawal.currency)
        return ledger.fees_account(withdrawal.currency)

    @staticmethod
    def _owner(withdrawal: BaseWithdrawal) -> User:
        if isinstance(withdrawal, Withdrawal):
            return withdrawal.user
        return withdrawal.admin

    @staticmethod
    def _resolve_reference(reference: str) -> tuple[type[BaseWithdrawal], uuid.UUID]:
        """Map ``wdrl_<id>`` / ``pfw_<id>`` to the model and primary key."""
        prefix, _, raw_id = (reference or "").partition("_")
        model_class = {
            Withdrawal.reference_prefix: Withdrawal,
            AdminFeeWithdrawal.reference_prefix: AdminFeeWithdrawal,
        }.get(prefix)
        try:
            pk = uuid.UUID(raw_id)
        except ValueError:
            pk = None
        if model_class is None or pk is None:
            raise PaymentNotFoundError(
                f"Unknown transfer reference: {reference}",
                error_code="WITHDRAWAL_NOT_FOUND",
                details={"reference": reference},
            )
        return model_class, pk

    @staticmethod
    def _lock_withdrawal(
        model_class: type[BaseWithdrawal], pk: uuid.UUID, reference: str
    ) -> BaseWithdrawal:
        withdrawal = model_class.objects.select_for_update().filter(pk=pk).first()
        if withdrawal is None:
            raise PaymentNotFoundError(
                f"Withdrawal for reference {reference} not found",
                error_code="WITHDRAWAL_NOT_FOUND",
                details={"reference": reference},
            )
        return withdrawal


__all__ = [
    "PayoutDestination",
    "WithdrawalService",
]
