"""
Platform fee calculation.

The fee for a payment is a percentage of the gross amount. The percentage
comes from the highest-priority active FeeRule whose amount range contains
the gross amount, or from the platform default when no rule matches.

Rounding:
    fee = round_half_up(gross * percentage / 100, 2 places)
    net = gross - fee

so fee + net always equals gross exactly and 0 <= fee <= gross.

Usage:
    from payments.services.fee_calculator import FeeCalculator, calculate_fee

    # Pure calculation over explicit rules
    breakdown = calculate_fee(Decimal("1000.00"), rules, Decimal("10"))
    breakdown.fee   # Decimal("100.00")
    breakdown.net   # Decimal("900.00")

    # Reads the active rules and platform default from the database
    breakdown = FeeCalculator.compute_fee(payment.amount)
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from core.services import BaseService

from payments.exceptions import PaymentValidationError
from payments.models import FeeRule, PlatformSettings


CENT = Decimal("0.01")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class FeeBreakdown:
    """
    Split of a gross amount into platform fee and seller net.

    Attributes:
        gross: Amount paid by the buyer
        fee: Amount retained by the platform
        net: Amount credited to the seller
        percentage: Percentage that produced the fee
        rule_id: FeeRule applied, or None when the default was used
    """

    gross: Decimal
    fee: Decimal
    net: Decimal
    percentage: Decimal
    rule_id: uuid.UUID | None = None


def _validate_gross(gross) -> Decimal:
    if isinstance(gross, float):
        raise PaymentValidationError(
            "Amount must be a Decimal, not a float",
            details={"amount": repr(gross)},
        )
    try:
        amount = Decimal(gross)
    except (InvalidOperation, TypeError, ValueError):
        raise PaymentValidationError(
            f"Invalid amount: {gross!r}",
            details={"amount": repr(gross)},
        )
    if not amount.is_finite() or amount < 0:
        raise PaymentValidationError(
            "Amount must be a finite, non-negative number",
            details={"amount": str(amount)},
        )
    return amount


def select_rule(gross: Decimal, rules: Iterable[FeeRule]) -> FeeRule | None:
    """
    Pick the rule applying to a gross amount.

    Highest priority wins; ties go to the most recently created rule, then
    to the larger id string.
    """
    candidates = [rule for rule in rules if rule.is_active and rule.matches(gross)]
    if not candidates:
        return None
    return max(
        candidates,
        key=lambda rule: (rule.priority, rule.created_at, str(rule.id)),
    )


def calculate_fee(
    gross: Decimal,
    rules: Iterable[FeeRule],
    default_percentage: Decimal,
) -> FeeBreakdown:
    """
    Compute the fee breakdown for a gross amount. No I/O.

    Raises:
        PaymentValidationError: If gross is negative, non-finite or a float
    """
    amount = _validate_gross(gross)
    rule = select_rule(amount, rules)
    percentage = Decimal(rule.fee_percentage if rule else default_percentage)

    fee = (amount * percentage / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
    # Percentages above 100 are rejected by FeeRule constraints; clamp anyway
    fee = min(max(fee, Decimal("0.00")), amount)

    return FeeBreakdown(
        gross=amount,
        fee=fee,
        net=amount - fee,
        percentage=percentage,
        rule_id=rule.id if rule else None,
    )


class FeeCalculator(BaseService):
    """Database-backed entry point for fee calculation."""

    @classmethod
    def compute_fee(cls, gross: Decimal) -> FeeBreakdown:
        breakdown = calculate_fee(
            gross,
            FeeRule.objects.filter(is_active=True),
            PlatformSettings.default_fee_percentage_value(),
        )
        cls.get_logger().debug(
            "Computed platform fee",
            extra={
                "gross": str(breakdown.gross),
                "fee": str(breakdown.fee),
                "percentage": str(breakdown.percentage),
                "rule_id": str(breakdown.rule_id) if breakdown.rule_id else None,
            },
        )
        return breakdown


__all__ = [
    "FeeBreakdown",
    "FeeCalculator",
    "calculate_fee",
    "select_rule",
]
