"""
Fee configuration models.

- FeeRule: A percentage applied to payments whose amount falls in a range
- PlatformSettings: Singleton row holding the default fee percentage

Usage:
    from payments.models import FeeRule, PlatformSettings

    FeeRule.objects.create(
        name="Large orders",
        min_amount=Decimal("10000.00"),
        fee_percentage=Decimal("5.00"),
        priority=10,
    )
    PlatformSettings.default_fee_percentage_value()  # Decimal("10")
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

_PERCENT_VALIDATORS = [
    MinValueValidator(Decimal("0")),
    MaxValueValidator(Decimal("100")),
]


class FeeRule(UUIDPrimaryKeyMixin, BaseModel):
    """
    A fee percentage for payments in [min_amount, max_amount].

    When several active rules match, the highest priority wins; equal
    priorities go to the most recently created rule.
    """

    name = models.CharField(max_length=100)

    description = models.TextField(blank=True, default="")

    min_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0"))],
        help_text="Smallest gross amount this rule applies to (inclusive)",
    )

    max_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Largest gross amount this rule applies to (inclusive); empty = no limit",
    )

    fee_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=_PERCENT_VALIDATORS,
        help_text="Fee as a percentage of the gross amount (0-100)",
    )

    priority = models.IntegerField(
        default=0,
        help_text="Higher priority rules win when several match",
    )

    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        ordering = ["-priority", "-created_at"]
        verbose_name = "Fee Rule"
        verbose_name_plural = "Fee Rules"
        constraints = [
            models.CheckConstraint(
                check=models.Q(fee_percentage__gte=0) & models.Q(fee_percentage__lte=100),
                name="fee_rule_percentage_range",
            ),
            models.CheckConstraint(
                check=models.Q(max_amount__isnull=True)
                | models.Q(max_amount__gte=models.F("min_amount")),
                name="fee_rule_valid_range",
            ),
        ]

    def __str__(self) -> str:
        upper = self.max_amount if self.max_amount is not None else "∞"
        return f"{self.name} ({self.fee_percentage}% for {self.min_amount}-{upper})"

    def matches(self, amount: Decimal) -> bool:
        """Check whether the rule covers a gross amount."""
        if amount < self.min_amount:
            return False
        return self.max_amount is None or amount <= self.max_amount


class PlatformSettings(models.Model):
    """
    Singleton platform configuration.

    Only one row (pk=1) ever exists. When it is missing, the fee default
    falls back to settings.PLATFORM_DEFAULT_FEE_PERCENT.
    """

    default_fee_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=_PERCENT_VALIDATORS,
        help_text="Fee percentage used when no fee rule matches",
    )

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Platform Settings"
        verbose_name_plural = "Platform Settings"

    def __str__(self) -> str:
        return f"PlatformSettings(default_fee={self.default_fee_percentage}%)"

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def default_fee_percentage_value(cls) -> Decimal:
        """The configured default fee percentage."""
        row = cls.objects.filter(pk=1).first()
        if row is not None:
            return row.default_fee_percentage
        return Decimal(str(settings.PLATFORM_DEFAULT_FEE_PERCENT))
