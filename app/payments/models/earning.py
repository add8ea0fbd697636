"""
Earning model: a seller's share of one released payment.

A release creates exactly one Earning per payment. A partial withdrawal
splits the earning it ends in: the withdrawn part stays on the original
record and the rest becomes a new AVAILABLE earning pointing back to it, so
a seller's AVAILABLE earnings always add up to their ledger balance.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import EarningStatus


class Earning(UUIDPrimaryKeyMixin, BaseModel):
    """
    Net amount a seller earned from a released payment.

    Status Flow:
        AVAILABLE -> WITHDRAWAL_PENDING -> WITHDRAWN
        WITHDRAWAL_PENDING -> AVAILABLE (withdrawal failed)
    """

    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="earnings",
        help_text="Seller who earned this amount",
    )

    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="earnings",
        help_text="Released payment this earning comes from",
    )

    split_from = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="splits",
        help_text="Earning this remainder was split off by a partial withdrawal",
    )

    item = models.ForeignKey(
        "listings.Item",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="earnings",
        help_text="Item that was sold",
    )

    item_title = models.CharField(
        max_length=200,
        blank=True,
        default="",
        help_text="Item title snapshot",
    )

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Net amount credited to the seller",
    )

    status = models.CharField(
        max_length=20,
        choices=EarningStatus.choices,
        default=EarningStatus.AVAILABLE,
        db_index=True,
        help_text="Withdrawal status of this earning",
    )

    withdrawal = models.ForeignKey(
        "payments.Withdrawal",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="earnings",
        help_text="Withdrawal this earning is allocated to",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Earning"
        verbose_name_plural = "Earnings"
        indexes = [
            models.Index(fields=["seller", "status"]),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(amount__gte=0),
                name="earning_amount_non_negative",
            ),
            models.UniqueConstraint(
                fields=["payment"],
                condition=models.Q(split_from__isnull=True),
                name="unique_release_earning_per_payment",
            ),
        ]

    def __str__(self) -> str:
        return f"Earning({self.id}, {self.amount}, {self.status})"
