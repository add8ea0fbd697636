"""
Item model for marketplace listings.

An Item is what a buyer pays for. The payment core changes its stock:
- payment confirmed: one unit reserved (quantity - 1)
- payment released: SOLD when no units remain, otherwise AVAILABLE
- payment refunded: unit restocked (quantity + 1), AVAILABLE

Usage:
    from listings.models import Item, ItemStatus

    item = Item.objects.create(
        seller=seller,
        title="Used road bike",
        price=Decimal("15000.00"),
        quantity=1,
    )
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class ItemStatus(models.TextChoices):
    """
    Availability of an Item.

    AVAILABLE: can be bought
    RESERVED: last unit is held by a paid, unresolved payment
    SOLD: every unit has been paid out to the seller
    DELISTED: withdrawn by the seller
    """

    AVAILABLE = "available", "Available"
    RESERVED = "reserved", "Reserved"
    SOLD = "sold", "Sold"
    DELISTED = "delisted", "Delisted"


class Item(UUIDPrimaryKeyMixin, BaseModel):
    """
    A listed item sold by a single seller.

    Fields:
        seller: User who listed the item and receives payment
        title: Listing title (snapshotted onto payments and earnings)
        price: Unit price in major currency units
        currency: ISO 4217 currency code
        quantity: Units left in stock
        status: Availability status
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="items",
        help_text="User selling this item",
    )

    # ==========================================================================
    # Listing Details
    # ==========================================================================

    title = models.CharField(
        max_length=200,
        help_text="Listing title",
    )

    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
        help_text="Unit price in major currency units",
    )

    currency = models.CharField(
        max_length=3,
        default="KES",
        help_text="ISO 4217 currency code",
    )

    # ==========================================================================
    # Stock
    # ==========================================================================

    quantity = models.PositiveIntegerField(
        default=1,
        help_text="Units left in stock",
    )

    status = models.CharField(
        max_length=20,
        choices=ItemStatus.choices,
        default=ItemStatus.AVAILABLE,
        db_index=True,
        help_text="Availability status",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Item"
        verbose_name_plural = "Items"
        indexes = [
            models.Index(fields=["seller", "status"]),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(price__gt=0),
                name="item_price_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Item({self.title}, {self.status}, qty={self.quantity})"

    # ==========================================================================
    # Stock Changes
    # ==========================================================================
    # These mutate the instance only; callers hold a row lock and save.

    @property
    def is_purchasable(self) -> bool:
        """Check whether a new payment may be started for this item."""
        return self.status == ItemStatus.AVAILABLE and self.quantity > 0

    def reserve_unit(self) -> None:
        """Take one unit out of stock for a confirmed payment."""
        if self.quantity > 0:
            self.quantity -= 1
        if self.quantity == 0:
            self.status = ItemStatus.RESERVED

    def settle_sale(self) -> None:
        """Mark the outcome of a released payment."""
        self.status = ItemStatus.SOLD if self.quantity <= 0 else ItemStatus.AVAILABLE

    def restock_unit(self) -> None:
        """Return the unit of a refunded payment to stock."""
        self.quantity += 1
        self.status = ItemStatus.AVAILABLE
