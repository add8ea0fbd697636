"""
Tests for Item stock changes driven by the payment lifecycle.
"""

from listings.models import ItemStatus
from listings.tests.factories import ItemFactory


class TestItemStock:
    """Tests for reserve/settle/restock helpers."""

    def test_reserving_last_unit_marks_reserved(self, db):
        item = ItemFactory(quantity=1)

        item.reserve_unit()

        assert item.quantity == 0
        assert item.status == ItemStatus.RESERVED
        assert item.is_purchasable is False

    def test_reserving_with_stock_left_stays_available(self, db):
        item = ItemFactory(quantity=3)

        item.reserve_unit()

        assert item.quantity == 2
        assert item.status == ItemStatus.AVAILABLE

    def test_settle_sale_without_stock_is_sold(self, db):
        item = ItemFactory(quantity=0, status=ItemStatus.RESERVED)

        item.settle_sale()

        assert item.status == ItemStatus.SOLD

    def test_settle_sale_with_stock_is_available(self, db):
        item = ItemFactory(quantity=2)

        item.settle_sale()

        assert item.status == ItemStatus.AVAILABLE

    def test_restock_returns_unit(self, db):
        item = ItemFactory(quantity=0, status=ItemStatus.RESERVED)

        item.restock_unit()

        assert item.quantity == 1
        assert item.status == ItemStatus.AVAILABLE
