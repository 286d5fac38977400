# tests/test_notification_policy.py

"""Tests for notification classification and its precedence."""

import unittest
from datetime import datetime, timedelta

from pricewatch.models.notification import NotificationKind
from pricewatch.models.product import (
    PriceHistoryItem,
    Product,
    ScrapedProduct,
)
from pricewatch.scrapers.base_extractor import compute_discount
from pricewatch.services.notification_policy import classify
from pricewatch.services.price_history import merge_history

T0 = datetime(2026, 3, 1, 12, 0, 0)


def _stored(
    *prices: float, out_of_stock: bool = False,
) -> Product:
    history = tuple(
        PriceHistoryItem(price=p, date=T0 + timedelta(hours=i))
        for i, p in enumerate(prices)
    )
    return Product(
        url="https://www.flipkart.com/p/itm1",
        platform="flipkart",
        title="Phone",
        current_price=prices[-1] if prices else 0.0,
        is_out_of_stock=out_of_stock,
        price_history=history,
    )


def _scraped(
    price: float, discount: int = 0, out_of_stock: bool = False,
) -> ScrapedProduct:
    return ScrapedProduct(
        url="https://www.flipkart.com/p/itm1",
        platform="flipkart",
        title="Phone",
        current_price=price,
        discount_rate=discount,
        is_out_of_stock=out_of_stock,
    )


class TestClassify(unittest.TestCase):
    """Each kind and the order in which they win."""

    def test_no_previous_is_welcome(self) -> None:
        """First tracking always welcomes."""
        self.assertEqual(
            classify(None, _scraped(100, discount=90)),
            NotificationKind.WELCOME,
        )

    def test_back_in_stock(self) -> None:
        """Out of stock -> in stock is a stock change."""
        self.assertEqual(
            classify(_stored(100, out_of_stock=True), _scraped(100)),
            NotificationKind.CHANGE_OF_STOCK,
        )

    def test_stock_change_beats_new_low(self) -> None:
        """A restock wins even when the price is also a new low."""
        self.assertEqual(
            classify(
                _stored(500, 450, out_of_stock=True),
                _scraped(300, discount=60),
            ),
            NotificationKind.CHANGE_OF_STOCK,
        )

    def test_still_out_of_stock_is_not_stock_change(self) -> None:
        """Staying out of stock is not an event."""
        self.assertEqual(
            classify(
                _stored(100, out_of_stock=True),
                _scraped(100, out_of_stock=True),
            ),
            NotificationKind.NONE,
        )

    def test_going_out_of_stock_is_not_stock_change(self) -> None:
        """Only restocks notify."""
        self.assertEqual(
            classify(_stored(100), _scraped(100, out_of_stock=True)),
            NotificationKind.NONE,
        )

    def test_new_lowest_price(self) -> None:
        """Strictly below every previous price."""
        self.assertEqual(
            classify(_stored(500, 450, 550), _scraped(449)),
            NotificationKind.LOWEST_PRICE,
        )

    def test_equal_to_lowest_is_not_new_low(self) -> None:
        """Matching the previous minimum is not a new low."""
        self.assertEqual(
            classify(_stored(500, 450, 550), _scraped(450)),
            NotificationKind.NONE,
        )

    def test_lowest_beats_threshold(self) -> None:
        """A new low with a big discount reports the new low."""
        self.assertEqual(
            classify(_stored(500), _scraped(200, discount=60)),
            NotificationKind.LOWEST_PRICE,
        )

    def test_empty_history_is_never_new_low(self) -> None:
        """Without samples there is nothing to beat."""
        self.assertEqual(
            classify(_stored(), _scraped(1)),
            NotificationKind.NONE,
        )

    def test_threshold_met_at_boundary(self) -> None:
        """A discount of exactly the threshold notifies."""
        self.assertEqual(
            classify(_stored(500), _scraped(600, discount=40)),
            NotificationKind.THRESHOLD_MET,
        )

    def test_below_threshold_is_none(self) -> None:
        """39% is not enough."""
        self.assertEqual(
            classify(_stored(500), _scraped(600, discount=39)),
            NotificationKind.NONE,
        )

    def test_custom_threshold(self) -> None:
        """The threshold is configurable."""
        self.assertEqual(
            classify(_stored(500), _scraped(600, discount=25), 20.0),
            NotificationKind.THRESHOLD_MET,
        )


class TestWorkedScenarios(unittest.TestCase):
    """End-to-end classify + merge on concrete price series."""

    def test_falling_series_hits_new_low(self) -> None:
        """[100, 90, 80] then 70: new low, history grows to four."""
        stored = _stored(100, 90, 80)
        scraped = _scraped(70)
        self.assertEqual(
            classify(stored, scraped), NotificationKind.LOWEST_PRICE
        )
        merged = merge_history(stored, scraped, T0 + timedelta(days=1))
        self.assertEqual(
            [item.price for item in merged.price_history], [100, 90, 80, 70]
        )
        self.assertEqual(merged.lowest_price, 70)

    def test_restock_with_unchanged_price_and_big_discount(self) -> None:
        """Restock outranks a simultaneous threshold condition."""
        self.assertEqual(
            classify(
                _stored(1000, out_of_stock=True),
                _scraped(1000, discount=50),
            ),
            NotificationKind.CHANGE_OF_STOCK,
        )

    def test_half_price_without_new_low(self) -> None:
        """1000 against an MRP of 2000 (50%) with a lower past price."""
        scraped = ScrapedProduct(
            url="https://www.flipkart.com/p/itm1",
            platform="flipkart",
            title="Phone",
            current_price=1000.0,
            original_price=2000.0,
            discount_rate=compute_discount(1000.0, 2000.0),
        )
        self.assertEqual(
            classify(_stored(1200, 900), scraped),
            NotificationKind.THRESHOLD_MET,
        )

    def test_small_discount_is_none(self) -> None:
        """10% off, no stock change, no new low."""
        self.assertEqual(
            classify(_stored(800, 900), _scraped(900, discount=10)),
            NotificationKind.NONE,
        )


if __name__ == "__main__":
    unittest.main()
