# pricewatch/services/price_history.py

"""Price history aggregation over a product's append-only time series."""

from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime

from pricewatch.models.product import (
    PriceHistoryItem,
    Product,
    ScrapedProduct,
)


def append(
    history: Sequence[PriceHistoryItem],
    price: float,
    timestamp: datetime,
) -> tuple[PriceHistoryItem, ...]:
    """Return a new history with one more sample at the end.

    Every call appends, even when *price* equals the previous sample.

    Raises:
        ValueError: if *timestamp* is older than the last sample.
    """
    if history and timestamp < history[-1].date:
        raise ValueError(
            f"Sample at {timestamp.isoformat()} predates last sample "
            f"at {history[-1].date.isoformat()}"
        )
    return (*history, PriceHistoryItem(price=float(price), date=timestamp))


def lowest(history: Sequence[PriceHistoryItem]) -> float:
    """Lowest recorded price, ``0`` for an empty history."""
    return min((item.price for item in history), default=0.0)


def highest(history: Sequence[PriceHistoryItem]) -> float:
    """Highest recorded price, ``0`` for an empty history."""
    return max((item.price for item in history), default=0.0)


def average(history: Sequence[PriceHistoryItem]) -> float:
    """Mean recorded price, ``0`` for an empty history."""
    if not history:
        return 0.0
    return sum(item.price for item in history) / len(history)


def merge_history(
    product: Product,
    scraped: ScrapedProduct,
    timestamp: datetime | None = None,
) -> Product:
    """Fold a fresh scrape into a stored product.

    Scraped fields replace stored ones, except that blank scraped
    image/description/category keep the stored value. The URL and
    subscribers always come from the stored product.
    """
    when = timestamp or datetime.now()
    history = append(product.price_history, scraped.current_price, when)
    return replace(
        product,
        platform=scraped.platform or product.platform,
        title=scraped.title or product.title,
        current_price=history[-1].price,
        original_price=scraped.original_price,
        discount_rate=scraped.discount_rate,
        is_out_of_stock=scraped.is_out_of_stock,
        currency=scraped.currency or product.currency,
        image=scraped.image or product.image,
        category=scraped.category or product.category,
        description=scraped.description or product.description,
        stars=scraped.stars,
        reviews_count=scraped.reviews_count,
        price_history=history,
        lowest_price=lowest(history),
        highest_price=highest(history),
        average_price=average(history),
    )
