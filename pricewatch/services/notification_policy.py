# pricewatch/services/notification_policy.py

"""Classify a product's state transition into a notification kind.

Precedence, highest first:

1. ``WELCOME``: there is no previous snapshot (first tracking).
2. ``CHANGE_OF_STOCK``: the product was out of stock and is back.
   A restock is the most actionable event, so it beats price signals.
3. ``LOWEST_PRICE``: the new price is strictly below every price in
   the previous history. An empty history is never a new low.
4. ``THRESHOLD_MET``: the discount is at least the threshold.
5. ``NONE`` otherwise.

The function is pure; sending mail is the caller's business.
"""

from pricewatch.models.notification import NotificationKind
from pricewatch.models.product import Product, ScrapedProduct
from pricewatch.services.price_history import lowest

DEFAULT_THRESHOLD_PERCENT = 40.0


def classify(
    previous: Product | None,
    scraped: ScrapedProduct,
    threshold_percent: float = DEFAULT_THRESHOLD_PERCENT,
) -> NotificationKind:
    """Return the notification owed for moving from *previous* to *scraped*."""
    if previous is None:
        return NotificationKind.WELCOME

    if previous.is_out_of_stock and not scraped.is_out_of_stock:
        return NotificationKind.CHANGE_OF_STOCK

    if previous.price_history and scraped.current_price < lowest(
        previous.price_history
    ):
        return NotificationKind.LOWEST_PRICE

    if scraped.discount_rate >= threshold_percent:
        return NotificationKind.THRESHOLD_MET

    return NotificationKind.NONE
