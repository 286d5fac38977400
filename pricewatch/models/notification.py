# pricewatch/models/notification.py

"""Notification kinds and email payload models."""

from dataclasses import dataclass
from enum import Enum

from pricewatch.models.product import Product


class NotificationKind(Enum):
    """Why (or whether) a product's subscribers should be emailed."""

    NONE = "NONE"
    WELCOME = "WELCOME"
    CHANGE_OF_STOCK = "CHANGE_OF_STOCK"
    LOWEST_PRICE = "LOWEST_PRICE"
    THRESHOLD_MET = "THRESHOLD_MET"


@dataclass(frozen=True)
class EmailContent:
    """A rendered email ready for the mail transport."""

    subject: str
    html_body: str


@dataclass(frozen=True)
class EmailProductInfo:
    """The subset of product data an email template renders."""

    title: str
    url: str
    image: str = ""
    currency: str = "₹"
    current_price: float = 0.0
    original_price: float = 0.0
    discount_rate: int = 0
    is_out_of_stock: bool = False

    @classmethod
    def from_product(cls, product: Product) -> "EmailProductInfo":
        """Build email data from a stored product."""
        return cls(
            title=product.title or "Product",
            url=product.url,
            image=product.image,
            currency=product.currency or "₹",
            current_price=product.current_price,
            original_price=product.original_price,
            discount_rate=product.discount_rate or 0,
            is_out_of_stock=product.is_out_of_stock,
        )
