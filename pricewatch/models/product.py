# pricewatch/models/product.py

"""Product data models shared by the scrape-and-notify pipeline."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from urllib.parse import urlparse

from pricewatch.config.settings import Settings


@dataclass(frozen=True)
class PriceHistoryItem:
    """A single price observation at a point in time."""

    price: float
    date: datetime


@dataclass(frozen=True)
class Subscriber:
    """An email address subscribed to a product's alerts."""

    email: str
    date_added: datetime


@dataclass
class ScrapedProduct:
    """Transient snapshot produced by one extraction pass."""

    url: str
    platform: str
    title: str
    current_price: float = 0.0
    original_price: float = 0.0
    discount_rate: int = 0
    is_out_of_stock: bool = False
    currency: str = "₹"
    image: str = ""
    category: str = ""
    description: str = ""
    stars: float = 0.0
    reviews_count: int = 0


@dataclass
class Product:
    """A tracked product as persisted by the product store."""

    url: str
    platform: str
    title: str
    current_price: float = 0.0
    original_price: float = 0.0
    discount_rate: int = 0
    is_out_of_stock: bool = False
    currency: str = "₹"
    image: str = ""
    category: str = ""
    description: str = ""
    stars: float = 0.0
    reviews_count: int = 0
    price_history: tuple[PriceHistoryItem, ...] = field(
        default_factory=tuple
    )
    lowest_price: float = 0.0
    highest_price: float = 0.0
    average_price: float = 0.0
    subscribers: tuple[Subscriber, ...] = field(default_factory=tuple)

    @classmethod
    def from_scraped(cls, scraped: ScrapedProduct) -> "Product":
        """Create a never-tracked product with an empty history."""
        return cls(
            url=scraped.url,
            platform=scraped.platform,
            title=scraped.title,
            current_price=scraped.current_price,
            original_price=scraped.original_price,
            discount_rate=scraped.discount_rate,
            is_out_of_stock=scraped.is_out_of_stock,
            currency=scraped.currency,
            image=scraped.image,
            category=scraped.category,
            description=scraped.description,
            stars=scraped.stars,
            reviews_count=scraped.reviews_count,
        )

    def subscriber_emails(self) -> list[str]:
        """Return subscriber addresses in subscription order."""
        return [s.email for s in self.subscribers]

    def has_subscriber(self, email: str) -> bool:
        """Case-insensitive membership check."""
        wanted = email.strip().lower()
        return any(s.email.lower() == wanted for s in self.subscribers)

    def with_subscriber(
        self, email: str, when: datetime | None = None,
    ) -> "Product":
        """Return a copy with *email* subscribed (no-op if present)."""
        if self.has_subscriber(email):
            return self
        sub = Subscriber(
            email=email.strip(), date_added=when or datetime.now()
        )
        return replace(self, subscribers=(*self.subscribers, sub))


def is_valid_product_url(url: str) -> bool:
    """True for an absolute http(s) URL with a host."""
    if not url:
        return False
    parsed = urlparse(url.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def detect_platform(url: str) -> str:
    """Map a product URL to its platform id, or ``"unknown"``."""
    host = urlparse(url.strip()).netloc.lower() or url.lower()
    for platform in Settings.PLATFORMS:
        markers = platform["markers"].split(",")
        if any(marker in host for marker in markers):
            return platform["id"]
    return "unknown"
