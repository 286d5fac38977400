# pricewatch/services/tracking.py

"""Start tracking a product URL and manage its subscribers."""

import logging
import re
from dataclasses import fields

from pricewatch.config.settings import Settings
from pricewatch.models.notification import EmailProductInfo
from pricewatch.models.product import Product, ScrapedProduct, detect_platform
from pricewatch.notifications.email_composer import compose
from pricewatch.notifications.mailer import Mailer
from pricewatch.scrapers.fetcher import Fetcher
from pricewatch.scrapers.registry import get_extractor
from pricewatch.services.notification_policy import classify
from pricewatch.services.price_history import merge_history
from pricewatch.storage.product_store import ProductStore

logger = logging.getLogger("pricewatch.tracking")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _snapshot(product: Product) -> ScrapedProduct:
    return ScrapedProduct(
        **{f.name: getattr(product, f.name) for f in fields(ScrapedProduct)}
    )


class TrackingService:
    """User-facing actions: track a URL, subscribe an email to it."""

    def __init__(
        self,
        store: ProductStore,
        mailer: Mailer,
        fetcher: Fetcher | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.store = store
        self.mailer = mailer
        self.fetcher = fetcher or Fetcher(settings=self.settings)

    def track(self, url: str) -> Product:
        """Scrape *url* and store it, adding one history sample.

        Raises:
            ExtractionError: unsupported platform or unusable page.
            FetchError: the page could not be fetched.
            PersistenceError: the product could not be saved.
        """
        extractor = get_extractor(detect_platform(url))
        html = self.fetcher.fetch(url)
        scraped = extractor.extract(html, url)

        existing = self.store.find_by_url(url)
        base = existing if existing is not None else Product.from_scraped(
            scraped
        )
        product = self.store.upsert(merge_history(base, scraped))
        logger.info(
            "%s %s at %s%.2f",
            "Refreshed" if existing else "Now tracking",
            product.url,
            product.currency,
            product.current_price,
        )
        return product

    def subscribe(self, url: str, email: str) -> Product:
        """Subscribe *email* to *url*, tracking the URL first if needed.

        A new subscriber gets a welcome email (best-effort); existing
        subscribers are left alone.

        Raises:
            ValueError: if *email* is not a plausible address.
        """
        address = email.strip()
        if not _EMAIL_RE.match(address):
            raise ValueError(f"Invalid email address: {email!r}")

        product = self.store.find_by_url(url) or self.track(url)
        if product.has_subscriber(address):
            logger.info("%s already subscribed to %s", address, url)
            return product

        product = self.store.add_subscriber(product.url, address)
        kind = classify(
            None, _snapshot(product), self.settings.THRESHOLD_PERCENTAGE,
        )
        content = compose(
            kind,
            EmailProductInfo.from_product(product),
            self.settings.THRESHOLD_PERCENTAGE,
        )
        try:
            result = self.mailer.send(
                content.html_body, content.subject, [address]
            )
        except Exception as exc:
            logger.warning("Welcome email to %s raised: %s", address, exc)
            return product
        if not result.success:
            logger.warning(
                "Welcome email to %s failed: %s", address, result.error
            )
        return product
