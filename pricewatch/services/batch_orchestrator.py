# pricewatch/services/batch_orchestrator.py

"""Runs one update cycle over every tracked product.

Each product goes through fetch, extract, merge, classify, persist and
(best-effort) notify inside a worker thread. Products are isolated
from each other: one failure never aborts the loop and a failed
product's stored record is left exactly as it was.
"""

import asyncio
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pricewatch.config.settings import Settings
from pricewatch.errors import PriceWatchError
from pricewatch.models.notification import EmailProductInfo, NotificationKind
from pricewatch.models.product import Product, detect_platform
from pricewatch.notifications.email_composer import compose
from pricewatch.notifications.mailer import Mailer
from pricewatch.scrapers.fetcher import Fetcher
from pricewatch.scrapers.registry import get_extractor
from pricewatch.services.notification_policy import classify
from pricewatch.services.price_history import merge_history
from pricewatch.storage.product_store import ProductStore

logger = logging.getLogger("pricewatch.orchestrator")

DEADLINE_EXCEEDED = "cycle deadline exceeded"
ABANDONED = "update abandoned"


@dataclass
class ItemResult:
    """Outcome of updating a single product."""

    url: str
    title: str
    ok: bool
    product: Product
    kind: NotificationKind = NotificationKind.NONE
    notified: bool = False
    mail_error: str | None = None
    error: str | None = None
    error_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view of the result."""
        return {
            "url": self.url,
            "title": self.title,
            "ok": self.ok,
            "currentPrice": self.product.current_price,
            "isOutOfStock": self.product.is_out_of_stock,
            "notification": self.kind.value,
            "notified": self.notified,
            "mailError": self.mail_error,
            "error": self.error,
            "errorType": self.error_type,
        }


@dataclass
class CycleSummary:
    """Per-item outcomes of one cycle plus the headline counts."""

    started_at: datetime
    finished_at: datetime | None = None
    results: list[ItemResult] = field(
        default_factory=lambda: list[ItemResult]()
    )

    @property
    def updated_count(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    @property
    def failures(self) -> list[dict[str, str]]:
        return [
            {"url": r.url, "error": r.error or "unknown error"}
            for r in self.results
            if not r.ok
        ]

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly summary."""
        return {
            "updatedCount": self.updated_count,
            "failedCount": self.failed_count,
            "failures": self.failures,
            "results": [r.to_dict() for r in self.results],
            "startedAt": self.started_at.isoformat(),
            "finishedAt": (
                self.finished_at.isoformat() if self.finished_at else None
            ),
        }


def _failed(
    product: Product, error: str, error_type: str,
) -> ItemResult:
    return ItemResult(
        url=product.url,
        title=product.title,
        ok=False,
        product=product,
        error=error,
        error_type=error_type,
    )


class _ItemGuard:
    """Hand-off between a worker thread and the loop that may abandon it.

    The loop abandons an item on timeout or at the cycle deadline. From
    then on the worker makes no store write and sends no mail. A write
    that already landed is reported back so the summary matches the
    store.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.abandoned = False
        self.kind = NotificationKind.NONE
        self.stored: Product | None = None
        self.mailing = False

    def commit(self, write: Callable[[], Product]) -> Product | None:
        """Run *write* unless abandoned; None means it was skipped."""
        with self._lock:
            if self.abandoned:
                return None
            self.stored = write()
            return self.stored

    def start_mail(self) -> bool:
        with self._lock:
            if self.abandoned:
                return False
            self.mailing = True
            return True

    def abandon(
        self, product: Product, error: str, error_type: str,
    ) -> ItemResult:
        """Stop the worker and describe what it got done."""
        with self._lock:
            self.abandoned = True
            stored, mailing = self.stored, self.mailing
        if stored is None:
            return _failed(product, error, error_type)
        mail_error = None
        if self.kind is not NotificationKind.NONE and stored.subscribers:
            mail_error = (
                f"{error} while sending mail" if mailing
                else f"{error} before mail was sent"
            )
        return ItemResult(
            url=stored.url,
            title=stored.title,
            ok=True,
            product=stored,
            kind=self.kind,
            mail_error=mail_error,
        )


class BatchOrchestrator:
    """Coordinates the scrape-and-notify pipeline for all products."""

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

    # ── Per-item pipeline (worker thread) ────────────────

    def _notify(
        self, kind: NotificationKind, product: Product,
    ) -> tuple[bool, str | None]:
        """Email the subscribers; return (notified, mail_error)."""
        recipients = product.subscriber_emails()
        if kind is NotificationKind.NONE or not recipients:
            return False, None

        content = compose(
            kind,
            EmailProductInfo.from_product(product),
            self.settings.THRESHOLD_PERCENTAGE,
        )
        try:
            result = self.mailer.send(
                content.html_body, content.subject, recipients
            )
        except Exception as exc:
            logger.warning(
                "Mailer raised for %s (%s): %s",
                product.url,
                kind.value,
                exc,
            )
            return False, f"{type(exc).__name__}: {exc}"

        if not result.success:
            logger.warning(
                "Failed to send %s email for %s to %d subscriber(s): %s",
                kind.value,
                product.url,
                len(recipients),
                result.error,
            )
            return False, result.error or "mail delivery failed"
        return True, None

    def process_item(
        self, product: Product, guard: _ItemGuard | None = None,
    ) -> ItemResult:
        """Update one product. Never raises.

        With a *guard*, the store write and the mail only happen while
        the guard has not been abandoned.
        """
        guard = guard or _ItemGuard()
        try:
            html = self.fetcher.fetch(product.url)
            platform = (
                product.platform
                if product.platform and product.platform != "unknown"
                else detect_platform(product.url)
            )
            scraped = get_extractor(platform).extract(html, product.url)
            updated = merge_history(product, scraped)
            kind = classify(
                product, scraped, self.settings.THRESHOLD_PERCENTAGE,
            )
            guard.kind = kind
            stored = guard.commit(lambda: self.store.upsert(updated))
        except (PriceWatchError, ValueError) as exc:
            logger.warning("Update failed for %s: %s", product.url, exc)
            return _failed(product, str(exc), type(exc).__name__)
        except Exception as exc:
            logger.exception("Unexpected error updating %s", product.url)
            return _failed(product, str(exc), type(exc).__name__)

        if stored is None:
            logger.info("Dropped abandoned update of %s", product.url)
            return _failed(product, ABANDONED, "Abandoned")

        if guard.start_mail():
            notified, mail_error = self._notify(kind, stored)
        else:
            notified, mail_error = False, None
        logger.info(
            "Updated %s: price=%.2f kind=%s notified=%s",
            product.url,
            stored.current_price,
            kind.value,
            notified,
        )
        return ItemResult(
            url=stored.url,
            title=stored.title,
            ok=True,
            product=stored,
            kind=kind,
            notified=notified,
            mail_error=mail_error,
        )

    # ── Cycle ────────────────────────────────────────────

    async def run_cycle(self) -> CycleSummary:
        """Update every tracked product and summarise the outcomes.

        Items still running when ``CYCLE_DEADLINE`` passes are abandoned
        and reported as failed, so a partial summary always comes back.
        An abandoned worker thread may keep running, but it no longer
        writes to the store or sends mail.

        Raises:
            StoreUnavailableError: if the products cannot be listed.
        """
        summary = CycleSummary(started_at=datetime.now())
        products = await asyncio.to_thread(self.store.list_all)
        logger.info("Starting cycle over %d products", len(products))

        if not products:
            summary.finished_at = datetime.now()
            return summary

        semaphore = asyncio.Semaphore(max(1, self.settings.MAX_WORKERS))
        item_timeout = self.settings.ITEM_TIMEOUT

        async def run_one(product: Product, guard: _ItemGuard) -> ItemResult:
            async with semaphore:
                try:
                    return await asyncio.wait_for(
                        asyncio.to_thread(self.process_item, product, guard),
                        timeout=item_timeout,
                    )
                except asyncio.TimeoutError:
                    logger.warning(
                        "Update of %s timed out after %.0fs",
                        product.url,
                        item_timeout,
                    )
                    return guard.abandon(
                        product,
                        f"item timed out after {item_timeout:g}s",
                        "TimeoutError",
                    )

        guards = [_ItemGuard() for _ in products]
        tasks = [
            asyncio.create_task(run_one(p, g))
            for p, g in zip(products, guards)
        ]
        _, pending = await asyncio.wait(
            tasks, timeout=self.settings.CYCLE_DEADLINE
        )

        late: dict[int, ItemResult] = {}
        for idx, (product, guard, task) in enumerate(
            zip(products, guards, tasks)
        ):
            if task in pending:
                late[idx] = guard.abandon(
                    product, DEADLINE_EXCEEDED, "DeadlineExceeded"
                )
                task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(
                "Cycle deadline of %.0fs hit; %d item(s) abandoned",
                self.settings.CYCLE_DEADLINE,
                len(pending),
            )

        for idx, task in enumerate(tasks):
            summary.results.append(
                late[idx] if idx in late else task.result()
            )

        summary.finished_at = datetime.now()
        logger.info(
            "Cycle finished: %d updated, %d failed",
            summary.updated_count,
            summary.failed_count,
        )
        return summary
