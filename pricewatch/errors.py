# pricewatch/errors.py

"""Error taxonomy for the scrape-and-notify pipeline."""


class PriceWatchError(Exception):
    """Base class for all pricewatch errors."""


class FetchError(PriceWatchError):
    """Network failure, timeout, non-2xx response or bot wall."""

    def __init__(
        self,
        url: str,
        reason: str,
        status_code: int | None = None,
    ) -> None:
        self.url = url
        self.reason = reason
        self.status_code = status_code
        detail = f" (HTTP {status_code})" if status_code else ""
        super().__init__(f"Failed to fetch {url}: {reason}{detail}")


class ExtractionError(PriceWatchError):
    """Essential product fields could not be resolved from the page."""

    def __init__(self, reason: str, url: str = "") -> None:
        self.reason = reason
        self.url = url
        suffix = f" [{url}]" if url else ""
        super().__init__(f"{reason}{suffix}")


class PersistenceError(PriceWatchError):
    """A product store read or write failed."""


class StoreUnavailableError(PersistenceError):
    """The product store could not be reached at all."""


class MailError(PriceWatchError):
    """Outbound mail delivery failed."""


class InvalidNotificationKind(PriceWatchError, ValueError):
    """No email template exists for the requested notification kind."""
