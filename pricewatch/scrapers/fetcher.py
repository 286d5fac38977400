# pricewatch/scrapers/fetcher.py

"""HTTP fetcher routing product page requests through a rotating proxy."""

import logging
import random
import time
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from curl_cffi import requests as curl_requests

from pricewatch.config.settings import ProxyConfig, Settings
from pricewatch.errors import FetchError
from pricewatch.models.product import is_valid_product_url


class Fetcher:
    """Fetch raw product page HTML, one proxy session per call.

    Every call opens a fresh curl_cffi session bound to a freshly
    randomised proxy session id, so consecutive requests to the same
    site are not correlated upstream and worker threads never share
    a session object.
    """

    # Cloudflare challenge page markers (checked before keyword scan)
    _CF_CHALLENGE_MARKERS: list[str] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "just a moment",
        "cf-turnstile",
        "cf_chl_opt",
    ]

    def __init__(
        self,
        proxy: ProxyConfig | None = None,
        settings: Settings | None = None,
        use_fallback: bool = True,
    ) -> None:
        self.proxy = proxy
        self.settings = settings or Settings()
        self.use_fallback = use_fallback
        self.logger = logging.getLogger("pricewatch.fetcher")

    @staticmethod
    def new_session_id() -> int:
        """Random proxy session suffix."""
        return random.randint(0, 999_999)

    def request_timeout(self) -> float:
        """Per-request timeout that lets every attempt fit in ITEM_TIMEOUT.

        The proxied attempts and the direct fallback share the item's
        budget evenly, capped by ``REQUEST_TIMEOUT``. Retry backoff
        sleeps are not counted.
        """
        requests = max(1, self.settings.MAX_RETRIES)
        if self.use_fallback:
            requests += 1
        return min(
            float(self.settings.REQUEST_TIMEOUT),
            self.settings.ITEM_TIMEOUT / requests,
        )

    def _proxies(self, session_id: int) -> dict[str, str] | None:
        if self.proxy is None:
            return None
        proxy_url = self.proxy.session_url(session_id)
        return {"http": proxy_url, "https": proxy_url}

    def _body_problem(self, text: str) -> str | None:
        """Return why a 2xx body is unusable, or None if it is fine."""
        if not text or not text.strip():
            return "empty response body"
        lower = text.lower()

        # Cloudflare challenge page detection (high-confidence)
        for marker in self._CF_CHALLENGE_MARKERS:
            if marker in lower:
                return f"Cloudflare challenge ({marker})"

        # Generic CAPTCHA keyword scan (skip if page has
        # real product content to avoid false positives)
        has_body_content = "<body" in lower and len(text) > 5000
        if not has_body_content:
            for keyword in self.settings.CAPTCHA_KEYWORDS:
                if keyword in lower:
                    return f"bot wall detected ({keyword})"
        return None

    def _fetch_proxied(self, url: str) -> tuple[str | None, str, int | None]:
        """Try the proxied fetch; return (html, last_reason, last_status)."""
        attempts = max(1, self.settings.MAX_RETRIES)
        reason = "no attempt made"
        status: int | None = None

        for attempt in range(1, attempts + 1):
            session_id = self.new_session_id()
            try:
                with curl_requests.Session(
                    impersonate=self.settings.IMPERSONATE_BROWSER
                ) as session:
                    resp = session.get(
                        url,
                        headers=self.settings.DEFAULT_HEADERS,
                        timeout=self.request_timeout(),
                        proxies=self._proxies(session_id),
                        verify=self.proxy is None,
                        allow_redirects=True,
                        max_redirects=5,
                    )
                status = resp.status_code
                if 200 <= status < 300:
                    problem = self._body_problem(resp.text)
                    if problem is None:
                        self.logger.debug(
                            "Fetched %s (session %d, %d bytes)",
                            url,
                            session_id,
                            len(resp.text),
                        )
                        return resp.text, "", status
                    reason = problem
                else:
                    reason = "non-2xx response"
                self.logger.warning(
                    "Fetch attempt %d/%d for %s failed: %s (HTTP %s)",
                    attempt,
                    attempts,
                    url,
                    reason,
                    status,
                )
            except Exception as exc:
                reason = f"{type(exc).__name__}: {exc}"
                status = None
                self.logger.warning(
                    "Request error on attempt %d/%d for %s: %s",
                    attempt,
                    attempts,
                    url,
                    exc,
                )
            if attempt < attempts:
                time.sleep(self.settings.RETRY_BACKOFF * attempt)

        return None, reason, status

    def _fetch_direct(self, url: str) -> str | None:
        """Direct (no proxy) request through cloudscraper."""
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper()
            resp: Any = scraper.get(
                url,
                headers=self.settings.DEFAULT_HEADERS,
                timeout=self.request_timeout(),
            )
            if 200 <= resp.status_code < 300:
                text = str(resp.text)
                if self._body_problem(text) is None:
                    return text
            self.logger.warning(
                "Direct fallback for %s returned HTTP %d",
                url,
                resp.status_code,
            )
        except Exception as exc:
            self.logger.warning(
                "Direct fallback for %s failed: %s", url, exc
            )
        return None

    def fetch(self, url: str) -> str:
        """Return the page HTML for *url* or raise :class:`FetchError`."""
        if not is_valid_product_url(url):
            raise FetchError(url, "not an absolute http(s) URL")

        html, reason, status = self._fetch_proxied(url)
        if html is not None:
            return html

        if self.use_fallback:
            self.logger.info(
                "Proxied fetch exhausted for %s, trying direct request",
                url,
            )
            html = self._fetch_direct(url)
            if html is not None:
                return html

        raise FetchError(url, reason, status)
