# tests/test_fetcher.py

"""Tests for the proxied fetcher using mocked HTTP sessions."""

import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from pricewatch.config.settings import ProxyConfig, Settings
from pricewatch.errors import FetchError
from pricewatch.scrapers.fetcher import Fetcher

FIXTURES_DIR = Path(__file__).parent / "fixtures"

URL = "https://www.amazon.in/dp/B07PR1CL3S"

SESSION_PATH = "pricewatch.scrapers.fetcher.curl_requests.Session"
CLOUDSCRAPER_PATH = "pricewatch.scrapers.fetcher.cloudscraper"


def _response(status: int, text: str) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    return resp


def _session_get(mock_session_cls: MagicMock) -> MagicMock:
    """The ``get`` mock of the session yielded by ``with Session()``."""
    return mock_session_cls.return_value.__enter__.return_value.get


class TestFetcher(unittest.TestCase):
    """Fetcher.fetch behaviour."""

    def setUp(self) -> None:
        """Real product page HTML for successful responses."""
        with open(FIXTURES_DIR / "amazon_product.html", encoding="utf-8") as f:
            self.page = f.read()
        self.proxy = ProxyConfig(username="brd-user", password="pw")

    @patch(SESSION_PATH)
    def test_success_returns_html(self, mock_session_cls: MagicMock) -> None:
        """A 2xx product page comes back verbatim."""
        _session_get(mock_session_cls).return_value = _response(
            200, self.page
        )
        fetcher = Fetcher(proxy=self.proxy, use_fallback=False)
        self.assertEqual(fetcher.fetch(URL), self.page)

    @patch(SESSION_PATH)
    def test_each_call_uses_fresh_proxy_session(
        self, mock_session_cls: MagicMock
    ) -> None:
        """Two fetches use two sessions with different proxy session ids."""
        get = _session_get(mock_session_cls)
        get.return_value = _response(200, self.page)
        fetcher = Fetcher(proxy=self.proxy, use_fallback=False)

        with patch.object(
            Fetcher, "new_session_id", side_effect=[111, 222]
        ):
            fetcher.fetch(URL)
            fetcher.fetch(URL)

        self.assertEqual(mock_session_cls.call_count, 2)
        proxies = [c.kwargs["proxies"]["https"] for c in get.call_args_list]
        self.assertEqual(
            proxies,
            [
                "http://brd-user-session-111:pw@brd.superproxy.io:33335",
                "http://brd-user-session-222:pw@brd.superproxy.io:33335",
            ],
        )
        self.assertFalse(get.call_args.kwargs["verify"])

    @patch(SESSION_PATH)
    def test_no_proxy_verifies_tls(self, mock_session_cls: MagicMock) -> None:
        """Without a proxy no proxies are passed and TLS is verified."""
        get = _session_get(mock_session_cls)
        get.return_value = _response(200, self.page)
        Fetcher(use_fallback=False).fetch(URL)
        self.assertIsNone(get.call_args.kwargs["proxies"])
        self.assertTrue(get.call_args.kwargs["verify"])

    @patch(SESSION_PATH)
    def test_non_2xx_raises_fetch_error(
        self, mock_session_cls: MagicMock
    ) -> None:
        """A 503 becomes a FetchError carrying the status."""
        _session_get(mock_session_cls).return_value = _response(503, "busy")
        fetcher = Fetcher(proxy=self.proxy, use_fallback=False)
        with self.assertRaises(FetchError) as ctx:
            fetcher.fetch(URL)
        self.assertEqual(ctx.exception.status_code, 503)
        self.assertEqual(ctx.exception.url, URL)

    @patch(SESSION_PATH)
    def test_captcha_page_raises(self, mock_session_cls: MagicMock) -> None:
        """A 200 bot wall is not a product page."""
        with open(FIXTURES_DIR / "captcha_page.html", encoding="utf-8") as f:
            _session_get(mock_session_cls).return_value = _response(
                200, f.read()
            )
        fetcher = Fetcher(proxy=self.proxy, use_fallback=False)
        with self.assertRaises(FetchError) as ctx:
            fetcher.fetch(URL)
        self.assertIn("bot wall", ctx.exception.reason)

    @patch(SESSION_PATH)
    def test_cloudflare_challenge_raises(
        self, mock_session_cls: MagicMock
    ) -> None:
        """Cloudflare interstitials are detected."""
        _session_get(mock_session_cls).return_value = _response(
            200, "<html><title>Just a moment...</title></html>"
        )
        fetcher = Fetcher(proxy=self.proxy, use_fallback=False)
        with self.assertRaises(FetchError) as ctx:
            fetcher.fetch(URL)
        self.assertIn("Cloudflare", ctx.exception.reason)

    @patch(SESSION_PATH)
    def test_network_error_raises(self, mock_session_cls: MagicMock) -> None:
        """Transport exceptions are mapped to FetchError."""
        _session_get(mock_session_cls).side_effect = TimeoutError("timed out")
        fetcher = Fetcher(proxy=self.proxy, use_fallback=False)
        with self.assertRaises(FetchError) as ctx:
            fetcher.fetch(URL)
        self.assertIn("TimeoutError", ctx.exception.reason)
        self.assertIsNone(ctx.exception.status_code)

    @patch(SESSION_PATH)
    def test_retries_with_new_session(
        self, mock_session_cls: MagicMock
    ) -> None:
        """With MAX_RETRIES=2 a failed attempt is retried once."""
        get = _session_get(mock_session_cls)
        get.side_effect = [_response(502, ""), _response(200, self.page)]
        settings = Settings()
        settings.MAX_RETRIES = 2
        fetcher = Fetcher(
            proxy=self.proxy, settings=settings, use_fallback=False
        )
        self.assertEqual(fetcher.fetch(URL), self.page)
        self.assertEqual(get.call_count, 2)

    @patch(CLOUDSCRAPER_PATH)
    @patch(SESSION_PATH)
    def test_direct_fallback_used_after_proxy_failure(
        self, mock_session_cls: MagicMock, mock_cloudscraper: MagicMock
    ) -> None:
        """cloudscraper rescues a failed proxied fetch."""
        _session_get(mock_session_cls).return_value = _response(403, "")
        scraper = mock_cloudscraper.create_scraper.return_value
        scraper.get.return_value = _response(200, self.page)

        self.assertEqual(Fetcher(proxy=self.proxy).fetch(URL), self.page)
        scraper.get.assert_called_once()

    @patch(CLOUDSCRAPER_PATH)
    @patch(SESSION_PATH)
    def test_both_paths_fail_reports_proxy_reason(
        self, mock_session_cls: MagicMock, mock_cloudscraper: MagicMock
    ) -> None:
        """When the fallback fails too, the proxied failure is raised."""
        _session_get(mock_session_cls).return_value = _response(404, "")
        scraper = mock_cloudscraper.create_scraper.return_value
        scraper.get.return_value = _response(404, "")

        with self.assertRaises(FetchError) as ctx:
            Fetcher(proxy=self.proxy).fetch(URL)
        self.assertEqual(ctx.exception.status_code, 404)

    def test_request_timeout_fits_item_budget(self) -> None:
        """Proxied attempts plus the fallback fit inside ITEM_TIMEOUT."""
        settings = Settings()
        settings.REQUEST_TIMEOUT = 30
        settings.ITEM_TIMEOUT = 45.0
        settings.MAX_RETRIES = 1

        with_fallback = Fetcher(proxy=self.proxy, settings=settings)
        self.assertEqual(with_fallback.request_timeout(), 22.5)

        settings.MAX_RETRIES = 2
        self.assertEqual(with_fallback.request_timeout(), 15.0)

        proxy_only = Fetcher(
            proxy=self.proxy, settings=settings, use_fallback=False
        )
        settings.MAX_RETRIES = 1
        self.assertEqual(proxy_only.request_timeout(), 30.0)

    @patch(CLOUDSCRAPER_PATH)
    @patch(SESSION_PATH)
    def test_timeouts_passed_to_both_paths(
        self, mock_session_cls: MagicMock, mock_cloudscraper: MagicMock
    ) -> None:
        """Both the proxied and the direct request use the shared budget."""
        get = _session_get(mock_session_cls)
        get.return_value = _response(503, "")
        scraper = mock_cloudscraper.create_scraper.return_value
        scraper.get.return_value = _response(200, self.page)
        settings = Settings()
        settings.REQUEST_TIMEOUT = 30
        settings.ITEM_TIMEOUT = 45.0
        settings.MAX_RETRIES = 1

        Fetcher(proxy=self.proxy, settings=settings).fetch(URL)

        self.assertEqual(get.call_args.kwargs["timeout"], 22.5)
        self.assertEqual(scraper.get.call_args.kwargs["timeout"], 22.5)

    @patch(SESSION_PATH)
    def test_invalid_url_rejected_without_request(
        self, mock_session_cls: MagicMock
    ) -> None:
        """Relative or non-http URLs never reach the network."""
        with self.assertRaises(FetchError):
            Fetcher().fetch("not a url")
        mock_session_cls.assert_not_called()


if __name__ == "__main__":
    unittest.main()
