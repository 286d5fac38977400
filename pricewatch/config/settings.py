# pricewatch/config/settings.py

"""Central configuration for the pricewatch pipeline."""

import os
from dataclasses import dataclass
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to *default*."""
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    """Read a float environment variable, falling back to *default*."""
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


def _env_bool(name: str, default: bool) -> bool:
    """Read a boolean environment variable ("1", "true", "yes")."""
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ProxyConfig:
    """Credentials for the rotating-session residential proxy."""

    username: str
    password: str
    host: str = "brd.superproxy.io"
    port: int = 33335

    @classmethod
    def from_env(cls) -> "ProxyConfig | None":
        """Build a config from the environment, or None when unset."""
        username = os.getenv("BRIGHT_DATA_USERNAME", "").strip()
        password = os.getenv("BRIGHT_DATA_PASSWORD", "").strip()
        if not username or not password:
            return None
        return cls(
            username=username,
            password=password,
            host=os.getenv("PROXY_HOST", "brd.superproxy.io"),
            port=_env_int("PROXY_PORT", 33335),
        )

    def session_url(self, session_id: int) -> str:
        """Proxy URL pinned to a single upstream session."""
        return (
            f"http://{self.username}-session-{session_id}:"
            f"{self.password}@{self.host}:{self.port}"
        )


class Settings:
    """Central configuration for the pricewatch pipeline."""

    # --- Fetching ---
    REQUEST_TIMEOUT: int = _env_int("REQUEST_TIMEOUT", 30)
    MAX_RETRIES: int = _env_int("MAX_RETRIES", 1)      # 1 = single attempt
    RETRY_BACKOFF: float = _env_float("RETRY_BACKOFF", 2.0)
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
        "enter the characters you see below",
    ]

    # --- Batch cycle ---
    MAX_WORKERS: int = _env_int("MAX_WORKERS", 8)
    ITEM_TIMEOUT: float = _env_float("ITEM_TIMEOUT", 45.0)
    CYCLE_DEADLINE: float = _env_float("CYCLE_DEADLINE", 55.0)

    # --- Notifications ---
    THRESHOLD_PERCENTAGE: float = _env_float(
        "THRESHOLD_PERCENTAGE", 40.0
    )
    EMAIL_HOST: str = os.getenv("EMAIL_HOST", "smtp.gmail.com")
    EMAIL_PORT: int = _env_int("EMAIL_PORT", 587)
    EMAIL_USER: str = os.getenv("EMAIL_USER", "")
    EMAIL_PASSWORD: str = os.getenv("EMAIL_PASSWORD", "")
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "")
    EMAIL_USE_TLS: bool = _env_bool("EMAIL_USE_TLS", True)
    EMAIL_TIMEOUT: int = 20

    # --- Extraction ---
    MAX_DESCRIPTION_LENGTH: int = 2000

    # --- Scheduler trigger ---
    CRON_SECRET: str = os.getenv("CRON_SECRET", "")

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
        "Cache-Control": "max-age=0",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
        "Referer": "https://www.google.com/",
    }

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DB_PATH: Path = Path(
        os.getenv("PRICEWATCH_DB", str(BASE_DIR / "data" / "products.db"))
    )
    RESULTS_DIR: Path = BASE_DIR / "results"
    LOGS_DIR: Path = BASE_DIR / "logs"
    CONSOLE_LOG_LEVEL: str = os.getenv("PRICEWATCH_LOG_LEVEL", "WARNING")

    # --- Platforms (url marker -> extractor) ---
    PLATFORMS: list[dict[str, str]] = [
        {
            "id": "amazon",
            "label": "Amazon",
            "markers": "amazon.,amzn.",
            "currency": "₹",
            "extractor": (
                "pricewatch.scrapers.amazon_extractor.AmazonExtractor"
            ),
        },
        {
            "id": "flipkart",
            "label": "Flipkart",
            "markers": "flipkart.",
            "currency": "₹",
            "extractor": (
                "pricewatch.scrapers.flipkart_extractor.FlipkartExtractor"
            ),
        },
        {
            "id": "myntra",
            "label": "Myntra",
            "markers": "myntra.",
            "currency": "₹",
            "extractor": (
                "pricewatch.scrapers.myntra_extractor.MyntraExtractor"
            ),
        },
    ]
