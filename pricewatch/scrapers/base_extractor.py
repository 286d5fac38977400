# pricewatch/scrapers/base_extractor.py

"""Abstract base class and field-resolution helpers for all extractors.

Every product field is resolved from an ordered list of *candidates*:
small functions taking a :class:`Page` and returning a value or ``None``.
The first candidate producing a non-empty value wins, so markup drift
across A/B-tested page variants only costs a fallback, never the field.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from bs4 import BeautifulSoup

from pricewatch.config.settings import Settings
from pricewatch.errors import ExtractionError
from pricewatch.models.product import ScrapedProduct


@dataclass
class Page:
    """A parsed product page plus any structured data found in it."""

    soup: BeautifulSoup
    url: str = ""
    data: dict[str, Any] = field(
        default_factory=lambda: dict[str, Any]()
    )


Candidate = Callable[[Page], Any]

# Errors a candidate may raise on unexpected markup; such a candidate
# is skipped instead of failing the whole extraction.
_SKIPPABLE = (
    ValueError,
    TypeError,
    KeyError,
    AttributeError,
    IndexError,
)

_PRICE_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_INT_RE = re.compile(r"\d[\d,]*")

_BOILERPLATE = ("warranty", "replacement", "review")

_PRICE_SANITY_LIMIT = 1_000_000


# ── Value parsing ────────────────────────────────────────


def _repair_magnitude(value: float) -> float:
    """Undo obvious digit-concatenation mis-parses of huge prices."""
    if value <= _PRICE_SANITY_LIMIT:
        return value
    if value % 10 == 0:
        divisor = 10
        while value / divisor > 100_000 and divisor < 1_000_000:
            divisor *= 10
        return value / divisor
    digits = str(int(value))
    return float(digits[:5])


def parse_price(text: str | None) -> float | None:
    """Parse a price such as ``'₹1,23,456.00'`` or ``'AED 1,299'``.

    Handles both Western and Indian (lakh) digit grouping, keeps at
    most two decimals and returns ``None`` when no digits are present.
    """
    if not text:
        return None
    match = _PRICE_RE.search(text.replace("\xa0", " "))
    if not match:
        return None
    raw = match.group(0).replace(",", "")
    if "." in raw:
        whole, frac = raw.split(".", 1)
        raw = f"{whole}.{frac[:2]}" if frac else whole
    return _repair_magnitude(float(raw))


def parse_number(text: str | None) -> float | None:
    """Parse the first decimal number in *text* (``'4.3 out of 5'``)."""
    if not text:
        return None
    match = _NUMBER_RE.search(text.replace(",", ""))
    return float(match.group(0)) if match else None


def parse_int(text: str | None) -> int | None:
    """Parse the first grouped integer in *text* (``'2,007 ratings'``)."""
    if not text:
        return None
    match = _INT_RE.search(text)
    if not match:
        return None
    return int(match.group(0).replace(",", ""))


def compute_discount(current: float, original: float) -> int:
    """Whole-percent discount of *current* against *original*."""
    if current > 0 and original > current:
        return round((original - current) / original * 100)
    return 0


def clean_description(
    sections: Sequence[str], max_length: int,
) -> str:
    """Join description sections, dropping boilerplate lines."""
    cleaned: list[str] = []
    for section in sections:
        lines = [
            line.strip()
            for line in section.splitlines()
            if line.strip()
            and not any(w in line.lower() for w in _BOILERPLATE)
        ]
        if lines:
            cleaned.append("\n".join(lines))
    description = "\n\n".join(cleaned)
    if len(description) > max_length:
        description = description[:max_length] + "..."
    return description.strip()


def fallback_description(label: str, url: str) -> str:
    """Generic description used when a page has none."""
    return (
        f"Product available on {label}. "
        f"Please visit {url} for more details."
    )


def normalise_image_url(src: str | None) -> str | None:
    """Absolutise protocol-relative URLs; reject non-http values."""
    if not src:
        return None
    src = src.strip().split(" ")[0]
    if src.startswith("//"):
        src = "https:" + src
    return src if src.startswith("http") else None


# ── Candidate builders ───────────────────────────────────


def resolve(page: Page, candidates: Sequence[Candidate]) -> Any:
    """Return the first non-empty candidate value, or ``None``."""
    for candidate in candidates:
        try:
            value = candidate(page)
        except _SKIPPABLE:
            continue
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value.strip() if isinstance(value, str) else value
    return None


def text_of(selector: str, own_text: bool = False) -> Candidate:
    """Stripped text of the first element matching *selector*."""

    def candidate(page: Page) -> str | None:
        el = page.soup.select_one(selector)
        if el is None:
            return None
        if own_text:
            text = "".join(el.find_all(string=True, recursive=False))
        else:
            text = el.get_text(" ", strip=True)
        return text.strip() or None

    return candidate


def attr_of(selector: str, *attrs: str) -> Candidate:
    """First non-empty attribute among *attrs* of the matched element."""

    def candidate(page: Page) -> str | None:
        el = page.soup.select_one(selector)
        if el is None:
            return None
        for attr in attrs:
            value = el.get(attr)
            if isinstance(value, list):
                value = " ".join(value)
            if value and str(value).strip():
                return str(value).strip()
        return None

    return candidate


def meta_of(name: str) -> Candidate:
    """``content`` of a ``<meta property=...>`` or ``<meta name=...>``."""
    return attr_of(
        f'meta[property="{name}"], meta[name="{name}"]', "content"
    )


def price_of(source: Candidate | str) -> Candidate:
    """Positive price parsed from a selector's text or another candidate."""
    inner = text_of(source) if isinstance(source, str) else source

    def candidate(page: Page) -> float | None:
        raw = inner(page)
        if raw is None:
            return None
        if isinstance(raw, (int, float)):
            value: float | None = float(raw)
        else:
            value = parse_price(str(raw))
        return value if value and value > 0 else None

    return candidate


def number_of(source: Candidate | str) -> Candidate:
    """Positive decimal number from a selector's text or a candidate."""
    inner = text_of(source) if isinstance(source, str) else source

    def candidate(page: Page) -> float | None:
        raw = inner(page)
        if raw is None:
            return None
        value = (
            float(raw)
            if isinstance(raw, (int, float))
            else parse_number(str(raw))
        )
        return value if value and value > 0 else None

    return candidate


def int_of(source: Candidate | str) -> Candidate:
    """Positive integer from a selector's text or a candidate."""
    inner = text_of(source) if isinstance(source, str) else source

    def candidate(page: Page) -> int | None:
        raw = inner(page)
        if raw is None:
            return None
        value = (
            int(raw)
            if isinstance(raw, (int, float))
            else parse_int(str(raw))
        )
        return value if value and value > 0 else None

    return candidate


def data_at(*path: str | int) -> Candidate:
    """Value at a nested key path inside the page's structured data."""

    def candidate(page: Page) -> Any:
        node: Any = page.data
        for key in path:
            node = node[key]
        return node

    return candidate


def contains_text(selector: str, *needles: str) -> Candidate:
    """``True`` when the element's text contains any of *needles*."""

    def candidate(page: Page) -> bool | None:
        el = page.soup.select_one(selector)
        if el is None:
            return None
        text = el.get_text(" ", strip=True).lower()
        return True if any(n in text for n in needles) else None

    return candidate


def exists(selector: str) -> Candidate:
    """``True`` when *selector* matches anything on the page."""

    def candidate(page: Page) -> bool | None:
        return True if page.soup.select_one(selector) else None

    return candidate


# ── Structured data ──────────────────────────────────────


def _balanced_object(text: str, start: int) -> str | None:
    """Slice the JSON object starting at ``text[start] == '{'``."""
    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:idx + 1]
    return None


def extract_json_blob(
    soup: BeautifulSoup, marker: str,
) -> dict[str, Any] | None:
    """Decode the object assigned after *marker* in an inline script.

    E.g. ``extract_json_blob(soup, "window.__myx =")``.
    """
    for script in soup.find_all("script"):
        content = script.string or script.get_text()
        if not content or marker not in content:
            continue
        tail_start = content.index(marker) + len(marker)
        brace = content.find("{", tail_start)
        if brace == -1:
            continue
        raw = _balanced_object(content, brace)
        if raw is None:
            continue
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None


def json_ld_objects(soup: BeautifulSoup) -> list[dict[str, Any]]:
    """All JSON-LD objects on the page, ``@graph`` lists flattened."""
    objects: list[dict[str, Any]] = []
    for script in soup.select('script[type="application/ld+json"]'):
        try:
            data = json.loads(script.string or script.get_text() or "")
        except json.JSONDecodeError:
            continue
        stack: list[Any] = [data]
        while stack:
            node = stack.pop(0)
            if isinstance(node, list):
                stack.extend(node)
            elif isinstance(node, dict):
                if "@graph" in node:
                    stack.extend(node["@graph"])
                objects.append(node)
    return objects


def json_ld_product(soup: BeautifulSoup) -> dict[str, Any]:
    """The first JSON-LD object typed ``Product``, or ``{}``."""
    for obj in json_ld_objects(soup):
        kind = obj.get("@type")
        kinds = kind if isinstance(kind, list) else [kind]
        if "Product" in kinds:
            return obj
    return {}


# ── Base class ───────────────────────────────────────────


class BaseExtractor(ABC):
    """Turn one platform's product page HTML into a ScrapedProduct.

    Subclasses declare the ordered candidate chains per field. The
    base class owns the shared rules: required fields, price
    back-filling, discount computation and field defaults.
    """

    platform: str = ""
    label: str = ""
    default_currency: str = "₹"
    default_category: str = ""
    placeholder_image: str = ""

    TITLE: Sequence[Candidate] = ()
    CURRENT_PRICE: Sequence[Candidate] = ()
    ORIGINAL_PRICE: Sequence[Candidate] = ()
    OUT_OF_STOCK: Sequence[Candidate] = ()
    IMAGE: Sequence[Candidate] = ()
    CURRENCY: Sequence[Candidate] = ()
    CATEGORY: Sequence[Candidate] = ()
    STARS: Sequence[Candidate] = ()
    REVIEWS: Sequence[Candidate] = ()

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()
        self.logger = logging.getLogger(f"pricewatch.{self.platform}")

    def structured_data(self, soup: BeautifulSoup) -> dict[str, Any]:
        """Platform structured data exposed to candidates as ``page.data``."""
        return {}

    @abstractmethod
    def description_sections(self, page: Page) -> list[str]:
        """Ordered description sections found on the page."""
        ...

    def _description(self, page: Page) -> str:
        try:
            sections = self.description_sections(page)
        except _SKIPPABLE:
            self.logger.debug(
                "[%s] description parsing failed", self.platform,
                exc_info=True,
            )
            sections = []
        description = clean_description(
            sections, self.settings.MAX_DESCRIPTION_LENGTH
        )
        return description or fallback_description(self.label, page.url)

    def extract(self, html: str, url: str = "") -> ScrapedProduct:
        """Parse *html* into a ScrapedProduct or raise ExtractionError."""
        if not html or not html.strip():
            raise ExtractionError("empty page", url)

        soup = BeautifulSoup(html, "lxml")
        page = Page(soup=soup, url=url, data=self.structured_data(soup))

        title = resolve(page, self.TITLE)
        current = resolve(page, self.CURRENT_PRICE)
        original = resolve(page, self.ORIGINAL_PRICE)

        if not title or (current is None and original is None):
            self.logger.warning(
                "[%s] Essential fields missing (title=%r, "
                "current=%r, original=%r) for %s",
                self.platform,
                title,
                current,
                original,
                url,
            )
            raise ExtractionError("missing essential fields", url)

        current_price = float(current if current is not None else original)
        original_price = float(original if original is not None else current)
        if original_price < current_price:
            original_price = current_price

        stars = float(resolve(page, self.STARS) or 0.0)
        product = ScrapedProduct(
            url=url,
            platform=self.platform,
            title=str(title),
            current_price=current_price,
            original_price=original_price,
            discount_rate=compute_discount(current_price, original_price),
            is_out_of_stock=bool(resolve(page, self.OUT_OF_STOCK)),
            currency=str(
                resolve(page, self.CURRENCY) or self.default_currency
            ),
            image=str(resolve(page, self.IMAGE) or self.placeholder_image),
            category=str(
                resolve(page, self.CATEGORY) or self.default_category
            ),
            description=self._description(page),
            stars=stars if 0 < stars <= 5 else 0.0,
            reviews_count=int(resolve(page, self.REVIEWS) or 0),
        )
        self.logger.debug(
            "[%s] Extracted '%s' at %s%.2f (orig %.2f, stock=%s)",
            self.platform,
            product.title,
            product.currency,
            product.current_price,
            product.original_price,
            "out" if product.is_out_of_stock else "in",
        )
        return product
