# pricewatch/scrapers/flipkart_extractor.py

"""Extractor for flipkart.com product pages."""

import re
from typing import Any

from bs4 import BeautifulSoup, Tag

from pricewatch.scrapers.base_extractor import (
    BaseExtractor,
    Candidate,
    Page,
    attr_of,
    contains_text,
    data_at,
    exists,
    int_of,
    json_ld_product,
    meta_of,
    normalise_image_url,
    number_of,
    price_of,
    text_of,
)

_REVIEWS_RE = re.compile(r"([\d,]+)\s*Reviews?", re.IGNORECASE)

_MAIN_SECTION_SELECTORS = [
    "._1mXcCf.RmoJUa",
    ".RmoJUa",
    ".yN\\+eNk.w9jEaj",
    ".pqHCzB",
]
_HEADING_SELECTOR = "._2THx53, ._3qWObK, ._2jM5ln"
_CONTENT_SELECTOR = "._3zQGRo, ._2cM9lP, ._3nkT-2, p"
_FEATURE_LIST_SELECTOR = "._2418kt ul, ._3nkT-2 ul, ._1QHjUL ul"
_SPEC_TABLE_SELECTOR = "._14cfVK, ._2-riNZ, .X3BRps"

_IMAGE_SELECTORS = [
    "img.DByuf4.IZexXJ.jLEJ7H",
    "img.vU5WPQ",
    "img._396cs4._2amPTt._3qGmMb",
    "img._396cs4",
    "img.q6DClP",
    ".CXW8mj img",
    "._312yBx img",
    "img[data-src]",
    "img[data-srcset]",
]


def _clean_text(text: str) -> str:
    """Collapse whitespace and re-space glued sentences."""
    text = re.sub(r"\s+", " ", text)
    return re.sub(r"\.(?=[A-Za-z])", ". ", text).strip()


def _ld_image(page: Page) -> str | None:
    image: Any = page.data.get("image")
    if isinstance(image, list):
        image = image[0] if image else None
    if isinstance(image, dict):
        image = image.get("url")
    return normalise_image_url(image) if isinstance(image, str) else None


def _ld_offer_price(page: Page) -> Any:
    offers: Any = page.data["offers"]
    if isinstance(offers, list):
        offers = offers[0]
    return offers.get("price") or offers.get("lowPrice")


def _image_from(selector: str) -> Candidate:
    inner = attr_of(selector, "src", "data-src", "data-srcset")

    def candidate(page: Page) -> str | None:
        return normalise_image_url(inner(page))

    return candidate


def _count_in_strip(pattern: re.Pattern[str], *selectors: str) -> Candidate:
    """Count from the "18,015 Ratings & 2,007 Reviews" summary strip."""

    def candidate(page: Page) -> int | None:
        for selector in selectors:
            el = page.soup.select_one(selector)
            if el is None:
                continue
            match = pattern.search(el.get_text(" ", strip=True))
            if match:
                return int(match.group(1).replace(",", ""))
        return None

    return candidate


class FlipkartExtractor(BaseExtractor):
    """Extractor for Flipkart product detail pages."""

    platform = "flipkart"
    label = "Flipkart"
    default_category = "category"
    placeholder_image = (
        "https://static-assets-web.flixcart.com/fk-p-linchpin-web/"
        "fk-cp-zion/img/placeholder_9951d0.svg"
    )

    TITLE = (
        text_of(".VU-ZEz"),
        text_of(".B_NuCI"),
        text_of("h1"),
        data_at("name"),
        meta_of("og:title"),
    )
    CURRENT_PRICE = (
        price_of(".Nx9bqj.CxhGGd"),
        price_of("._30jeq3._16Jk6d"),
        price_of("._30jeq3"),
        price_of(".Nx9bqj"),
        price_of(_ld_offer_price),
    )
    ORIGINAL_PRICE = (
        price_of(".yRaY8j.A6\\+E6v"),
        price_of("._3I9_wc._2p6lqe"),
        price_of("._3I9_wc"),
        price_of(".yRaY8j"),
    )
    OUT_OF_STOCK = (
        exists("._16FRp0"),
        contains_text(".Z8JjpR", "sold out", "currently unavailable"),
        contains_text("._1dVbu9", "sold out", "currently unavailable"),
    )
    IMAGE = (
        _ld_image,
        *(_image_from(selector) for selector in _IMAGE_SELECTORS),
        meta_of("og:image"),
    )
    CATEGORY = (
        text_of("._1MR4o5 ._3GIHBu:nth-of-type(2) a"),
        text_of(".r2CdBx:nth-of-type(2) a"),
        data_at("category"),
    )
    STARS = (
        number_of(text_of("div.XQDdHH", own_text=True)),
        number_of(".XQDdHH._1Quie7"),
        number_of("._3LWZlK"),
        number_of(data_at("aggregateRating", "ratingValue")),
    )
    REVIEWS = (
        _count_in_strip(_REVIEWS_RE, ".Wphh3N", "._2_R_DZ", "._13vcmD"),
        int_of(data_at("aggregateRating", "reviewCount")),
    )

    def structured_data(self, soup: BeautifulSoup) -> dict[str, Any]:
        """The page's JSON-LD ``Product`` object."""
        return json_ld_product(soup)

    @staticmethod
    def _section_text(element: Tag) -> str:
        heading = _clean_text(
            " ".join(
                h.get_text(" ", strip=True)
                for h in element.select(_HEADING_SELECTOR)
            )
        )
        parts = [
            _clean_text(c.get_text(" ", strip=True))
            for c in element.select(_CONTENT_SELECTOR)
        ]
        content = "\n".join(p for p in parts if p)
        if not content:
            content = _clean_text(element.get_text(" ", strip=True))
            if heading:
                content = content.replace(heading, "", 1).strip()
        if heading and content:
            return f"{heading}\n{content}"
        return content or heading

    def description_sections(self, page: Page) -> list[str]:
        """Headline+body sections, feature bullets and spec tables."""
        soup = page.soup
        sections: list[str] = []
        seen: set[int] = set()

        for selector in _MAIN_SECTION_SELECTORS:
            for element in soup.select(selector):
                if id(element) in seen:
                    continue
                seen.add(id(element))
                text = self._section_text(element)
                if text and text not in sections:
                    sections.append(text)

        for ul in soup.select(_FEATURE_LIST_SELECTOR):
            features = [
                f"• {li.get_text(' ', strip=True)}"
                for li in ul.select("li")
                if li.get_text(strip=True)
            ]
            if features:
                sections.append("Features\n" + "\n".join(features))

        for table in soup.select(_SPEC_TABLE_SELECTOR):
            specs: list[str] = []
            for row in table.select("tr, ._3_6Uyw"):
                label_el = row.select_one("td:first-child, ._2k4JXJ")
                value_el = row.select_one("td:last-child, ._3nkT-2")
                if label_el is None or value_el is None:
                    continue
                label = label_el.get_text(" ", strip=True)
                value = value_el.get_text(" ", strip=True)
                if label and value and label != value:
                    specs.append(f"{label}: {value}")
            if specs:
                sections.append("Specifications\n" + "\n".join(specs))

        if not sections:
            for element in soup.select("._1mXcCf, ._3nkT-2, .X3BRps"):
                text = _clean_text(element.get_text(" ", strip=True))
                if text and text not in sections:
                    sections.append(text)

        if not sections:
            ld_description = page.data.get("description")
            if isinstance(ld_description, str) and ld_description.strip():
                sections.append(ld_description.strip())

        return sections
