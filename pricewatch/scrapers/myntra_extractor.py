# pricewatch/scrapers/myntra_extractor.py

"""Extractor for myntra.com product pages.

Myntra renders most of the page client-side; the server HTML embeds the
full product record as ``window.__myx = {...}``. Every field tries that
``pdpData`` record first and falls back to the server-rendered DOM.
"""

import re
from typing import Any

from bs4 import BeautifulSoup

from pricewatch.scrapers.base_extractor import (
    BaseExtractor,
    Candidate,
    Page,
    attr_of,
    data_at,
    exists,
    extract_json_blob,
    int_of,
    meta_of,
    normalise_image_url,
    number_of,
    price_of,
    text_of,
)

_BACKGROUND_URL_RE = re.compile(
    r"background-image:\s*url\(\s*(['\"]?)(.*?)\1\s*\)", re.IGNORECASE
)


def _image(source: Candidate) -> Candidate:
    def candidate(page: Page) -> str | None:
        value = source(page)
        return normalise_image_url(value) if isinstance(value, str) else None

    return candidate


def _album_image(page: Page) -> str | None:
    album: dict[str, Any] = page.data["media"]["albums"][0]
    url = album.get("url")
    if not url and album.get("images"):
        url = album["images"][0].get("imageURL") or album["images"][0].get(
            "src"
        )
    return normalise_image_url(url) if isinstance(url, str) else None


def _background_image(page: Page) -> str | None:
    el = page.soup.select_one(
        ".image-grid-imageContainer .image-grid-image"
    ) or page.soup.select_one(".image-grid-image")
    if el is None:
        return None
    match = _BACKGROUND_URL_RE.search(str(el.get("style", "")))
    return normalise_image_url(match.group(2)) if match else None


def _dom_title(page: Page) -> str | None:
    brand = page.soup.select_one(".pdp-title")
    name = page.soup.select_one(".pdp-name")
    parts = [
        el.get_text(" ", strip=True) for el in (brand, name) if el is not None
    ]
    return " ".join(p for p in parts if p) or None


def _verbiage_selling_price(page: Page) -> str | None:
    """"Selling Price" line of the MRP breakdown block."""
    for amount in page.soup.select(".pdp-mrp-verbiage-amt"):
        label = amount.find_previous_sibling()
        if label is not None and "selling price" in label.get_text(
            " ", strip=True
        ).lower():
            return amount.get_text(" ", strip=True)
    return None


def _sizes_all_unavailable(page: Page) -> bool | None:
    sizes: list[dict[str, Any]] = page.data["sizes"]
    if not sizes:
        return None
    return True if not any(s.get("available") for s in sizes) else None


def _flag_out_of_stock(page: Page) -> bool | None:
    return True if page.data["flags"]["outOfStock"] else None


class MyntraExtractor(BaseExtractor):
    """Extractor for Myntra product detail pages."""

    platform = "myntra"
    label = "Myntra"
    default_category = "Fashion"
    placeholder_image = (
        "https://constant.myntassets.com/web/assets/img/"
        "MyntraWebSprite_27_01_2021.png"
    )

    TITLE = (
        data_at("name"),
        _dom_title,
        text_of("h1"),
        meta_of("og:title"),
        text_of("title"),
    )
    CURRENT_PRICE = (
        price_of(data_at("price", "discounted")),
        price_of(".pdp-discount-container .pdp-price strong"),
        price_of(".pdp-price strong"),
        price_of(_verbiage_selling_price),
    )
    ORIGINAL_PRICE = (
        price_of(data_at("price", "mrp")),
        price_of(data_at("mrp")),
        price_of(".pdp-discount-container .pdp-mrp s"),
        price_of(".pdp-mrp s"),
    )
    OUT_OF_STOCK = (
        _flag_out_of_stock,
        _sizes_all_unavailable,
        exists(".pdp-out-of-stock"),
        exists(".size-buttons-out-of-stock"),
    )
    IMAGE = (
        _image(data_at("shoppableLooks", "src")),
        _album_image,
        _image(data_at("colours", 0, "image")),
        _background_image,
        _image(attr_of('img[src*="assets.myntassets.com"]', "src")),
        _image(attr_of('img[src*="myntra"]', "src")),
        _image(attr_of(".image-grid-image img", "src")),
        _image(attr_of(".pdp-image img", "src")),
        _image(meta_of("og:image")),
    )
    CATEGORY = (
        data_at("analytics", "articleType"),
        data_at("articleType", "typeName"),
    )
    STARS = (
        number_of(data_at("ratings", "averageRating")),
        number_of(".index-overallRating div"),
        number_of(".index-overallRating"),
    )
    REVIEWS = (
        int_of(data_at("ratings", "totalCount")),
        int_of(".index-ratingsCount"),
    )

    def structured_data(self, soup: BeautifulSoup) -> dict[str, Any]:
        """The ``pdpData`` record from the inline ``window.__myx`` blob."""
        blob = extract_json_blob(soup, "window.__myx =")
        if not blob:
            self.logger.debug("[myntra] No window.__myx blob on page")
            return {}
        pdp = blob.get("pdpData")
        return pdp if isinstance(pdp, dict) else {}

    def description_sections(self, page: Page) -> list[str]:
        """Structured ``productDetails``, then the DOM description/specs."""
        sections: list[str] = []

        details = page.data.get("productDetails")
        if isinstance(details, list):
            for detail in details:
                if not isinstance(detail, dict):
                    continue
                heading = str(detail.get("title") or "").strip()
                raw = str(detail.get("description") or "")
                body = BeautifulSoup(
                    re.sub(r"<br\s*/?>", "\n", raw, flags=re.IGNORECASE),
                    "lxml",
                ).get_text().strip()
                text = "\n\n".join(p for p in (heading, body) if p)
                if text:
                    sections.append(text)
        if sections:
            return sections

        soup = page.soup
        for el in soup.select(".pdp-product-description-content"):
            text = el.get_text("\n", strip=True)
            if text:
                sections.append(text)

        specs: list[str] = []
        for row in soup.select(".index-tableContainer .index-row"):
            key = row.select_one(".index-rowKey")
            value = row.select_one(".index-rowValue")
            if key is not None and value is not None:
                k = key.get_text(" ", strip=True)
                v = value.get_text(" ", strip=True)
                if k and v:
                    specs.append(f"{k}: {v}")
        if specs:
            sections.append("Specifications\n" + "\n".join(specs))

        return sections
