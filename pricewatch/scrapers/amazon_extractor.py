# pricewatch/scrapers/amazon_extractor.py

"""Extractor for amazon.in / amazon.com product pages."""

import json

from pricewatch.scrapers.base_extractor import (
    BaseExtractor,
    Candidate,
    Page,
    attr_of,
    contains_text,
    exists,
    int_of,
    meta_of,
    normalise_image_url,
    number_of,
    price_of,
    text_of,
)


def _dynamic_image(selector: str) -> Candidate:
    """Largest image from an ``data-a-dynamic-image`` JSON map.

    The attribute maps image URLs to ``[width, height]`` and survives
    markup redesigns far better than the ``src`` of the visible tag.
    """

    def candidate(page: Page) -> str | None:
        el = page.soup.select_one(selector)
        if el is None:
            return None
        raw = el.get("data-a-dynamic-image")
        if not raw:
            return None
        images: dict[str, list[int]] = json.loads(str(raw))
        if not images:
            return None
        best = max(
            images.items(),
            key=lambda item: item[1][0] * item[1][1] if len(item[1]) == 2 else 0,
        )
        return normalise_image_url(best[0])

    return candidate


def _img_src(selector: str) -> Candidate:
    """Image URL from a plain ``<img>`` fallback."""
    inner = attr_of(selector, "data-old-hires", "src")

    def candidate(page: Page) -> str | None:
        return normalise_image_url(inner(page))

    return candidate


class AmazonExtractor(BaseExtractor):
    """Extractor for Amazon product detail pages."""

    platform = "amazon"
    label = "Amazon"
    default_category = "category"

    TITLE = (
        text_of("#productTitle"),
        text_of(".product-title-word-break"),
        meta_of("og:title"),
        meta_of("title"),
    )
    CURRENT_PRICE = (
        price_of(".priceToPay span.a-price-whole"),
        price_of(".priceToPay .a-offscreen"),
        price_of("#corePriceDisplay_desktop_feature_div .a-price .a-offscreen"),
        price_of("#corePrice_feature_div .a-price .a-offscreen"),
        price_of(".a-button-selected .a-color-base"),
        price_of("#priceblock_dealprice"),
        price_of("#priceblock_ourprice"),
        price_of(".a-price .a-offscreen"),
    )
    ORIGINAL_PRICE = (
        price_of(".basisPrice .a-offscreen"),
        price_of(".a-price.a-text-price span.a-offscreen"),
        price_of("#listPrice"),
        price_of("#priceblock_listprice"),
    )
    OUT_OF_STOCK = (
        contains_text(
            "#availability",
            "out of stock",
            "currently unavailable",
            "unavailable",
        ),
        exists("#outOfStock"),
    )
    IMAGE = (
        _dynamic_image("#imgBlkFront"),
        _dynamic_image("#landingImage"),
        _dynamic_image("#main-image"),
        _img_src("img#landingImage"),
        _img_src("img.a-dynamic-image"),
        _img_src("img#main-image"),
        meta_of("og:image"),
    )
    CURRENCY = (
        text_of(".priceToPay .a-price-symbol"),
        text_of(".a-price-symbol"),
    )
    CATEGORY = (
        text_of("#wayfinding-breadcrumbs_feature_div ul li a"),
        attr_of("#nav-subnav", "data-category"),
    )
    STARS = (
        number_of(attr_of("#acrPopover", "title")),
        number_of("#averageCustomerReviews .a-icon-alt"),
        number_of("a.a-popover-trigger.a-declarative .a-size-base.a-color-base"),
        number_of("i.a-icon-star span.a-icon-alt"),
    )
    REVIEWS = (
        int_of("#acrCustomerReviewLink #acrCustomerReviewText"),
        int_of("#acrCustomerReviewText"),
        int_of('[data-hook="total-review-count"]'),
    )

    def description_sections(self, page: Page) -> list[str]:
        """Product description, feature bullets, expander and tech specs."""
        soup = page.soup
        sections: list[str] = []

        desc = soup.select_one("#productDescription")
        if desc is not None:
            paragraphs = [
                p.get_text(" ", strip=True) for p in desc.select("p, h3")
            ]
            text = "\n".join(p for p in paragraphs if p) or desc.get_text(
                " ", strip=True
            )
            if text:
                sections.append(text)

        bullets = [
            li.get_text(" ", strip=True)
            for li in soup.select("#feature-bullets ul li")
        ]
        bullets = [b for b in bullets if b]
        if bullets:
            sections.append("\n".join(f"• {b}" for b in bullets))

        expander = [
            p.get_text(" ", strip=True)
            for p in soup.select(".a-expander-content p")
        ]
        expander = [e for e in expander if e]
        if expander:
            sections.append("\n".join(expander))

        specs: list[str] = []
        for row in soup.select(
            "#productDetails_techSpec_section_1 tr, "
            "#productOverview_feature_div tr"
        ):
            cells = row.select("th, td")
            if len(cells) >= 2:
                label = cells[0].get_text(" ", strip=True)
                value = cells[-1].get_text(" ", strip=True)
                if label and value:
                    specs.append(f"{label}: {value}")
        if specs:
            sections.append("Specifications\n" + "\n".join(specs))

        return sections
