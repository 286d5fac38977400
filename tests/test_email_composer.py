# tests/test_email_composer.py

"""Tests for email subject/body rendering."""

import unittest
from datetime import datetime

from pricewatch.errors import InvalidNotificationKind
from pricewatch.models.notification import EmailProductInfo, NotificationKind
from pricewatch.notifications.email_composer import (
    compose,
    format_price,
    shorten_title,
)


def _info(**overrides: object) -> EmailProductInfo:
    values: dict[str, object] = {
        "title": "Apple iPhone 15 (128 GB) - Black",
        "url": "https://www.amazon.in/dp/B0CHX1W1XY",
        "image": "https://m.media-amazon.com/images/I/iphone.jpg",
        "current_price": 65999.0,
        "original_price": 79900.0,
        "discount_rate": 17,
    }
    values.update(overrides)
    return EmailProductInfo(**values)  # type: ignore[arg-type]


class TestFormatting(unittest.TestCase):
    """Tests for price and title helpers."""

    def test_indian_grouping(self) -> None:
        """Lakh/crore grouping: last three digits, then pairs."""
        self.assertEqual(format_price(999), "₹999")
        self.assertEqual(format_price(1299), "₹1,299")
        self.assertEqual(format_price(123456), "₹1,23,456")
        self.assertEqual(format_price(12345678), "₹1,23,45,678")

    def test_decimals_only_when_needed(self) -> None:
        """Whole prices have no decimals; others keep two."""
        self.assertEqual(format_price(1499.5), "₹1,499.50")
        self.assertEqual(format_price(1499.0), "₹1,499")

    def test_custom_currency(self) -> None:
        """The currency symbol is a prefix."""
        self.assertEqual(format_price(2500, "$"), "$2,500")

    def test_shorten_title(self) -> None:
        """Titles longer than 20 characters are cut with an ellipsis."""
        self.assertEqual(
            shorten_title("Apple iPhone 15 (128 GB) - Black"),
            "Apple iPhone 15 (128...",
        )
        self.assertEqual(shorten_title("Short"), "Short")

    def test_shorten_title_collapses_whitespace(self) -> None:
        """Scraped titles with line breaks still make a one-line subject."""
        self.assertEqual(
            shorten_title("boAt Rockerz\n  450\tBluetooth Headphones"),
            "boAt Rockerz 450 Blu...",
        )

    def test_subject_is_single_line(self) -> None:
        content = compose(
            NotificationKind.LOWEST_PRICE, _info(title="Foo\r\nBar")
        )
        self.assertEqual(content.subject, "Lowest Price Alert: Foo Bar")


class TestCompose(unittest.TestCase):
    """Tests for each notification kind's email."""

    def test_subjects(self) -> None:
        """Every kind has its own subject line."""
        expected = {
            NotificationKind.WELCOME: (
                "Price Tracking Confirmed for Apple iPhone 15 (128..."
            ),
            NotificationKind.CHANGE_OF_STOCK: (
                "Apple iPhone 15 (128... is Now Back in Stock!"
            ),
            NotificationKind.LOWEST_PRICE: (
                "Lowest Price Alert: Apple iPhone 15 (128..."
            ),
            NotificationKind.THRESHOLD_MET: (
                "Big Discount Alert: Apple iPhone 15 (128..."
            ),
        }
        for kind, subject in expected.items():
            with self.subTest(kind=kind):
                self.assertEqual(compose(kind, _info()).subject, subject)

    def test_none_raises(self) -> None:
        """There is no email for NONE."""
        with self.assertRaises(InvalidNotificationKind):
            compose(NotificationKind.NONE, _info())

    def test_none_error_is_value_error(self) -> None:
        """Callers may catch it as a plain ValueError."""
        with self.assertRaises(ValueError):
            compose(NotificationKind.NONE, _info())

    def test_body_prices_and_badge(self) -> None:
        """Current price, struck original and discount badge."""
        body = compose(NotificationKind.LOWEST_PRICE, _info()).html_body
        self.assertIn("₹65,999", body)
        self.assertIn("line-through", body)
        self.assertIn("₹79,900", body)
        self.assertIn("-17%", body)
        self.assertIn("LOWEST PRICE DETECTED", body)

    def test_no_strikethrough_without_discount(self) -> None:
        """Equal prices show only the current price."""
        body = compose(
            NotificationKind.WELCOME,
            _info(original_price=65999.0, discount_rate=0),
        ).html_body
        self.assertNotIn("line-through", body)

    def test_stock_badges(self) -> None:
        """Welcome shows stock state; restock shows the back-in-stock badge."""
        welcome_out = compose(
            NotificationKind.WELCOME, _info(is_out_of_stock=True)
        ).html_body
        self.assertIn("Currently Out of Stock", welcome_out)
        welcome_in = compose(NotificationKind.WELCOME, _info()).html_body
        self.assertIn("In Stock", welcome_in)
        restock = compose(NotificationKind.CHANGE_OF_STOCK, _info()).html_body
        self.assertIn("✓ Now In Stock", restock)

    def test_threshold_banner_uses_threshold(self) -> None:
        """The discount banner quotes the configured threshold."""
        body = compose(
            NotificationKind.THRESHOLD_MET, _info(), threshold_percent=35
        ).html_body
        self.assertIn("DISCOUNT OVER 35% OFF!", body)
        self.assertIn("35% or more", body)

    def test_user_text_escaped(self) -> None:
        """Titles and URLs cannot inject markup."""
        body = compose(
            NotificationKind.WELCOME,
            _info(title="<script>alert(1)</script>", url='https://a.in/"x'),
        ).html_body
        self.assertNotIn("<script>", body)
        self.assertIn("&lt;script&gt;", body)
        self.assertIn("https://a.in/&quot;x", body)

    def test_footer_year_and_link(self) -> None:
        """Footer carries the current year; the button links the product."""
        body = compose(NotificationKind.WELCOME, _info()).html_body
        self.assertIn(f"© {datetime.now().year}", body)
        self.assertIn('href="https://www.amazon.in/dp/B0CHX1W1XY"', body)

    def test_no_image_no_img_tag(self) -> None:
        """Missing images render no <img>."""
        body = compose(NotificationKind.WELCOME, _info(image="")).html_body
        self.assertNotIn("<img", body)


if __name__ == "__main__":
    unittest.main()
