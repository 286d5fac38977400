# pricewatch/notifications/email_composer.py

"""Render subject and HTML body for each notification kind."""

from dataclasses import dataclass
from datetime import datetime
from html import escape

from pricewatch.errors import InvalidNotificationKind
from pricewatch.models.notification import (
    EmailContent,
    EmailProductInfo,
    NotificationKind,
)

_SUBJECT_TITLE_LIMIT = 20

_RED = "#e03838"
_GREEN = "#2e8b57"
_BLUE = "#4285f4"


@dataclass(frozen=True)
class _Template:
    subject: str
    heading: str
    intro: str
    aside_title: str
    aside_html: str


def shorten_title(title: str, limit: int = _SUBJECT_TITLE_LIMIT) -> str:
    """Collapse whitespace, then cut to *limit* characters plus an ellipsis."""
    title = " ".join(title.split())
    return f"{title[:limit]}..." if len(title) > limit else title


def _group_indian(whole: int) -> str:
    """Digit grouping of the lakh/crore system: 12,34,567."""
    digits = str(whole)
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups: list[str] = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups) + "," + tail


def format_price(value: float, currency: str = "₹") -> str:
    """``₹1,23,456`` style price (two decimals only when needed)."""
    negative = value < 0
    cents = round(abs(value) * 100)
    whole, frac = divmod(cents, 100)
    text = _group_indian(whole)
    if frac:
        text = f"{text}.{frac:02d}"
    return f"{'-' if negative else ''}{currency}{text}"


def _discount_percent(info: EmailProductInfo) -> int:
    if (
        not info.original_price
        or not info.current_price
        or info.original_price <= info.current_price
    ):
        return 0
    return round(
        (info.original_price - info.current_price) / info.original_price * 100
    )


def _price_html(info: EmailProductInfo) -> str:
    html = (
        f'<span style="font-size: 20px; font-weight: bold; color: {_RED};">'
        f"{escape(format_price(info.current_price, info.currency))}</span>"
    )
    if info.original_price > info.current_price:
        html += (
            '<span style="text-decoration: line-through; color: #999; '
            'margin-left: 8px;">'
            f"{escape(format_price(info.original_price, info.currency))}"
            "</span>"
            f'<span style="background-color: {_RED}; color: white; '
            "font-size: 12px; padding: 2px 6px; border-radius: 3px; "
            f'margin-left: 8px;">-{_discount_percent(info)}%</span>'
        )
    return html


def _stock_badge(kind: NotificationKind, info: EmailProductInfo) -> str:
    if kind is NotificationKind.CHANGE_OF_STOCK:
        return (
            f'<span style="color: {_GREEN}; font-weight: bold; '
            "background-color: #e8f5e9; padding: 3px 8px; "
            'border-radius: 3px;">✓ Now In Stock</span>'
        )
    if info.is_out_of_stock:
        return (
            f'<span style="color: {_RED}; font-weight: bold;">'
            "Currently Out of Stock</span>"
        )
    return (
        f'<span style="color: {_GREEN}; font-weight: bold;">In Stock</span>'
    )


def _template(
    kind: NotificationKind, short_title: str, threshold: float,
) -> _Template:
    threshold_text = f"{threshold:g}"
    if kind is NotificationKind.WELCOME:
        return _Template(
            subject=f"Price Tracking Confirmed for {short_title}",
            heading="Price Tracking Confirmation",
            intro="You are now tracking this product with PriceWise!",
            aside_title="What happens next?",
            aside_html=(
                '<p style="margin-bottom: 10px; color: #666;">'
                "We'll monitor this product and send you alerts when:</p>"
                '<ul style="color: #666; padding-left: 20px;">'
                "<li>The price drops significantly</li>"
                "<li>The product comes back in stock "
                "(if it's currently unavailable)</li>"
                "<li>There's a major discount available</li></ul>"
            ),
        )
    if kind is NotificationKind.CHANGE_OF_STOCK:
        return _Template(
            subject=f"{short_title} is Now Back in Stock!",
            heading="Back in Stock Alert!",
            intro="Good news! A product you're tracking is now available.",
            aside_title="Act quickly!",
            aside_html=(
                '<p style="color: #666;">Products often sell out rapidly '
                "when they come back in stock. Don't miss this opportunity "
                "if you've been waiting for this item.</p>"
            ),
        )
    if kind is NotificationKind.LOWEST_PRICE:
        return _Template(
            subject=f"Lowest Price Alert: {short_title}",
            heading="Lowest Price Alert!",
            intro=(
                "A product you're tracking has reached its lowest "
                "price ever!"
            ),
            aside_title="Why is this important?",
            aside_html=(
                '<p style="color: #666;">This is the lowest price we\'ve '
                "ever seen for this product. It might be the perfect time "
                "to make your purchase if you've been waiting for a price "
                "drop.</p>"
            ),
        )
    if kind is NotificationKind.THRESHOLD_MET:
        return _Template(
            subject=f"Big Discount Alert: {short_title}",
            heading="Major Discount Alert!",
            intro=(
                "A product you're tracking now has a discount of "
                f"{threshold_text}% or more!"
            ),
            aside_title="Limited-time opportunity!",
            aside_html=(
                '<p style="color: #666;">Major discounts like this don\'t '
                "typically last long. We recommend checking out the deal "
                "soon if you're interested in this product.</p>"
            ),
        )
    raise InvalidNotificationKind(
        f"No email template for notification kind {kind.value}"
    )


def _banner(kind: NotificationKind, threshold: float) -> str:
    if kind is NotificationKind.LOWEST_PRICE:
        return (
            '<div style="background-color: #ffe8e8; padding: 8px; '
            'border-radius: 5px; margin-bottom: 15px;">'
            f'<span style="color: {_RED}; font-weight: bold;">'
            "★ LOWEST PRICE DETECTED ★</span></div>"
        )
    if kind is NotificationKind.THRESHOLD_MET:
        return (
            '<div style="background-color: #ffe8e8; padding: 8px; '
            'border-radius: 5px; margin-bottom: 15px; text-align: center;">'
            f'<span style="color: {_RED}; font-weight: bold; '
            f'font-size: 16px;">DISCOUNT OVER {threshold:g}% OFF!</span>'
            "</div>"
        )
    return ""


def compose(
    kind: NotificationKind,
    info: EmailProductInfo,
    threshold_percent: float = 40.0,
) -> EmailContent:
    """Render the email for *kind* about *info*.

    Raises:
        InvalidNotificationKind: for ``NotificationKind.NONE``.
    """
    if kind is NotificationKind.NONE:
        raise InvalidNotificationKind(
            "NONE has no email template; do not compose for it"
        )

    template = _template(kind, shorten_title(info.title), threshold_percent)
    title = escape(info.title)
    url = escape(info.url, quote=True)
    image_html = (
        f'<img src="{escape(info.image, quote=True)}" alt="{title}" '
        'style="max-width: 100%; border-radius: 5px;">'
        if info.image
        else ""
    )

    body = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; border: 1px solid #e0e0e0; border-radius: 10px;">
  <div style="text-align: center; margin-bottom: 20px;">
    <h1 style="color: #4a4a4a; font-size: 24px; margin-bottom: 10px;">{template.heading}</h1>
    <p style="color: #666; font-size: 16px;">{escape(template.intro)}</p>
  </div>
  <div style="background-color: #f9f9f9; border-radius: 8px; padding: 15px; margin-bottom: 20px;">
    <table style="width: 100%; border-collapse: collapse;">
      <tr>
        <td style="padding: 10px; vertical-align: top; width: 30%;">{image_html}</td>
        <td style="padding: 10px; vertical-align: top;">
          <h2 style="color: #333; font-size: 18px; margin-top: 0; margin-bottom: 10px;">{title}</h2>
          <div style="margin-bottom: 15px;">{_price_html(info)}</div>
          <p style="margin-bottom: 15px;">{_stock_badge(kind, info)}</p>
          {_banner(kind, threshold_percent)}
          <a href="{url}" style="display: inline-block; background-color: {_BLUE}; color: white; text-decoration: none; padding: 10px 15px; border-radius: 5px; font-weight: bold;">View Product</a>
        </td>
      </tr>
    </table>
  </div>
  <div style="margin-bottom: 20px; border-left: 3px solid {_BLUE}; padding-left: 15px;">
    <h3 style="color: {_BLUE}; margin-top: 0;">{template.aside_title}</h3>
    {template.aside_html}
  </div>
  <div style="text-align: center; font-size: 12px; color: #999; margin-top: 30px;">
    <p>© {datetime.now().year} PriceWise. All rights reserved.</p>
    <p>If you no longer wish to receive these emails, you can unsubscribe by visiting your account settings.</p>
  </div>
</div>
"""
    return EmailContent(subject=template.subject, html_body=body.strip())
