# pricewatch/notifications/mailer.py

"""Outbound email transport.

Sends one HTML message to many recipients over SMTP. Supports
STARTTLS (587) or implicit SSL (465). Recipients go in the envelope
only, so subscribers never see each other's addresses.
"""

import logging
import smtplib
import ssl
from collections.abc import Sequence
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Protocol

from pricewatch.config.settings import Settings
from pricewatch.errors import MailError


@dataclass(frozen=True)
class MailResult:
    """Outcome of a single send call."""

    success: bool
    error: str | None = None
    message_id: str | None = None


class Mailer(Protocol):
    """Anything that can deliver an HTML email to a list of recipients."""

    def send(
        self, html_body: str, subject: str, recipients: Sequence[str]
    ) -> MailResult: ...


class SmtpMailer:
    """SMTP implementation of :class:`Mailer`. Never raises from ``send``."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()
        self.logger = logging.getLogger("pricewatch.mailer")

    def _sender(self) -> str:
        return self.settings.EMAIL_FROM or self.settings.EMAIL_USER

    def _build_message(
        self, html_body: str, subject: str, sender: str
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = sender
        msg["Message-ID"] = make_msgid(domain=sender.rpartition("@")[2] or None)
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(html_body, subtype="html")
        return msg

    def _deliver(self, msg: EmailMessage, recipients: list[str]) -> None:
        s = self.settings
        if not (s.EMAIL_HOST and s.EMAIL_USER and s.EMAIL_PASSWORD):
            raise MailError("email configuration incomplete")

        context = ssl.create_default_context()
        if s.EMAIL_USE_TLS and int(s.EMAIL_PORT) == 587:
            with smtplib.SMTP(
                s.EMAIL_HOST, s.EMAIL_PORT, timeout=s.EMAIL_TIMEOUT
            ) as smtp:
                smtp.ehlo()
                smtp.starttls(context=context)
                smtp.login(s.EMAIL_USER, s.EMAIL_PASSWORD)
                smtp.send_message(msg, to_addrs=recipients)
        else:
            with smtplib.SMTP_SSL(
                s.EMAIL_HOST,
                s.EMAIL_PORT,
                context=context,
                timeout=s.EMAIL_TIMEOUT,
            ) as smtp:
                smtp.login(s.EMAIL_USER, s.EMAIL_PASSWORD)
                smtp.send_message(msg, to_addrs=recipients)

    def send(
        self, html_body: str, subject: str, recipients: Sequence[str]
    ) -> MailResult:
        """Send *html_body* to every address in *recipients* at once."""
        to_addrs = [r for r in recipients if r]
        if not to_addrs:
            return MailResult(success=False, error="no recipients")

        sender = self._sender()
        if not sender:
            self.logger.error(
                "Email config incomplete; set EMAIL_USER and EMAIL_PASSWORD"
            )
            return MailResult(
                success=False, error="email configuration incomplete"
            )

        try:
            msg = self._build_message(html_body, subject, sender)
            self._deliver(msg, to_addrs)
        except MailError as exc:
            self.logger.error(
                "Email config incomplete; set EMAIL_USER and EMAIL_PASSWORD"
            )
            return MailResult(success=False, error=str(exc))
        except ValueError as exc:
            self.logger.error("Cannot build email %r: %s", subject, exc)
            return MailResult(
                success=False, error=f"invalid message: {exc}"
            )
        except (smtplib.SMTPException, OSError) as exc:
            self.logger.exception("Failed to send email '%s'", subject)
            return MailResult(
                success=False, error=f"{type(exc).__name__}: {exc}"
            )

        self.logger.info(
            "Email sent to %d recipient(s) (subject=%s)",
            len(to_addrs),
            subject,
        )
        return MailResult(success=True, message_id=str(msg["Message-ID"]))
