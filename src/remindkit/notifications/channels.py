"""Outbound transports.

Each channel exposes ``send_message(destination, message)``, returns
``None`` on success, and raises :class:`TransientChannelError` on any
transport failure.  Every call is bounded by the channel's configured
timeout.
"""

from __future__ import annotations

import contextlib
import json
import logging
import re
import smtplib
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TYPE_CHECKING, Protocol

from remindkit.core.errors import ConfigurationMissing, TransientChannelError
from remindkit.core.types import ChannelKind

if TYPE_CHECKING:
    from remindkit.config.settings import SmtpSettings, WhatsAppSettings

log = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True)
class Destination:
    address: str
    instance: str | None = None


@dataclass(frozen=True)
class Message:
    body: str
    subject: str | None = None


class Channel(Protocol):
    kind: ChannelKind

    def send_message(self, destination: Destination, message: Message) -> None: ...


def format_phone_number(phone: str | None) -> str:
    """Normalise a Brazilian phone number to ``55 + DDD + number`` digits.

    * 13 digits starting with 55: already international
    * 11 digits: DDD + mobile, country code added
    * 10 digits: DDD + legacy 8-digit mobile, the ninth digit is inserted
    * 9 digits: mobile without DDD, São Paulo (11) assumed

    Anything else is returned as bare digits.
    """
    if not phone:
        return ""
    digits = _NON_DIGITS.sub("", phone)
    if len(digits) == 13 and digits.startswith("55"):  # noqa: PLR2004
        return digits
    if len(digits) == 11:  # noqa: PLR2004
        return f"55{digits}"
    if len(digits) == 10:  # noqa: PLR2004
        return f"55{digits[:2]}9{digits[2:]}"
    if len(digits) == 9:  # noqa: PLR2004
        return f"5511{digits}"
    return digits


class WhatsAppChannel:
    """Sends text messages through an Evolution-style WhatsApp gateway.

    ``POST {api_url}/message/sendText/{instance}`` with an ``apikey``
    header and a ``{"number", "text"}`` JSON body.  The instance is the
    tenant's connected WhatsApp session.
    """

    kind = ChannelKind.WHATSAPP

    def __init__(self, settings: WhatsAppSettings) -> None:
        self._settings = settings

    def send_message(self, destination: Destination, message: Message) -> None:
        if not self._settings.enabled:
            msg = "WhatsApp channel is disabled"
            raise ConfigurationMissing(msg)
        if not destination.instance:
            msg = "Tenant has no WhatsApp instance configured"
            raise ConfigurationMissing(msg)
        number = format_phone_number(destination.address)
        if not number:
            msg = "Destination has no phone number"
            raise ConfigurationMissing(msg)

        url = (
            f"{self._settings.api_url}/message/sendText/"
            f"{urllib.parse.quote(destination.instance, safe='')}"
        )
        payload = json.dumps({"number": number, "text": message.body}).encode("utf-8")
        req = urllib.request.Request(
            url,
            data=payload,
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "apikey": self._settings.api_key,
            },
        )

        try:
            with urllib.request.urlopen(req, timeout=self._settings.timeout_seconds) as resp:
                resp.read()
        except urllib.error.HTTPError as exc:
            body = ""
            with contextlib.suppress(OSError):
                body = exc.read().decode("utf-8", errors="replace")[:200]
            log.warning(
                "WhatsApp gateway returned HTTP %d for instance %s: %s",
                exc.code,
                destination.instance,
                body,
            )
            raise TransientChannelError(
                "whatsapp",
                body or str(exc.reason),
                status=exc.code,
            ) from exc
        except urllib.error.URLError as exc:
            raise TransientChannelError("whatsapp", f"network error: {exc.reason}") from exc
        except (TimeoutError, OSError) as exc:
            raise TransientChannelError("whatsapp", str(exc) or "timed out") from exc

        log.debug("WhatsApp message accepted for %s via %s", number, destination.instance)


class EmailChannel:
    """Sends HTML email over SMTP, one connection per message."""

    kind = ChannelKind.EMAIL

    def __init__(self, settings: SmtpSettings) -> None:
        self._smtp = settings

    def send_message(self, destination: Destination, message: Message) -> None:
        if not self._smtp.enabled:
            msg = "SMTP channel is disabled"
            raise ConfigurationMissing(msg)
        if not destination.address:
            msg = "Destination has no email address"
            raise ConfigurationMissing(msg)

        mime = MIMEMultipart("alternative")
        mime["From"] = self._smtp.from_address
        mime["To"] = destination.address
        mime["Subject"] = message.subject or ""
        mime.attach(MIMEText(message.body, "html", "utf-8"))

        try:
            with smtplib.SMTP(
                self._smtp.host,
                self._smtp.port,
                timeout=self._smtp.timeout_seconds,
            ) as server:
                server.ehlo()
                if self._smtp.use_tls:
                    server.starttls()
                    server.ehlo()
                if self._smtp.username:
                    server.login(self._smtp.username, self._smtp.password)
                server.sendmail(
                    self._smtp.from_address,
                    [destination.address],
                    mime.as_string(),
                )
        except (smtplib.SMTPException, OSError) as exc:
            raise TransientChannelError("email", str(exc) or type(exc).__name__) from exc
