"""Notification mail rendering and SMTP delivery.

Two delivery strategies are supported:

* ``deliver`` sends and waits; failures raise ``MailDeliveryError`` so the
  caller can answer with an error.
* ``dispatch_in_background`` schedules the send as a task raced against
  ``mail_timeout``.  Its outcome only ever reaches the log; the request that
  started it has already been answered.
"""

import asyncio
import logging
import ssl
import time
from email.errors import MessageError
from email.headerregistry import Address
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Any

import aiosmtplib

from contact_api.config import Settings
from contact_api.models.message import Message
from contact_api.services.sanitizer import escape_html, sanitize

logger = logging.getLogger(__name__)

_TLS_VERSIONS = {
    "TLSv1": ssl.TLSVersion.TLSv1,
    "TLSv1.1": ssl.TLSVersion.TLSv1_1,
    "TLSv1.2": ssl.TLSVersion.TLSv1_2,
    "TLSv1.3": ssl.TLSVersion.TLSv1_3,
}

TEST_SUBJECT = "Test e-mail z kontaktného formulára"
TEST_BODY = "Toto je testovacia správa. Ak ju čítaš, SMTP relay funguje."


class MailDeliveryError(Exception):
    """The SMTP relay refused the message, failed, or timed out."""


def render_text(message: Message) -> str:
    return (
        f"Meno: {message.name}\n"
        f"E-mail: {message.email}\n"
        f"Dátum: {message.created_at}\n"
        f"\n"
        f"Správa:\n{message.message}\n"
    )


def render_html(message: Message) -> str:
    """Render the notification body. Every user-supplied field is escaped."""
    body = escape_html(message.message).replace("\n", "<br/>")
    return (
        f"<p><b>Meno:</b> {escape_html(message.name)}<br/>"
        f"<b>E-mail:</b> {escape_html(message.email)}</p>"
        f"<p><b>Správa:</b><br/>{body}</p>"
    )


class MailDispatcher:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def configured(self) -> bool:
        return self._settings.mail_configured

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _tls_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        context.minimum_version = _TLS_VERSIONS[self._settings.smtp_min_tls]
        return context

    def _envelope(self, to: str, subject: str) -> EmailMessage:
        s = self._settings
        email = EmailMessage()
        email["From"] = Address(s.mail_from_name, addr_spec=s.mail_from)
        email["To"] = to
        email["Subject"] = subject
        email["Date"] = formatdate(localtime=True)
        domain = s.mail_from.rpartition("@")[2] or None
        email["Message-ID"] = make_msgid(domain=domain)
        return email

    def build_message(self, message: Message) -> EmailMessage:
        """Build the notification for a stored submission."""
        subject = self._settings.mail_subject_template.format(name=message.name)
        email = self._envelope(self._settings.mail_to, sanitize(subject))
        if message.email:
            email["Reply-To"] = message.email
        email.set_content(render_text(message))
        email.add_alternative(render_html(message), subtype="html")
        return email

    def build_test_message(self, to: str | None = None) -> EmailMessage:
        email = self._envelope(sanitize(to) or self._settings.mail_to, TEST_SUBJECT)
        email.set_content(TEST_BODY)
        return email

    async def send(self, email: EmailMessage) -> str:
        """Hand ``email`` to the relay and return its Message-ID."""
        s = self._settings
        use_tls = s.smtp_secure
        try:
            await aiosmtplib.send(
                email,
                hostname=s.smtp_host,
                port=s.smtp_port,
                username=s.smtp_user or None,
                password=s.smtp_pass or None,
                use_tls=use_tls,
                # None lets aiosmtplib upgrade when the server offers STARTTLS
                start_tls=False if use_tls else None,
                tls_context=self._tls_context(),
                timeout=s.smtp_timeout,
            )
        except (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError) as e:
            raise MailDeliveryError(f"{type(e).__name__}: {e}") from e

        message_id = str(email["Message-ID"])
        logger.info("Mail %s sent to %s", message_id, email["To"])
        return message_id

    async def deliver(self, message: Message) -> str:
        """Send the notification for ``message`` and wait for the relay."""
        try:
            email = self.build_message(message)
        except (ValueError, TypeError, MessageError) as e:
            raise MailDeliveryError(f"cannot build mail for {message.id}: {e}") from e
        return await self.send(email)

    async def _deliver_with_deadline(self, message: Message) -> None:
        try:
            await asyncio.wait_for(
                self.deliver(message), timeout=self._settings.mail_timeout
            )
        except asyncio.TimeoutError:
            logger.error(
                "Background mail for %s timed out after %.0fs",
                message.id,
                self._settings.mail_timeout,
            )
        except MailDeliveryError as e:
            logger.error("Background mail for %s failed: %s", message.id, e)
        except Exception:
            logger.exception("Unexpected error in background mail for %s", message.id)

    def dispatch_in_background(self, message: Message) -> asyncio.Task[None]:
        """Start delivery without waiting for it. Errors end up in the log only."""
        task = asyncio.create_task(
            self._deliver_with_deadline(message), name=f"mail-{message.id}"
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for outstanding background sends, up to ``timeout`` seconds."""
        if not self._pending:
            return
        done, still_running = await asyncio.wait(set(self._pending), timeout=timeout)
        if still_running:
            logger.warning(
                "%d background mail task(s) still running at shutdown",
                len(still_running),
            )

    async def check_connectivity(self) -> dict[str, Any]:
        """Open (and close) a raw TCP connection to the relay."""
        s = self._settings
        result: dict[str, Any] = {"host": s.smtp_host, "port": s.smtp_port}
        if not s.smtp_host:
            return {**result, "ok": False, "error": "smtp_not_configured"}

        started = time.monotonic()
        try:
            _reader, writer = await asyncio.wait_for(
                asyncio.open_connection(s.smtp_host, s.smtp_port),
                timeout=s.smtp_timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.warning(
                "SMTP connectivity check to %s:%d failed: %s",
                s.smtp_host,
                s.smtp_port,
                e,
            )
            return {**result, "ok": False, "error": type(e).__name__}

        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug("Error closing SMTP probe connection: %s", e)
        latency_ms = round((time.monotonic() - started) * 1000)
        return {**result, "ok": True, "latency_ms": latency_ms}
