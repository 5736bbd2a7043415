"""Tests for mail rendering and the two delivery strategies."""

import asyncio
import logging
import ssl
from unittest.mock import AsyncMock

import aiosmtplib
import pytest

from contact_api.models.message import Message
from contact_api.services.mailer import (
    MailDeliveryError,
    MailDispatcher,
    render_html,
    render_text,
)


def _msg(**kwargs):
    data = {"name": "Jana", "email": "jana@x.sk", "message": "Ahoj\nsvet"}
    data.update(kwargs)
    return Message(**data)


class TestRendering:
    def test_text_contains_fields(self):
        text = render_text(_msg())
        assert "Meno: Jana" in text
        assert "E-mail: jana@x.sk" in text
        assert "Ahoj\nsvet" in text

    def test_html_escapes_user_input(self):
        html = render_html(_msg(name="<b>x</b>", message="<script>alert(1)</script>"))
        assert "&lt;script&gt;" in html
        assert "<script>" not in html
        assert "&lt;b&gt;x&lt;/b&gt;" in html

    def test_html_turns_newlines_into_breaks(self):
        assert "Ahoj<br/>svet" in render_html(_msg())


class TestBuildMessage:
    def test_envelope(self, settings):
        dispatcher = MailDispatcher(settings)
        email = dispatcher.build_message(_msg())

        assert "no-reply@test.local" in email["From"]
        assert settings.mail_from_name in email["From"]
        assert email["To"] == "owner@test.local"
        assert email["Reply-To"] == "jana@x.sk"
        assert "Jana" in email["Subject"]
        assert email["Message-ID"].endswith("@test.local>")

    def test_has_text_and_html_parts(self, settings):
        email = MailDispatcher(settings).build_message(_msg(message="<i>hi</i>"))
        html_part = email.get_body(preferencelist=("html",))
        text_part = email.get_body(preferencelist=("plain",))
        assert "&lt;i&gt;hi&lt;/i&gt;" in html_part.get_content()
        assert "<i>hi</i>" in text_part.get_content()

    def test_test_message_defaults_to_configured_recipient(self, settings):
        email = MailDispatcher(settings).build_test_message()
        assert email["To"] == "owner@test.local"


class TestSend:
    async def test_implicit_tls(self, settings, mock_smtp):
        dispatcher = MailDispatcher(settings)
        message_id = await dispatcher.deliver(_msg())

        assert message_id.startswith("<")
        kwargs = mock_smtp.call_args.kwargs
        assert kwargs["hostname"] == "smtp.test.local"
        assert kwargs["port"] == 465
        assert kwargs["use_tls"] is True
        assert kwargs["start_tls"] is False
        assert kwargs["username"] == "no-reply@test.local"
        assert kwargs["tls_context"].minimum_version == ssl.TLSVersion.TLSv1_2

    async def test_starttls_when_not_secure(self, settings, mock_smtp):
        settings.smtp_secure = False
        settings.smtp_port = 587
        await MailDispatcher(settings).deliver(_msg())

        kwargs = mock_smtp.call_args.kwargs
        assert kwargs["use_tls"] is False
        assert kwargs["start_tls"] is None

    async def test_smtp_error_raises_delivery_error(self, settings, mock_smtp):
        mock_smtp.side_effect = aiosmtplib.SMTPConnectError("refused")
        with pytest.raises(MailDeliveryError):
            await MailDispatcher(settings).deliver(_msg())

    async def test_os_error_raises_delivery_error(self, settings, mock_smtp):
        mock_smtp.side_effect = OSError("network unreachable")
        with pytest.raises(MailDeliveryError):
            await MailDispatcher(settings).deliver(_msg())


    async def test_unbuildable_header_raises_delivery_error(self, settings, mock_smtp):
        with pytest.raises(MailDeliveryError):
            await MailDispatcher(settings).deliver(_msg(email="jana@x.sk\u2028x"))
        mock_smtp.assert_not_called()


class TestBackgroundDispatch:
    async def test_sends_in_background(self, settings, mock_smtp):
        dispatcher = MailDispatcher(settings)
        task = dispatcher.dispatch_in_background(_msg())
        await task

        mock_smtp.assert_awaited_once()
        assert dispatcher.pending == 0

    async def test_failure_is_logged_not_raised(self, settings, mock_smtp, caplog):
        mock_smtp.side_effect = aiosmtplib.SMTPServerDisconnected("gone")
        dispatcher = MailDispatcher(settings)

        with caplog.at_level(logging.ERROR):
            await dispatcher.dispatch_in_background(_msg())

        assert "failed" in caplog.text

    async def test_timeout_is_logged_not_raised(self, settings, mocker, caplog):
        settings.mail_timeout = 0.05

        async def _hang(*args, **kwargs):
            await asyncio.sleep(10)

        mocker.patch("contact_api.services.mailer.aiosmtplib.send", side_effect=_hang)
        dispatcher = MailDispatcher(settings)

        with caplog.at_level(logging.ERROR):
            await dispatcher.dispatch_in_background(_msg())

        assert "timed out" in caplog.text

    async def test_drain_waits_for_pending(self, settings, mocker):
        sent = asyncio.Event()

        async def _slow(*args, **kwargs):
            await asyncio.sleep(0.01)
            sent.set()
            return {}, "OK"

        mocker.patch("contact_api.services.mailer.aiosmtplib.send", side_effect=_slow)
        dispatcher = MailDispatcher(settings)
        dispatcher.dispatch_in_background(_msg())
        assert dispatcher.pending == 1

        await dispatcher.drain(timeout=1)
        assert sent.is_set()


class TestConnectivity:
    async def test_reachable(self, settings, mocker):
        writer = mocker.MagicMock()
        writer.wait_closed = AsyncMock()
        mocker.patch(
            "contact_api.services.mailer.asyncio.open_connection",
            new_callable=AsyncMock,
            return_value=(mocker.MagicMock(), writer),
        )

        result = await MailDispatcher(settings).check_connectivity()

        assert result["ok"] is True
        assert result["host"] == "smtp.test.local"
        writer.close.assert_called_once()

    async def test_unreachable(self, settings, mocker):
        mocker.patch(
            "contact_api.services.mailer.asyncio.open_connection",
            new_callable=AsyncMock,
            side_effect=ConnectionRefusedError(),
        )
        result = await MailDispatcher(settings).check_connectivity()
        assert result == {
            "host": "smtp.test.local",
            "port": 465,
            "ok": False,
            "error": "ConnectionRefusedError",
        }

    async def test_not_configured(self, settings):
        settings.smtp_host = ""
        result = await MailDispatcher(settings).check_connectivity()
        assert result["ok"] is False
        assert result["error"] == "smtp_not_configured"
