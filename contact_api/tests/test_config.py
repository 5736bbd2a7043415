"""Tests for Settings parsing from the environment."""

from pathlib import Path

from contact_api.config import Settings


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.sk")
    monkeypatch.setenv("SMTP_SECURE", "false")
    monkeypatch.setenv("ADMIN_PIN", "1234")
    monkeypatch.setenv("MESSAGES_FILE", "/tmp/store/messages.json")

    settings = Settings(_env_file=None)

    assert settings.smtp_host == "smtp.example.sk"
    assert settings.smtp_secure is False
    assert settings.admin_pin == "1234"
    assert settings.messages_file == Path("/tmp/store/messages.json")


def test_origin_list_splits_and_trims():
    settings = Settings(
        _env_file=None, allowed_origins=" https://a.sk, ,https://b.sk "
    )
    assert settings.origin_list == ["https://a.sk", "https://b.sk"]


def test_mail_configured_needs_host_sender_and_recipient():
    base = {"_env_file": None, "smtp_host": "h", "mail_from": "f@x.sk", "mail_to": "t@x.sk"}
    assert Settings(**base).mail_configured is True
    assert Settings(**{**base, "mail_to": ""}).mail_configured is False
