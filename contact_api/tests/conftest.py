"""Shared fixtures for contact API tests."""

from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from contact_api.config import Settings
from contact_api.main import create_app

ADMIN_PIN = "4321"


@pytest.fixture
def settings(tmp_path):
    """Provide a Settings object with safe test defaults."""
    return Settings(
        _env_file=None,
        smtp_host="smtp.test.local",
        smtp_port=465,
        smtp_secure=True,
        smtp_user="no-reply@test.local",
        smtp_pass="secret",
        mail_from="no-reply@test.local",
        mail_to="owner@test.local",
        mail_delivery="sync",
        store_messages=True,
        messages_file=tmp_path / "data" / "messages.json",
        admin_pin=ADMIN_PIN,
        allowed_origins="http://localhost:3000",
    )


@pytest.fixture
def mock_smtp(mocker):
    """Patch aiosmtplib.send so no relay is ever contacted."""
    return mocker.patch(
        "contact_api.services.mailer.aiosmtplib.send",
        new_callable=AsyncMock,
        return_value=({}, "OK"),
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
async def client(app):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as c:
        yield c


@pytest.fixture
async def admin_client(client):
    """A client that has already logged in with the admin PIN."""
    response = await client.post("/api/admin/login", json={"pin": ADMIN_PIN})
    assert response.status_code == 200
    return client
