"""PIN-gated admin session carried in a cookie.

There is a single shared capability: whoever knows the configured PIN gets
a cookie holding ``AUTHENTICATED``.  No server-side session table exists;
expiry is left to the cookie's ``Max-Age``.  With no PIN configured the
guard is open and every request is authorized.
"""

import logging
import secrets

from starlette.requests import Request
from starlette.responses import Response

from contact_api.config import Settings

logger = logging.getLogger(__name__)

AUTHENTICATED = "1"


class AdminSessionGuard:
    def __init__(self, settings: Settings) -> None:
        self._pin = settings.admin_pin
        self._cookie_name = settings.admin_cookie_name
        self._max_age = settings.admin_cookie_max_age
        self._secure = settings.admin_cookie_secure

    @property
    def enabled(self) -> bool:
        return bool(self._pin)

    def check_pin(self, pin: str | None) -> bool:
        if not self.enabled or pin is None:
            return False
        return secrets.compare_digest(pin.encode(), self._pin.encode())

    def login(self, response: Response, pin: str | None) -> bool:
        """Set the session cookie on ``response`` if ``pin`` matches."""
        if not self.check_pin(pin):
            return False
        response.set_cookie(
            self._cookie_name,
            AUTHENTICATED,
            max_age=self._max_age,
            httponly=True,
            samesite="lax",
            secure=self._secure,
        )
        return True

    def logout(self, response: Response) -> None:
        response.delete_cookie(
            self._cookie_name,
            httponly=True,
            samesite="lax",
            secure=self._secure,
        )

    def is_authenticated(self, request: Request) -> bool:
        return request.cookies.get(self._cookie_name) == AUTHENTICATED

    def authorize(self, request: Request) -> bool:
        if not self.enabled:
            return True
        return self.is_authenticated(request)
