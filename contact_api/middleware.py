"""Middleware — request IDs, security headers, rate limiting, body size."""

import logging
import math
import time
import uuid
from contextvars import ContextVar

from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

# Context var accessible from anywhere during a request lifecycle
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDLogFilter(logging.Filter):
    """Expose the current request ID to log formatters as ``%(request_id)s``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a unique request ID to every request/response cycle.

    Reads ``X-Request-ID`` from the incoming request headers; if absent,
    generates a new UUID4.  The ID is stored in a context variable so that
    logging and error handlers can include it, and is echoed back on the
    response as ``X-Request-ID``.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_var.set(rid)

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add standard security headers to every response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


def client_key(request: Request, trust_proxy: bool = False) -> str:
    """Identify the caller: first X-Forwarded-For hop behind a proxy, else peer IP."""
    if trust_proxy:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


class FixedWindowLimiter:
    """Count hits per key in fixed windows of ``window`` seconds."""

    def __init__(self, window: float, max_hits: int) -> None:
        self.window = window
        self.max_hits = max_hits
        # key -> (window start, hits in window)
        self._hits: dict[str, tuple[float, int]] = {}

    def _window_start(self, now: float) -> float:
        return now - (now % self.window)

    def hit(self, key: str, now: float | None = None) -> tuple[bool, int, float]:
        """Record a hit. Returns ``(allowed, remaining, reset_in_seconds)``."""
        now = time.time() if now is None else now
        start = self._window_start(now)
        prev_start, count = self._hits.get(key, (start, 0))
        if prev_start != start:
            count = 0
            # Drop counters from expired windows while we're here
            self._hits = {k: v for k, v in self._hits.items() if v[0] == start}
        count += 1
        self._hits[key] = (start, count)
        reset = start + self.window - now
        return count <= self.max_hits, max(self.max_hits - count, 0), reset

    def reset(self) -> None:
        self._hits.clear()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Throttle ``/api/`` requests per client with a fixed-window counter."""

    def __init__(
        self,
        app: ASGIApp,
        limiter: FixedWindowLimiter,
        trust_proxy: bool = False,
        exempt_paths: tuple[str, ...] = ("/api/health",),
    ) -> None:
        super().__init__(app)
        self.limiter = limiter
        self.trust_proxy = trust_proxy
        self.exempt_paths = exempt_paths

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if (
            request.method == "OPTIONS"
            or not path.startswith("/api/")
            or path in self.exempt_paths
        ):
            return await call_next(request)

        key = client_key(request, self.trust_proxy)
        allowed, remaining, reset = self.limiter.hit(key)
        headers = {
            "RateLimit-Limit": str(self.limiter.max_hits),
            "RateLimit-Remaining": str(remaining),
            "RateLimit-Reset": str(math.ceil(reset)),
        }
        if not allowed:
            logger.warning("Rate limit exceeded for %s on %s", key, path)
            return JSONResponse(
                {"ok": False, "error": "rate_limited"},
                status_code=429,
                headers={**headers, "Retry-After": headers["RateLimit-Reset"]},
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response


class BodySizeLimitMiddleware:
    """Reject request bodies larger than ``max_bytes``.

    A declared Content-Length is checked up front.  Otherwise (chunked
    uploads) the body is buffered while counting bytes and handed on in one
    piece once it is known to fit.
    """

    def __init__(self, app: ASGIApp, max_bytes: int) -> None:
        self.app = app
        self.max_bytes = max_bytes

    async def _reject(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = JSONResponse(
            {"ok": False, "error": "payload_too_large"}, status_code=413
        )
        await response(scope, receive, send)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        length = Headers(scope=scope).get("content-length")
        if length and length.isdigit() and int(length) > self.max_bytes:
            await self._reject(scope, receive, send)
            return

        body = bytearray()
        while True:
            message = await receive()
            if message["type"] != "http.request":
                # Client disconnected before the body was complete
                return
            body.extend(message.get("body", b""))
            if len(body) > self.max_bytes:
                logger.warning(
                    "Rejected %s body over %d bytes", scope["path"], self.max_bytes
                )
                await self._reject(scope, receive, send)
                return
            if not message.get("more_body", False):
                break

        buffered: Message = {
            "type": "http.request",
            "body": bytes(body),
            "more_body": False,
        }
        await self.app(scope, _replay([buffered], receive), send)


def _replay(messages: list[Message], receive: Receive) -> Receive:
    """Return a receive callable yielding ``messages`` first, then ``receive``."""
    pending = list(messages)

    async def replay() -> Message:
        if pending:
            return pending.pop(0)
        return await receive()

    return replay
