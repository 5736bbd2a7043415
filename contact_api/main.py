"""
Contact API

Small contact-form backend: validates submissions, keeps them in a JSON
file, relays them by SMTP, and exposes a PIN-gated admin view.
"""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from contact_api.config import Settings, get_settings
from contact_api.middleware import (
    BodySizeLimitMiddleware,
    FixedWindowLimiter,
    RateLimitMiddleware,
    RequestIDMiddleware,
    SecurityHeadersMiddleware,
)
from contact_api.routers import admin, contact, diagnostics, messages
from contact_api.services.admin_session import AdminSessionGuard
from contact_api.services.mailer import MailDispatcher
from contact_api.services.message_store import MessageStore
from contact_api.services.pipeline import ContactPipeline

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error = exc.detail if isinstance(exc.detail, str) else "error"
    if exc.status_code == 404 and error == "Not Found":
        error = "not_found"
    elif exc.status_code == 405:
        error = "method_not_allowed"
    return JSONResponse(
        {"ok": False, "error": error},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.info("Invalid payload on %s: %s", request.url.path, exc.errors())
    return JSONResponse({"ok": False, "error": "invalid_payload"}, status_code=400)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"ok": False, "error": "internal_error"}, status_code=500)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application and every component it depends on."""
    settings = settings or get_settings()

    store = MessageStore(settings.messages_file)
    dispatcher = MailDispatcher(settings)
    guard = AdminSessionGuard(settings)
    pipeline = ContactPipeline(settings, store, dispatcher)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan: startup and shutdown."""
        if settings.store_messages:
            await store.ensure()
        if not settings.mail_configured:
            logger.warning("SMTP relay not configured; submissions will not be mailed")
        if not guard.enabled:
            logger.warning("ADMIN_PIN not set; admin endpoints are open")
        yield
        await dispatcher.drain(timeout=settings.mail_timeout)

    app = FastAPI(
        title="Contact API",
        description="Contact form backend with flat-file storage and SMTP relay",
        version=VERSION,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.dispatcher = dispatcher
    app.state.guard = guard
    app.state.pipeline = pipeline

    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    # Added innermost first; RequestIDMiddleware ends up outermost
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)
    app.add_middleware(
        RateLimitMiddleware,
        limiter=FixedWindowLimiter(settings.rate_limit_window, settings.rate_limit_max),
        trust_proxy=settings.trust_proxy,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.allow_all_origins else settings.origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )
    app.add_middleware(RequestIDMiddleware)

    app.include_router(contact.router, prefix="/api")
    app.include_router(messages.router, prefix="/api")
    app.include_router(admin.router, prefix="/api")
    app.include_router(diagnostics.router, prefix="/api")

    return app
