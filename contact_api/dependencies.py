"""FastAPI dependencies resolving the components built by ``create_app``."""

from typing import Annotated

from fastapi import Depends, Request

from contact_api.config import Settings
from contact_api.errors import Unauthorized
from contact_api.services.admin_session import AdminSessionGuard
from contact_api.services.mailer import MailDispatcher
from contact_api.services.message_store import MessageStore
from contact_api.services.pipeline import ContactPipeline


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> MessageStore:
    return request.app.state.store


def get_dispatcher(request: Request) -> MailDispatcher:
    return request.app.state.dispatcher


def get_guard(request: Request) -> AdminSessionGuard:
    return request.app.state.guard


def get_pipeline(request: Request) -> ContactPipeline:
    return request.app.state.pipeline


async def require_admin(
    request: Request,
    guard: Annotated[AdminSessionGuard, Depends(get_guard)],
) -> None:
    """Reject the request unless it carries a valid admin session."""
    if not guard.authorize(request):
        raise Unauthorized()
