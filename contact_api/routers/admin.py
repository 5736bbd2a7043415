"""Admin PIN login/logout."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from contact_api.dependencies import get_guard
from contact_api.errors import AdminNotConfigured, Unauthorized
from contact_api.services.admin_session import AdminSessionGuard

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    pin: str | None = None


@router.post("/login")
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    guard: Annotated[AdminSessionGuard, Depends(get_guard)],
):
    """Exchange the admin PIN for a session cookie."""
    if not guard.enabled:
        raise AdminNotConfigured()
    if not guard.login(response, body.pin):
        client = request.client.host if request.client else "unknown"
        logger.warning("Admin login with wrong PIN from %s", client)
        raise Unauthorized()
    return {"ok": True}


@router.post("/logout")
async def logout(
    response: Response,
    guard: Annotated[AdminSessionGuard, Depends(get_guard)],
):
    guard.logout(response)
    return {"ok": True}


@router.get("/session")
async def session_status(
    request: Request,
    guard: Annotated[AdminSessionGuard, Depends(get_guard)],
):
    """Whether the caller is authorized and whether a PIN is needed at all."""
    return {
        "ok": True,
        "authenticated": guard.authorize(request),
        "pin_required": guard.enabled,
    }
