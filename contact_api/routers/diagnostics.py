"""Liveness probe and SMTP diagnostics."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from contact_api.dependencies import get_dispatcher, require_admin
from contact_api.errors import MailFailed
from contact_api.services.mailer import MailDeliveryError, MailDispatcher

router = APIRouter(tags=["diagnostics"])
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check():
    return {"ok": True}


@router.get("/test-mail", dependencies=[Depends(require_admin)])
async def send_test_mail(
    dispatcher: Annotated[MailDispatcher, Depends(get_dispatcher)],
    to: str | None = Query(default=None, description="Recipient; defaults to MAIL_TO"),
):
    """Send a canned message through the relay and wait for the result."""
    if not dispatcher.configured:
        raise MailFailed("smtp_not_configured")
    email = dispatcher.build_test_message(to)
    try:
        message_id = await dispatcher.send(email)
    except MailDeliveryError as e:
        logger.error("Test mail to %s failed: %s", email["To"], e)
        raise MailFailed()
    return {"ok": True, "messageId": message_id, "to": email["To"]}


@router.get("/smtp-check", dependencies=[Depends(require_admin)])
async def smtp_check(
    dispatcher: Annotated[MailDispatcher, Depends(get_dispatcher)],
):
    """Raw TCP reachability probe to the configured relay."""
    result = await dispatcher.check_connectivity()
    return JSONResponse(result, status_code=200 if result["ok"] else 502)
