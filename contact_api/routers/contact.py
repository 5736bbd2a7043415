"""Contact form submission endpoint."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from contact_api.config import Settings
from contact_api.dependencies import get_app_settings, get_pipeline
from contact_api.errors import MailFailed, StorageFailed, ValidationFailed
from contact_api.middleware import client_key
from contact_api.models.message import ContactForm, ContactResponse
from contact_api.services.mailer import MailDeliveryError
from contact_api.services.message_store import StorageError
from contact_api.services.pipeline import ContactPipeline, MissingFields

router = APIRouter(prefix="/contact", tags=["contact"])
logger = logging.getLogger(__name__)


@router.post("", response_model=ContactResponse)
async def submit_contact(
    form: ContactForm,
    request: Request,
    pipeline: Annotated[ContactPipeline, Depends(get_pipeline)],
    settings: Annotated[Settings, Depends(get_app_settings)],
):
    """Accept a contact form submission, store it, and mail a notification."""
    client = client_key(request, settings.trust_proxy)

    try:
        result = await pipeline.submit(form, client=client)
    except MissingFields as e:
        logger.info("Rejected submission from %s: %s", client, e)
        raise ValidationFailed()
    except StorageError as e:
        logger.error("Storing submission from %s failed: %s", client, e)
        raise StorageFailed()
    except MailDeliveryError as e:
        logger.error("Mailing submission from %s failed: %s", client, e)
        raise MailFailed()

    # Honeypot hits look exactly like a plain success
    if result.discarded:
        return JSONResponse({"ok": True})

    body = ContactResponse(id=result.message.id, message_id=result.mail_id)
    return JSONResponse(
        body.model_dump(by_alias=True, exclude_none=True),
        status_code=202 if result.queued else 200,
    )
