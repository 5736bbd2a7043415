"""Admin endpoints for reading and deleting stored messages."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from contact_api.dependencies import get_store, require_admin
from contact_api.errors import NotFound, StorageFailed
from contact_api.models.message import MessageList
from contact_api.services.message_store import MessageStore, StorageError

router = APIRouter(
    prefix="/messages",
    tags=["messages"],
    dependencies=[Depends(require_admin)],
)
logger = logging.getLogger(__name__)


@router.get("", response_model=MessageList)
async def list_messages(store: Annotated[MessageStore, Depends(get_store)]):
    """All stored messages, newest first."""
    try:
        messages = await store.read_all()
    except StorageError as e:
        logger.error("Listing messages failed: %s", e)
        raise StorageFailed()
    return MessageList(messages=messages)


@router.delete("/{message_id}")
async def delete_message(
    message_id: str,
    store: Annotated[MessageStore, Depends(get_store)],
):
    try:
        removed = await store.remove_by_id(message_id)
    except StorageError as e:
        logger.error("Deleting message %s failed: %s", message_id, e)
        raise StorageFailed()
    if not removed:
        raise NotFound()
    logger.info("Deleted message %s", message_id)
    return {"ok": True}
