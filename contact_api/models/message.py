"""Contact form submission models."""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field


class ContactForm(BaseModel):
    """Raw contact form payload.

    Fields are optional here so that a missing value is reported as a
    validation failure by the pipeline rather than a schema error.
    """

    name: str | None = None
    email: str | None = None
    message: str | None = None
    company: str | None = None  # Honeypot — bots fill this, humans don't


def _new_id() -> str:
    return str(uuid.uuid4())


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Message(BaseModel):
    """A stored contact form submission. Never mutated after creation."""

    model_config = {"frozen": True}

    id: str = Field(default_factory=_new_id)
    name: str
    email: str
    message: str
    created_at: str = Field(default_factory=_now_iso)


class ContactResponse(BaseModel):
    """Response after a contact form submission."""

    ok: bool = True
    id: str | None = None
    message_id: str | None = Field(default=None, serialization_alias="messageId")


class MessageList(BaseModel):
    ok: bool = True
    messages: list[Message]
