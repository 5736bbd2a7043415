"""Contact submission pipeline — ties sanitize, store, and mail together."""

import logging
from dataclasses import dataclass

from contact_api.config import Settings
from contact_api.models.message import ContactForm, Message
from contact_api.services.mailer import MailDispatcher
from contact_api.services.message_store import MessageStore
from contact_api.services.sanitizer import sanitize, sanitize_multiline

logger = logging.getLogger(__name__)


class MissingFields(ValueError):
    """One or more of name, email, message was empty."""

    def __init__(self, fields: list[str]) -> None:
        super().__init__(f"missing fields: {', '.join(fields)}")
        self.fields = fields


@dataclass
class SubmissionResult:
    """Outcome of one contact form submission."""

    message: Message | None = None
    mail_id: str | None = None
    # Mail was handed to a background task; delivery is not confirmed
    queued: bool = False

    @property
    def discarded(self) -> bool:
        return self.message is None


class ContactPipeline:
    def __init__(
        self,
        settings: Settings,
        store: MessageStore,
        dispatcher: MailDispatcher,
    ) -> None:
        self._settings = settings
        self._store = store
        self._dispatcher = dispatcher

    def build_message(self, form: ContactForm) -> Message:
        """Sanitize fields into a new ``Message``.

        Raises:
            MissingFields: name, email or message is empty once sanitized.
        """
        s = self._settings
        fields = {
            "name": sanitize(form.name, s.max_name_length),
            "email": sanitize(form.email, s.max_email_length),
            "message": sanitize_multiline(form.message, s.max_message_length),
        }
        missing = [field for field, value in fields.items() if not value]
        if missing:
            raise MissingFields(missing)
        return Message(**fields)

    async def submit(self, form: ContactForm, client: str = "unknown") -> SubmissionResult:
        """Run one submission through the pipeline.

        Honeypot hits return an empty result without touching the store or
        the relay.  Storage failures raise ``StorageError`` before any mail
        is attempted; in sync mode relay failures raise
        ``MailDeliveryError``.
        """
        if form.company:
            logger.warning("Honeypot triggered from %s", client)
            return SubmissionResult()

        message = self.build_message(form)

        if self._settings.store_messages:
            await self._store.append(message)

        result = SubmissionResult(message=message)

        if not self._dispatcher.configured:
            logger.warning("Mail relay not configured; message %s not mailed", message.id)
        elif self._settings.mail_delivery == "background":
            self._dispatcher.dispatch_in_background(message)
            result.queued = True
        else:
            result.mail_id = await self._dispatcher.deliver(message)

        logger.info("Accepted message %s from %s", message.id, client)
        return result
