"""Recipient resolution and anonymous message submission.

Every send view runs the same two steps: resolve the handle from the link to
a recipient, then insert ``{user_id, message}``. ``SendFlow`` is that flow as
a small state machine; the views differ only in their ``Presentation``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

import structlog
from pydantic import ValidationError

from secretstory.errors import ErrorCode, SecretStoryError
from secretstory.models.messages import AnonymousMessage, MessageInput, Recipient

log = structlog.get_logger()


class MessageBackend(Protocol):
    async def find_user(self, username: str) -> Recipient: ...

    async def insert_message(self, message: AnonymousMessage) -> None: ...


def normalize_handle(handle: str | None) -> str:
    """Lowercase and trim a handle. Raises INVALID_LINK when nothing is left."""
    cleaned = (handle or "").strip().lower()
    if not cleaned:
        raise SecretStoryError(
            code=ErrorCode.INVALID_LINK,
            message="No username in link",
            suggestion="Ask the recipient for their SecretStory link.",
        )
    return cleaned


def validate_message(text: str) -> str:
    """Return the trimmed message or raise INVALID_INPUT."""
    try:
        return MessageInput(text=text).text
    except ValidationError as exc:
        raise SecretStoryError(
            code=ErrorCode.INVALID_INPUT,
            message=exc.errors()[0]["msg"].removeprefix("Value error, "),
            suggestion="Write between 1 and 500 characters.",
        ) from exc


async def resolve_recipient(backend: MessageBackend, handle: str | None) -> Recipient:
    return await backend.find_user(normalize_handle(handle))


async def submit_message(
    backend: MessageBackend, recipient: Recipient, text: str
) -> AnonymousMessage:
    """Validate ``text`` and store it for ``recipient``. Nothing identifies the sender."""
    message = AnonymousMessage(user_id=recipient.id, message=validate_message(text))
    await backend.insert_message(message)
    log.info("message_sent", recipient_id=recipient.id, length=len(message.message))
    return message


class FlowStatus(StrEnum):
    LOADING = "loading"
    READY = "ready"
    INVALID_LINK = "invalid_link"
    NOT_FOUND = "not_found"
    CONNECTION_ERROR = "connection_error"
    SENDING = "sending"
    SENT = "sent"
    SEND_ERROR = "send_error"


@dataclass(frozen=True)
class Presentation:
    """User-facing strings and post-send behaviour of one send view."""

    name: str
    invalid_link: str
    not_found: str  # formatted with {username}
    connection_error: str
    send_error: str
    sent: str
    # Where the view navigates after a successful send; None stays on the page.
    redirect_after_send: str | None = "/"


SEND_PAGE = Presentation(
    name="send",
    invalid_link="Nom d'utilisateur invalide",
    not_found='L\'utilisateur "@{username}" n\'existe pas.',
    connection_error="Problème de connexion. Réessayez.",
    send_error="Erreur lors de l'envoi. Réessayez.",
    sent="✅ Message envoyé anonymement !",
)

SHARE_VIEW = Presentation(
    name="share",
    invalid_link="Lien invalide : aucun utilisateur spécifié",
    not_found='L\'utilisateur "@{username}" n\'existe pas encore.',
    connection_error="Erreur de connexion. Réessayez.",
    send_error="Erreur lors de l'envoi du message",
    sent="✅ Message envoyé anonymement !",
)

PUBLIC_VIEW = Presentation(
    name="public",
    invalid_link="Lien invalide",
    not_found='L\'utilisateur "@{username}" n\'existe pas',
    connection_error="Erreur de connexion",
    send_error="Erreur lors de l'envoi du message",
    sent="Message envoyé ! Tu peux en envoyer un autre",
    redirect_after_send=None,
)


class SendFlow:
    """State of one send view: load a recipient, then submit drafts to it."""

    def __init__(self, backend: MessageBackend, presentation: Presentation) -> None:
        self._backend = backend
        self.presentation = presentation
        self.status = FlowStatus.LOADING
        self.handle = ""
        self.recipient: Recipient | None = None
        self.draft = ""
        self.error: str | None = None
        self.notice: str | None = None

    @property
    def can_submit(self) -> bool:
        return self.recipient is not None and self.status in (
            FlowStatus.READY,
            FlowStatus.SENT,
            FlowStatus.SEND_ERROR,
        )

    async def load(self, handle: str | None) -> FlowStatus:
        self.status = FlowStatus.LOADING
        self.handle = (handle or "").strip()
        self.recipient = None
        self.error = None
        try:
            self.recipient = await resolve_recipient(self._backend, handle)
        except SecretStoryError as exc:
            self._apply_lookup_error(exc)
        else:
            self.status = FlowStatus.READY
        return self.status

    def _apply_lookup_error(self, exc: SecretStoryError) -> None:
        p = self.presentation
        if exc.code is ErrorCode.INVALID_LINK:
            self.status, self.error = FlowStatus.INVALID_LINK, p.invalid_link
        elif exc.code is ErrorCode.RECIPIENT_NOT_FOUND:
            self.status = FlowStatus.NOT_FOUND
            self.error = p.not_found.format(username=self.handle)
        else:
            self.status, self.error = FlowStatus.CONNECTION_ERROR, p.connection_error

    async def submit(self, text: str | None = None) -> bool:
        """Send ``text`` (or the current draft). Returns True once stored.

        Invalid input is rejected before any network call and keeps the
        current status. A failed send keeps the draft for a retry.
        """
        if text is not None:
            self.draft = text
        if not self.can_submit or self.recipient is None:
            return False

        self.notice = None
        try:
            validate_message(self.draft)
        except SecretStoryError as exc:
            self.error = exc.message
            return False

        self.status = FlowStatus.SENDING
        self.error = None
        try:
            await submit_message(self._backend, self.recipient, self.draft)
        except SecretStoryError as exc:
            log.warning("message_send_failed", view=self.presentation.name, code=exc.code)
            self.status = FlowStatus.SEND_ERROR
            self.error = self.presentation.send_error
            return False

        self.status = FlowStatus.SENT
        self.draft = ""
        self.notice = self.presentation.sent
        return True
