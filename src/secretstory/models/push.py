from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator

DEFAULT_NOTIFICATION_TITLE = "SecretStory"
DEFAULT_NOTIFICATION_BODY = "Tu as reçu un nouveau message anonyme !"
DEFAULT_NOTIFICATION_URL = "/"


class PushPayload(BaseModel):
    """Push message body. Every field is optional; unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore")

    title: str | None = None
    body: str | None = None
    url: str | None = None

    @field_validator("title", "body", "url", mode="before")
    @classmethod
    def drop_non_text(cls, v: object) -> str | None:
        # A malformed field falls back to its default like a missing one.
        return v if isinstance(v, str) else None


class Notification(BaseModel):
    title: str = DEFAULT_NOTIFICATION_TITLE
    body: str = DEFAULT_NOTIFICATION_BODY
    icon: str = "/logo192.png"
    badge: str = "/logo192.png"
    url: str = DEFAULT_NOTIFICATION_URL

    @classmethod
    def from_payload(cls, payload: PushPayload) -> Notification:
        return cls(
            title=payload.title or DEFAULT_NOTIFICATION_TITLE,
            body=payload.body or DEFAULT_NOTIFICATION_BODY,
            url=payload.url or DEFAULT_NOTIFICATION_URL,
        )
