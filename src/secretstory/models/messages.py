from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

MAX_MESSAGE_LENGTH = 500


class Recipient(BaseModel):
    """A user who receives anonymous messages. ``id`` is opaque to this package."""

    model_config = ConfigDict(extra="ignore")

    id: str
    username: str
    created_at: datetime | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: object) -> str:
        return str(v)


class MessageInput(BaseModel):
    text: str

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("message must not be empty")
        if len(v) > MAX_MESSAGE_LENGTH:
            raise ValueError(f"message must not exceed {MAX_MESSAGE_LENGTH} characters")
        return v


class AnonymousMessage(BaseModel):
    """Row written to the messages table. It carries no sender identity."""

    model_config = ConfigDict(extra="forbid")

    user_id: str
    message: str
