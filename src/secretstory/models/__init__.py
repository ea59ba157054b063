from __future__ import annotations

from secretstory.models.cache import CachedResponse
from secretstory.models.fetch import InterceptedRequest
from secretstory.models.messages import AnonymousMessage, MessageInput, Recipient
from secretstory.models.push import Notification, PushPayload

__all__ = [
    # cache
    "CachedResponse",
    "InterceptedRequest",
    # messaging
    "Recipient",
    "MessageInput",
    "AnonymousMessage",
    # push
    "PushPayload",
    "Notification",
]
