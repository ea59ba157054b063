"""Error taxonomy shared by the backend client, the send flow and the CLI.

Cache failures never surface here: they are absorbed inside ``CacheStorage``.
Network failures during fetch interception are absorbed by the controller
as offline placeholders. Everything else is raised as ``SecretStoryError``.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_LINK = "INVALID_LINK"
    RECIPIENT_NOT_FOUND = "RECIPIENT_NOT_FOUND"
    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"
    MESSAGE_SEND_FAILED = "MESSAGE_SEND_FAILED"
    NETWORK_UNAVAILABLE = "NETWORK_UNAVAILABLE"
    CONFIG_INVALID = "CONFIG_INVALID"


class SecretStoryError(Exception):
    """Structured error carrying a code, a hint for the user and retryability."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str = "",
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict[str, object]:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }
