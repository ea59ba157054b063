"""PostgREST client for the users and anonymous_messages tables.

Only two calls are needed: an exact-match user lookup and a message insert.
Lookups ask for a single object (``application/vnd.pgrst.object+json``);
PostgREST answers 406 with code ``PGRST116`` when no row matches, which is
the one response mapped to RECIPIENT_NOT_FOUND. Every other failure on the
lookup is BACKEND_UNAVAILABLE so callers can tell "wrong link" apart from
"try again later".
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog
from pydantic import ValidationError

from secretstory.errors import ErrorCode, SecretStoryError
from secretstory.models.messages import AnonymousMessage, Recipient

if TYPE_CHECKING:
    from secretstory.config import BackendSettings

log = structlog.get_logger()

NO_ROWS_CODE = "PGRST116"
_SINGLE_OBJECT = "application/vnd.pgrst.object+json"


def _error_code(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    return payload.get("code") if isinstance(payload, dict) else None


class BackendClient:
    def __init__(self, client: httpx.AsyncClient, settings: BackendSettings) -> None:
        self._client = client
        self._settings = settings
        self._rest_url = settings.url.rstrip("/") + "/rest/v1"

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._settings.anon_key,
            "Authorization": f"Bearer {self._settings.anon_key}",
        }

    async def find_user(self, username: str) -> Recipient:
        """Fetch the user whose stored username equals ``username`` exactly.

        Callers normalise the handle first; see ``messaging.normalize_handle``.
        """
        url = f"{self._rest_url}/{self._settings.users_table}"
        try:
            response = await self._client.get(
                url,
                params={"select": "*", "username": f"eq.{username}"},
                headers={**self._headers(), "Accept": _SINGLE_OBJECT},
                timeout=self._settings.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            log.warning("backend_unreachable", operation="find_user", error=str(exc))
            raise SecretStoryError(
                code=ErrorCode.BACKEND_UNAVAILABLE,
                message=f"Could not reach the backend: {exc}",
                suggestion="Check the connection and try again.",
                recoverable=True,
            ) from exc

        if response.status_code == 406 and _error_code(response) == NO_ROWS_CODE:
            log.info("recipient_not_found", username=username)
            raise SecretStoryError(
                code=ErrorCode.RECIPIENT_NOT_FOUND,
                message=f"No user named {username!r}",
                suggestion="The recipient must create an account before receiving messages.",
                recoverable=False,
            )
        if response.status_code != 200:
            log.warning(
                "backend_error",
                operation="find_user",
                status=response.status_code,
                code=_error_code(response),
            )
            raise SecretStoryError(
                code=ErrorCode.BACKEND_UNAVAILABLE,
                message=f"User lookup failed with HTTP {response.status_code}",
                suggestion="Try again in a moment.",
                recoverable=True,
            )

        try:
            return Recipient.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            log.warning("backend_error", operation="find_user", error=str(exc))
            raise SecretStoryError(
                code=ErrorCode.BACKEND_UNAVAILABLE,
                message="User lookup returned an unexpected payload",
                suggestion="Try again in a moment.",
                recoverable=True,
            ) from exc

    async def insert_message(self, message: AnonymousMessage) -> None:
        url = f"{self._rest_url}/{self._settings.messages_table}"
        try:
            response = await self._client.post(
                url,
                json=message.model_dump(),
                headers={**self._headers(), "Prefer": "return=minimal"},
                timeout=self._settings.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            log.warning("backend_unreachable", operation="insert_message", error=str(exc))
            raise SecretStoryError(
                code=ErrorCode.MESSAGE_SEND_FAILED,
                message=f"Could not reach the backend: {exc}",
                suggestion="Your message was kept, try sending it again.",
                recoverable=True,
            ) from exc

        if response.status_code not in (200, 201, 204):
            log.warning(
                "backend_error",
                operation="insert_message",
                status=response.status_code,
                code=_error_code(response),
            )
            raise SecretStoryError(
                code=ErrorCode.MESSAGE_SEND_FAILED,
                message=f"Message insert failed with HTTP {response.status_code}",
                suggestion="Your message was kept, try sending it again.",
                recoverable=True,
            )
