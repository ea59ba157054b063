"""Unit tests for secretstory.messaging."""

from __future__ import annotations

import pytest

from secretstory.errors import ErrorCode, SecretStoryError
from secretstory.messaging import (
    PUBLIC_VIEW,
    SEND_PAGE,
    SHARE_VIEW,
    FlowStatus,
    SendFlow,
    normalize_handle,
    resolve_recipient,
    submit_message,
    validate_message,
)
from secretstory.models.messages import AnonymousMessage, Recipient


class FakeBackend:
    """In-memory backend recording every call."""

    def __init__(self, users: dict[str, str] | None = None) -> None:
        self.users = users if users is not None else {"alice": "1"}
        self.lookups: list[str] = []
        self.inserted: list[AnonymousMessage] = []
        self.lookup_error: SecretStoryError | None = None
        self.insert_error: SecretStoryError | None = None

    async def find_user(self, username: str) -> Recipient:
        self.lookups.append(username)
        if self.lookup_error is not None:
            raise self.lookup_error
        if username not in self.users:
            raise SecretStoryError(ErrorCode.RECIPIENT_NOT_FOUND, f"No user named {username!r}")
        return Recipient(id=self.users[username], username=username)

    async def insert_message(self, message: AnonymousMessage) -> None:
        if self.insert_error is not None:
            raise self.insert_error
        self.inserted.append(message)


UNAVAILABLE = SecretStoryError(ErrorCode.BACKEND_UNAVAILABLE, "down", recoverable=True)
SEND_FAILED = SecretStoryError(ErrorCode.MESSAGE_SEND_FAILED, "down", recoverable=True)


# ---------------------------------------------------------------------------
# normalize_handle / validate_message
# ---------------------------------------------------------------------------


class TestNormalizeHandle:
    @pytest.mark.parametrize(
        ("raw", "expected"), [("Alice ", "alice"), ("  BOB", "bob"), ("carol", "carol")]
    )
    def test_trim_and_lowercase(self, raw: str, expected: str) -> None:
        assert normalize_handle(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_is_invalid_link(self, raw: str | None) -> None:
        with pytest.raises(SecretStoryError) as exc_info:
            normalize_handle(raw)
        assert exc_info.value.code == ErrorCode.INVALID_LINK


class TestValidateMessage:
    def test_trims(self) -> None:
        assert validate_message("  coucou \n") == "coucou"

    def test_exactly_500_accepted(self) -> None:
        assert len(validate_message("a" * 500)) == 500

    def test_501_rejected(self) -> None:
        with pytest.raises(SecretStoryError) as exc_info:
            validate_message("a" * 501)
        assert exc_info.value.code == ErrorCode.INVALID_INPUT
        assert exc_info.value.message == "message must not exceed 500 characters"

    def test_blank_rejected(self) -> None:
        with pytest.raises(SecretStoryError) as exc_info:
            validate_message("   ")
        assert exc_info.value.message == "message must not be empty"


# ---------------------------------------------------------------------------
# resolve_recipient / submit_message
# ---------------------------------------------------------------------------


class TestResolveAndSubmit:
    async def test_resolution_is_case_and_whitespace_insensitive(self) -> None:
        backend = FakeBackend()
        recipient = await resolve_recipient(backend, "Alice ")
        assert recipient.id == "1"
        assert backend.lookups == ["alice"]

    async def test_empty_handle_never_hits_backend(self) -> None:
        backend = FakeBackend()
        with pytest.raises(SecretStoryError):
            await resolve_recipient(backend, " ")
        assert backend.lookups == []

    async def test_submit_stores_trimmed_text(self) -> None:
        backend = FakeBackend()
        recipient = Recipient(id="1", username="alice")
        message = await submit_message(backend, recipient, "  T'es génial  ")
        assert message == AnonymousMessage(user_id="1", message="T'es génial")
        assert backend.inserted == [message]

    async def test_oversized_message_rejected_before_network(self) -> None:
        backend = FakeBackend()
        with pytest.raises(SecretStoryError) as exc_info:
            await submit_message(backend, Recipient(id="1", username="alice"), "x" * 501)
        assert exc_info.value.code == ErrorCode.INVALID_INPUT
        assert backend.inserted == []


# ---------------------------------------------------------------------------
# SendFlow
# ---------------------------------------------------------------------------


class TestSendFlowLoad:
    async def test_ready(self) -> None:
        flow = SendFlow(FakeBackend(), SEND_PAGE)
        assert await flow.load("Alice") is FlowStatus.READY
        assert flow.recipient is not None
        assert flow.error is None

    async def test_missing_handle(self) -> None:
        flow = SendFlow(FakeBackend(), SHARE_VIEW)
        assert await flow.load(None) is FlowStatus.INVALID_LINK
        assert flow.error == "Lien invalide : aucun utilisateur spécifié"

    async def test_not_found_and_connection_error_are_distinct(self) -> None:
        backend = FakeBackend()
        flow = SendFlow(backend, SEND_PAGE)
        assert await flow.load("Ghost") is FlowStatus.NOT_FOUND
        not_found = flow.error

        backend.lookup_error = UNAVAILABLE
        assert await flow.load("alice") is FlowStatus.CONNECTION_ERROR
        assert flow.error == "Problème de connexion. Réessayez."
        assert flow.error != not_found

    @pytest.mark.parametrize(
        ("presentation", "expected"),
        [
            (SEND_PAGE, 'L\'utilisateur "@Ghost" n\'existe pas.'),
            (SHARE_VIEW, 'L\'utilisateur "@Ghost" n\'existe pas encore.'),
            (PUBLIC_VIEW, 'L\'utilisateur "@Ghost" n\'existe pas'),
        ],
    )
    async def test_not_found_message_per_view(self, presentation, expected: str) -> None:
        flow = SendFlow(FakeBackend(), presentation)
        await flow.load(" Ghost ")
        assert flow.error == expected


class TestSendFlowSubmit:
    async def test_successful_send_clears_draft(self) -> None:
        backend = FakeBackend()
        flow = SendFlow(backend, SEND_PAGE)
        await flow.load("alice")

        assert await flow.submit("Bonjour") is True
        assert flow.status is FlowStatus.SENT
        assert flow.draft == ""
        assert flow.notice == "✅ Message envoyé anonymement !"
        assert backend.inserted == [AnonymousMessage(user_id="1", message="Bonjour")]

    async def test_failed_send_preserves_draft(self) -> None:
        backend = FakeBackend()
        backend.insert_error = SEND_FAILED
        flow = SendFlow(backend, SHARE_VIEW)
        await flow.load("alice")

        assert await flow.submit("Bonjour") is False
        assert flow.status is FlowStatus.SEND_ERROR
        assert flow.draft == "Bonjour"
        assert flow.error == "Erreur lors de l'envoi du message"

    async def test_retry_after_failure(self) -> None:
        backend = FakeBackend()
        backend.insert_error = SEND_FAILED
        flow = SendFlow(backend, PUBLIC_VIEW)
        await flow.load("alice")
        await flow.submit("Encore")

        backend.insert_error = None
        assert await flow.submit() is True
        assert backend.inserted[0].message == "Encore"

    async def test_oversized_draft_rejected_without_network(self) -> None:
        backend = FakeBackend()
        flow = SendFlow(backend, SEND_PAGE)
        await flow.load("alice")

        assert await flow.submit("y" * 501) is False
        assert flow.status is FlowStatus.READY
        assert flow.draft == "y" * 501
        assert flow.error == "message must not exceed 500 characters"
        assert backend.inserted == []

    async def test_submit_without_recipient_is_noop(self) -> None:
        backend = FakeBackend()
        flow = SendFlow(backend, SEND_PAGE)
        await flow.load("ghost")

        assert await flow.submit("Coucou") is False
        assert flow.status is FlowStatus.NOT_FOUND
        assert backend.inserted == []

    async def test_public_view_stays_after_send(self) -> None:
        assert PUBLIC_VIEW.redirect_after_send is None
        assert SEND_PAGE.redirect_after_send == "/"
        assert SHARE_VIEW.redirect_after_send == "/"
