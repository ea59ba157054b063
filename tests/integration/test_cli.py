"""CLI tests driven through typer's CliRunner with settings from the environment."""

from __future__ import annotations

import httpx
import pytest
import respx
from typer.testing import CliRunner

from secretstory.cli import app

BACKEND = "https://abcd1234.supabase.co"

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    # Keep structlog unconfigured: CliRunner swaps stderr per invocation.
    monkeypatch.setattr("secretstory.cli.setup_logging", lambda settings: None)
    monkeypatch.setenv("SECRETSTORY__APP__ORIGIN", "http://app.test")
    monkeypatch.setenv("SECRETSTORY__BACKEND__URL", BACKEND)
    monkeypatch.setenv("SECRETSTORY__BACKEND__ANON_KEY", "anon-key")
    monkeypatch.setenv("SECRETSTORY__OFFLINE__DB_PATH", str(tmp_path / "cli" / "cache.db"))


class TestCheckConfig:
    def test_ok(self) -> None:
        result = runner.invoke(app, ["check-config"])
        assert result.exit_code == 0
        assert "configuration ok" in result.output

    def test_missing_backend(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SECRETSTORY__BACKEND__URL")
        monkeypatch.delenv("SECRETSTORY__BACKEND__ANON_KEY")
        result = runner.invoke(app, ["check-config"])
        assert result.exit_code == 1
        assert "backend.url is not set" in result.output

    def test_offline_only_skips_backend(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SECRETSTORY__BACKEND__URL")
        result = runner.invoke(app, ["check-config", "--offline-only"])
        assert result.exit_code == 0

    def test_invalid_value_exits_2(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SECRETSTORY__OFFLINE__MODE", "sometimes")
        result = runner.invoke(app, ["check-config"])
        assert result.exit_code == 2
        assert "Invalid configuration" in result.output


class TestShareLink:
    def test_prints_normalized_link(self) -> None:
        result = runner.invoke(app, ["share-link", " Alice "])
        assert result.exit_code == 0
        assert result.output.strip() == "http://app.test/#/to/alice"

    def test_social(self) -> None:
        result = runner.invoke(app, ["share-link", "alice", "--social"])
        assert result.exit_code == 0
        assert "whatsapp: https://wa.me/?text=" in result.output
        assert "telegram: https://t.me/share/url?" in result.output

    def test_blank_handle(self) -> None:
        result = runner.invoke(app, ["share-link", "  "])
        assert result.exit_code == 1
        assert "INVALID_LINK" in result.output


class TestSend:
    def test_send(self) -> None:
        with respx.mock:
            respx.get(f"{BACKEND}/rest/v1/users").mock(
                return_value=httpx.Response(200, json={"id": 3, "username": "alice"})
            )
            insert = respx.post(f"{BACKEND}/rest/v1/anonymous_messages").mock(
                return_value=httpx.Response(201)
            )
            result = runner.invoke(app, ["send", "Alice", "Bravo pour ton projet"])

        assert result.exit_code == 0, result.output
        assert "message sent" in result.output
        assert insert.call_count == 1

    def test_unknown_recipient(self) -> None:
        with respx.mock:
            respx.get(f"{BACKEND}/rest/v1/users").mock(
                return_value=httpx.Response(406, json={"code": "PGRST116"})
            )
            result = runner.invoke(app, ["send", "ghost", "hello"])

        assert result.exit_code == 1
        assert "RECIPIENT_NOT_FOUND" in result.output

    def test_oversized_message_rejected_before_network(self) -> None:
        with respx.mock(assert_all_called=False) as router:
            lookup = router.get(f"{BACKEND}/rest/v1/users").mock(
                return_value=httpx.Response(200, json={"id": 3, "username": "alice"})
            )
            result = runner.invoke(app, ["send", "alice", "z" * 501])

        assert result.exit_code == 1
        assert "INVALID_INPUT" in result.output
        assert lookup.call_count == 0

    def test_missing_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SECRETSTORY__BACKEND__ANON_KEY")
        result = runner.invoke(app, ["send", "alice", "hello"])
        assert result.exit_code == 1
        assert "CONFIG_INVALID" in result.output


class TestPrecache:
    def test_precache(self) -> None:
        with respx.mock:
            respx.route(host="app.test").mock(return_value=httpx.Response(200, content=b"x"))
            result = runner.invoke(app, ["precache"])

        assert result.exit_code == 0, result.output
        assert "mode: full" in result.output
        assert "stored 7/7 assets" in result.output

    def test_precache_offline(self) -> None:
        with respx.mock:
            respx.route(host="app.test").mock(side_effect=httpx.ConnectError("offline"))
            result = runner.invoke(app, ["precache"])

        assert result.exit_code == 0, result.output
        assert "stored 0/7 assets" in result.output
