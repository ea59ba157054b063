"""Command-line entry points."""

from __future__ import annotations

import asyncio
import json
from typing import Annotated

import typer
from pydantic import ValidationError

from secretstory.config import Settings, validate_startup
from secretstory.errors import ErrorCode, SecretStoryError
from secretstory.logging_config import setup_logging
from secretstory.messaging import (
    normalize_handle,
    resolve_recipient,
    submit_message,
    validate_message,
)
from secretstory.sharing import build_share_link, social_share_urls
from secretstory.state import open_app_state

app = typer.Typer(help="SecretStory offline cache and messaging utilities.", no_args_is_help=True)


def _load_settings() -> Settings:
    try:
        settings = Settings()
    except ValidationError as exc:
        typer.echo(f"Invalid configuration:\n{exc}", err=True)
        raise typer.Exit(code=2) from exc
    setup_logging(settings.logging)
    return settings


def _fail(exc: SecretStoryError) -> typer.Exit:
    typer.echo(json.dumps(exc.to_dict(), ensure_ascii=False), err=True)
    return typer.Exit(code=1)


@app.command("check-config")
def check_config(
    offline_only: Annotated[
        bool, typer.Option("--offline-only", help="Skip the backend credential checks.")
    ] = False,
) -> None:
    """Validate the configuration and list any problems."""
    settings = _load_settings()
    check = validate_startup(settings, require_backend=not offline_only)
    if check.ok:
        typer.echo("configuration ok")
        return
    for problem in check.problems:
        typer.echo(f"- {problem}", err=True)
    raise typer.Exit(code=1)


@app.command("precache")
def precache() -> None:
    """Install and activate the offline cache against the configured origin."""
    settings = _load_settings()

    async def _run() -> tuple[list[str], list[str]]:
        async with open_app_state(settings) as state:
            stored = await state.controller.install()
            deleted = await state.controller.activate()
            return stored, deleted

    stored, deleted = asyncio.run(_run())
    typer.echo(f"mode: {settings.offline.mode}")
    typer.echo(f"stored {len(stored)}/{len(settings.offline.precache)} assets")
    for url in stored:
        typer.echo(f"  {url}")
    for name in deleted:
        typer.echo(f"deleted generation {name}")


@app.command("send")
def send(
    handle: Annotated[str, typer.Argument(help="Recipient username.")],
    message: Annotated[str, typer.Argument(help="Message text, at most 500 characters.")],
) -> None:
    """Send an anonymous message to a user."""
    settings = _load_settings()
    check = validate_startup(settings)
    if not check.ok:
        raise _fail(
            SecretStoryError(
                code=ErrorCode.CONFIG_INVALID,
                message="; ".join(check.problems),
                suggestion="Set SECRETSTORY__BACKEND__URL and SECRETSTORY__BACKEND__ANON_KEY.",
            )
        )

    async def _run() -> None:
        validate_message(message)
        async with open_app_state(settings) as state:
            recipient = await resolve_recipient(state.backend, handle)
            await submit_message(state.backend, recipient, message)

    try:
        asyncio.run(_run())
    except SecretStoryError as exc:
        raise _fail(exc) from exc
    typer.echo("message sent")


@app.command("share-link")
def share_link(
    handle: Annotated[str, typer.Argument(help="Your username.")],
    social: Annotated[bool, typer.Option("--social", help="Also print share intents.")] = False,
) -> None:
    """Print the link visitors use to send you messages."""
    settings = _load_settings()
    try:
        username = normalize_handle(handle)
    except SecretStoryError as exc:
        raise _fail(exc) from exc
    url = build_share_link(settings.app.origin, username)
    typer.echo(url)
    if social:
        for platform, intent in social_share_urls(url).items():
            typer.echo(f"{platform}: {intent}")
