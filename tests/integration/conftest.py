"""Integration test fixtures.

Provides a fully wired AppState backed by an on-disk SQLite file under
tmp_path. HTTP traffic is mocked per test with respx.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from secretstory.state import open_app_state

if TYPE_CHECKING:
    from secretstory.config import Settings
    from secretstory.state import AppState


@pytest.fixture()
async def app_state(settings: Settings) -> AppState:
    async with open_app_state(settings) as state:
        yield state
