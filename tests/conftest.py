"""Shared fixtures: settings pointing at fake hosts."""

from __future__ import annotations

import pytest

from secretstory.config import Settings

ORIGIN = "http://app.test"
BACKEND_URL = "https://abcd1234.supabase.co"
ANON_KEY = "anon-test-key"


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        app={"origin": ORIGIN},
        backend={"url": BACKEND_URL, "anon_key": ANON_KEY},
        offline={"db_path": str(tmp_path / "offline-cache.db")},
    )
