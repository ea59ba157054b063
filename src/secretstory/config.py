"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (SECRETSTORY__BACKEND__URL=https://xyz.supabase.co)
  2. secretstory.yaml       (searched in cwd, then the platform config dir)
  3. Hardcoded defaults

The config file is optional. Backend credentials have no usable default, so
``validate_startup`` reports what is missing instead of failing later.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal
from urllib.parse import urlsplit

import platformdirs
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("secretstory")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "offline-cache.db")

DEFAULT_PRECACHE_MANIFEST = [
    "/",
    "/static/js/bundle.js",
    "/static/css/main.css",
    "/manifest.json",
    "/logo192.png",
    "/logo512.png",
    "/favicon.ico",
]


def _find_config_file() -> str | None:
    """Return the path of the first secretstory.yaml found, or None."""
    candidates = [
        Path("secretstory.yaml"),
        Path(platformdirs.user_config_dir("secretstory")) / "secretstory.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class AppSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = "SecretStory"
    origin: str = "http://localhost:3000"

    @field_validator("origin")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class OfflineSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # "full" runs the caching controller, "disabled" forwards everything.
    mode: Literal["full", "disabled"] = "full"
    version: str = "v1"
    cache_prefix: str = "secretstory"
    precache: list[str] = list(DEFAULT_PRECACHE_MANIFEST)
    shell_path: str = "/index.html"
    fallback_icon: str = "/logo192.png"
    backend_host_marker: str = "supabase.co"
    api_path_marker: str = "/api/"
    db_path: str = _DEFAULT_DB_PATH

    @property
    def static_cache_name(self) -> str:
        return f"{self.cache_prefix}-static-{self.version}"

    @property
    def runtime_cache_name(self) -> str:
        return f"{self.cache_prefix}-runtime-{self.version}"


class BackendSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str = ""
    anon_key: str = ""
    timeout_seconds: float = 10.0
    users_table: str = "users"
    messages_table: str = "anonymous_messages"


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "text"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: SECRETSTORY__OFFLINE__VERSION=v2
        env_prefix="SECRETSTORY__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
        extra="forbid",
    )

    data_dir: str = _DEFAULT_DATA_DIR
    app: AppSettings = AppSettings()
    offline: OfflineSettings = OfflineSettings()
    backend: BackendSettings = BackendSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
        )


@dataclass
class StartupCheck:
    """Outcome of ``validate_startup``: ``ok`` is False when any problem was found."""

    problems: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems


def _is_absolute_http_url(value: str) -> bool:
    parts = urlsplit(value)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def validate_startup(settings: Settings, *, require_backend: bool = True) -> StartupCheck:
    """Check the settings a running instance cannot do without."""
    check = StartupCheck()
    if not _is_absolute_http_url(settings.app.origin):
        check.problems.append(
            f"app.origin must be an absolute http(s) URL: {settings.app.origin!r}"
        )
    if require_backend:
        if not settings.backend.url:
            check.problems.append("backend.url is not set")
        elif not _is_absolute_http_url(settings.backend.url):
            check.problems.append(
                f"backend.url must be an absolute http(s) URL: {settings.backend.url!r}"
            )
        if not settings.backend.anon_key:
            check.problems.append("backend.anon_key is not set")
    for path in settings.offline.precache:
        if not path.startswith("/"):
            check.problems.append(f"offline.precache entries must be root-relative: {path!r}")
    return check
