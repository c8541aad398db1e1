"""Application-wide settings for the rewriting proxy."""
from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from pydantic import Field, PositiveFloat, ValidationError
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

DEFAULT_CONFIG_FILE = "config.json"
CONFIG_FILE_ENV = "PAGEPROXY_CONFIG_FILE"
# Key spelling used by existing config.json files
LEGACY_LOG_REQUESTS_KEY = "logRequests"


class ConfigFileSource(JsonConfigSettingsSource):
    """JSON config file source that only takes real JSON booleans for flags.

    Environment variables are strings and go through pydantic's lax
    parsing; a JSON file can say what it means, so ``1`` or ``"true"`` for
    ``log_requests`` is a configuration error there.
    """

    def _read_file(self, file_path: Path) -> dict[str, Any]:
        data = super()._read_file(file_path)
        if not isinstance(data, dict):
            return data
        if LEGACY_LOG_REQUESTS_KEY in data:
            legacy = data.pop(LEGACY_LOG_REQUESTS_KEY)
            data.setdefault("log_requests", legacy)
        if "log_requests" in data and not isinstance(data["log_requests"], bool):
            raise ValidationError.from_exception_data(
                "Settings",
                [
                    {
                        "type": "bool_type",
                        "loc": ("log_requests",),
                        "input": data["log_requests"],
                    }
                ],
            )
        return data


class Settings(BaseSettings):
    """Global application configuration.

    Values come from init kwargs, ``PAGEPROXY_*`` environment variables, a
    ``.env`` file and finally a JSON config file (``config.json`` unless
    ``PAGEPROXY_CONFIG_FILE`` points elsewhere). The file may spell the
    logging flag ``logRequests``.
    """

    model_config = SettingsConfigDict(
        env_prefix="PAGEPROXY_", env_file=".env", extra="ignore"
    )

    # No default: startup fails when it is absent
    log_requests: bool
    # Sliding-window rate limiting per (client, normalized target)
    rate_window_ms: int = Field(default=10_000, ge=1)
    rate_max_requests: int = Field(default=2, ge=1)
    rate_max_keys: int = Field(default=10_000, ge=1)
    # Upstream fetches
    upstream_timeout_seconds: Optional[PositiveFloat] = 30.0
    upstream_verify_tls: bool = False
    upstream_user_agent: str = "Mozilla/5.0"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        json_file = os.environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            ConfigFileSource(settings_cls, json_file=json_file),
            file_secret_settings,
        )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["ConfigFileSource", "Settings", "get_settings"]
