"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Constructor arguments
  2. Environment variables  (HNKIT__CACHE__TTL_SECONDS=60)
  3. hnkit.yaml             (searched in cwd, then platform config dir)
  4. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from hnkit.errors import TransportErrorKind
from hnkit.retry import DEFAULT_RETRYABLE_ERROR_KINDS, RetryConfiguration


def _find_config_file() -> str | None:
    """Return the path of the first hnkit.yaml found, or None."""
    candidates = [
        Path("hnkit.yaml"),
        Path(platformdirs.user_config_dir("hnkit")) / "hnkit.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class CacheOptions(BaseModel):
    """Per-collection size bounds and the shared TTL for the in-memory cache."""

    max_items: int = Field(default=200, ge=0)
    max_pages: int = Field(default=50, ge=0)
    max_users: int = Field(default=50, ge=0)
    max_categories: int = Field(default=10, ge=0)
    max_search_results: int = Field(default=20, ge=0)
    max_comment_trees: int = Field(default=50, ge=0)
    # None disables age-based expiry; entries then leave only under LRU pressure.
    ttl_seconds: float | None = 300.0


class RetrySettings(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=0.5, ge=0)
    retryable_error_kinds: frozenset[TransportErrorKind] = DEFAULT_RETRYABLE_ERROR_KINDS

    def to_configuration(self) -> RetryConfiguration:
        return RetryConfiguration(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            retryable_error_kinds=self.retryable_error_kinds,
        )


class NetworkSettings(BaseModel):
    search_url: str = "https://hn.algolia.com/api/v1"
    firebase_url: str = "https://hacker-news.firebaseio.com/v0"
    site_url: str = "https://news.ycombinator.com"
    request_timeout: float = 10.0
    max_connections: int = 100
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_6) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/14.0.3 Safari/605.1.15"
    )


class PageSettings(BaseModel):
    # Build comment trees from the rendered page alone, skipping the search index.
    markup_only: bool = False


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: HNKIT__RETRY__MAX_ATTEMPTS=5
        env_prefix="HNKIT__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    cache: CacheOptions = CacheOptions()
    retry: RetrySettings = RetrySettings()
    network: NetworkSettings = NetworkSettings()
    page: PageSettings = PageSettings()
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
            # dotenv and file secrets are not read
        )
