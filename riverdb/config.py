"""
Configuration for RiverDB.

Uses pydantic-settings for environment variable loading. Every setting has
a default suitable for local development and tests.

Invariants:
    - All settings have sensible defaults
    - Enumerated settings are validated on load

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

from .identity import DEFAULT_CLIENT_ID_PREFIX


class Settings(BaseSettings):
    """RiverDB configuration loaded from environment."""

    # Identity
    client_id_prefix: str = Field(
        default=DEFAULT_CLIENT_ID_PREFIX,
        min_length=1,
        description="Reserved prefix marking client-generated ids",
    )

    # Storage
    storage_backend: Literal["memory", "sqlite"] = Field(
        default="memory", description="Storage adapter used when none is passed in"
    )
    sqlite_path: str = Field(default="riverdb.sqlite", description="SQLite database file")
    sqlite_wal_mode: bool = Field(default=True, description="Enable SQLite WAL journal")

    # Record persistence
    save_mode: Literal["replace", "merge"] = Field(
        default="replace",
        description="replace: stored snapshot becomes the record's attributes; "
        "merge: record attributes are merged over the stored snapshot",
    )

    # Logging
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING, ERROR")
    log_format: Literal["text", "json"] = Field(default="text")

    model_config = {"env_prefix": "RIVERDB_"}


def setup_logging(settings: Settings) -> None:
    """Configure logging based on configuration.

    Args:
        settings: RiverDB settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter = logging.Formatter(
            '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
        )
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]
