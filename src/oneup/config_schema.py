"""Unified configuration schema for oneup.

Pydantic models for the YAML config structure, one section per concern,
plus the adapter that flattens a ``UnifiedConfig`` into the ``Config``
dataclass the rest of the package consumes.

Usage:
    from oneup.config_schema import build_config, to_legacy_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = to_legacy_config(unified, cli_overrides={"uid": "abc"})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field, field_validator

from oneup.exercises import DEFAULT_EXERCISES, ExerciseDefinition

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)

ConflictStrategy = Literal["merge", "local-wins", "remote-wins"]

DEFAULT_DATA_FILE = "~/.oneup/storage.json"


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class RemoteConfig(BaseModel):
    """Remote replica and identity settings.

    All fields are optional: without a database URL the service runs
    offline-only.
    """

    database_url: str | None = Field(
        default=None, description="Firebase Realtime Database URL"
    )
    auth_token: str | None = Field(
        default=None, description="ID token or database secret"
    )
    uid: str | None = Field(
        default=None, description="User id the progress is stored under"
    )
    display_name: str | None = Field(
        default=None, description="Public name used on the leaderboard"
    )
    photo_url: str | None = Field(default=None, description="Avatar URL")
    request_timeout: float = Field(
        default=30.0, gt=0, description="HTTP read timeout in seconds"
    )

    model_config = {"frozen": True}


class StorageConfig(BaseModel):
    """Local storage settings."""

    data_file: str = Field(
        default=DEFAULT_DATA_FILE, description="JSON storage file"
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Cloud sync behaviour.

    Attributes:
        auto_sync: Save to the cloud after every local change.
        conflict_strategy: Resolver used by sync and the live listener.
    """

    auto_sync: bool = False
    conflict_strategy: ConflictStrategy = "merge"

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has defaults, so ``UnifiedConfig()`` is always valid.
    """

    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    exercises: tuple[ExerciseDefinition, ...] = DEFAULT_EXERCISES
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}

    @field_validator("exercises")
    @classmethod
    def _unique_exercise_ids(
        cls, value: tuple[ExerciseDefinition, ...]
    ) -> tuple[ExerciseDefinition, ...]:
        if not value:
            raise ValueError("at least one exercise must be configured")
        ids = [ex.id for ex in value]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(
                f"duplicate exercise ids: {', '.join(duplicates)}"
            )
        return value


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from ``load_hierarchical_config()`` output.

    Missing sections get defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> Config dataclass
# ---------------------------------------------------------------------------


def to_legacy_config(
    unified: UnifiedConfig,
    cli_overrides: dict | None = None,
) -> Config:
    """Convert a ``UnifiedConfig`` into the ``Config`` dataclass.

    Precedence: CLI override > unified config value > default.

    CLI overrides dict keys: database_url, auth_token, uid, data_file,
    auto_sync, conflict_strategy, debug.

    Returns:
        ``Config`` instance (NOT validated; run ``validate_config()``).
    """
    # Import here to avoid circular imports (config.py imports config_schema)
    from .config import Config

    overrides = cli_overrides or {}

    return Config(
        database_url=overrides.get("database_url")
        or unified.remote.database_url,
        auth_token=overrides.get("auth_token") or unified.remote.auth_token,
        uid=overrides.get("uid") or unified.remote.uid,
        display_name=unified.remote.display_name,
        photo_url=unified.remote.photo_url,
        data_file=overrides.get("data_file") or unified.storage.data_file,
        request_timeout=unified.remote.request_timeout,
        auto_sync=overrides.get("auto_sync", False)
        or unified.sync.auto_sync,
        conflict_strategy=overrides.get("conflict_strategy")
        or unified.sync.conflict_strategy,
        exercises=unified.exercises,
        debug=overrides.get("debug", False),
    )
