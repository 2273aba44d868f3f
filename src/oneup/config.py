"""Runtime configuration for the OneUp progress service.

Reads remote, storage and sync settings from CLI args, environment
variables, .env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    ONEUP_DATABASE_URL: Firebase Realtime Database URL (optional; offline-only without it)
    ONEUP_AUTH_TOKEN: ID token or database secret (optional)
    ONEUP_UID: User id the progress is stored under (optional)
    ONEUP_DATA_FILE: Local storage file (optional, default: ~/.oneup/storage.json)
    ONEUP_REQUEST_TIMEOUT: HTTP read timeout in seconds (optional, default: 30)
    ONEUP_AUTO_SYNC: Save to the cloud after every change (optional, default: false)
    ONEUP_CONFLICT_STRATEGY: merge | local-wins | remote-wins (optional, default: merge)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from .config_schema import DEFAULT_DATA_FILE
from .exercises import DEFAULT_EXERCISES, ExerciseDefinition
from .progress.resolver import STRATEGIES

logger = logging.getLogger(__name__)


@dataclass
class Config:
    database_url: str | None = None
    auth_token: str | None = None
    uid: str | None = None
    display_name: str | None = None
    photo_url: str | None = None
    data_file: str = DEFAULT_DATA_FILE
    request_timeout: float = 30.0
    auto_sync: bool = False
    conflict_strategy: str = "merge"
    exercises: tuple[ExerciseDefinition, ...] = DEFAULT_EXERCISES
    debug: bool = False

    @property
    def cloud_enabled(self) -> bool:
        """True when both a database URL and a user id are configured."""
        return bool(self.database_url and self.uid)

    @property
    def data_path(self) -> Path:
        return Path(self.data_file).expanduser()


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the database URL, timeout or strategy is invalid.
    """
    if config.database_url:
        config.database_url = config.database_url.strip()

        if not config.database_url.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid database URL '{config.database_url}': must start with http:// or https://"
            )

        parsed = urlparse(config.database_url)
        if not parsed.hostname:
            raise ValueError(
                f"Invalid database URL '{config.database_url}': URL must include a hostname"
            )

        config.database_url = config.database_url.removesuffix("/")

        if not config.uid:
            logger.warning(
                "Database URL set but no user id (ONEUP_UID); cloud sync disabled"
            )

    if config.request_timeout <= 0:
        raise ValueError(
            f"Invalid request timeout {config.request_timeout}: must be greater than 0"
        )

    if config.conflict_strategy not in STRATEGIES:
        raise ValueError(
            f"Invalid conflict strategy '{config.conflict_strategy}': "
            f"must be one of {', '.join(STRATEGIES)}"
        )

    if config.database_url and config.database_url.startswith("http://"):
        logger.warning(
            "WARNING: database URL is not using HTTPS. Use only for local emulators."
        )


def load_config(
    database_url: str | None = None,
    auth_token: str | None = None,
    uid: str | None = None,
    data_file: str | None = None,
    auto_sync: bool = False,
    conflict_strategy: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
    exercises: tuple[ExerciseDefinition, ...] | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        database_url: Override database URL.
        auth_token: Override auth token.
        uid: Override user id.
        data_file: Override local storage file.
        auto_sync: Enable auto-sync (CLI flag).
        conflict_strategy: Override conflict strategy.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flattened values from the YAML ``remote``,
            ``storage`` and ``sync`` sections.  Used as fallback when CLI
            arg and env var are both unset.
        exercises: Configured exercises (YAML ``exercises`` section).

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a value is malformed after checking all sources.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > default ---

    final_url = (
        database_url or os.getenv("ONEUP_DATABASE_URL") or fb.get("database_url")
    )
    final_token = (
        auth_token or os.getenv("ONEUP_AUTH_TOKEN") or fb.get("auth_token")
    )
    final_uid = uid or os.getenv("ONEUP_UID") or fb.get("uid")
    final_data_file = (
        data_file
        or os.getenv("ONEUP_DATA_FILE")
        or fb.get("data_file")
        or DEFAULT_DATA_FILE
    )
    final_strategy = (
        conflict_strategy
        or os.getenv("ONEUP_CONFLICT_STRATEGY")
        or fb.get("conflict_strategy")
        or "merge"
    )

    # --- Boolean fields: CLI > env > YAML > default ---

    def get_bool_env(key: str) -> bool | None:
        """Return True/False from env var, or None if unset."""
        val = os.getenv(key)
        if val is None:
            return None
        return val.lower() in ("true", "1", "yes", "on")

    if auto_sync:
        final_auto_sync = True
    else:
        env_auto_sync = get_bool_env("ONEUP_AUTO_SYNC")
        if env_auto_sync is not None:
            final_auto_sync = env_auto_sync
        else:
            final_auto_sync = bool(fb.get("auto_sync", False))

    if debug:
        final_debug = True
    else:
        final_debug = bool(get_bool_env("ONEUP_DEBUG"))

    # --- Numeric fields: env > YAML > default ---

    timeout_raw = os.getenv("ONEUP_REQUEST_TIMEOUT")
    if timeout_raw is not None:
        try:
            final_timeout = float(timeout_raw)
        except ValueError:
            raise ValueError(
                f"Invalid ONEUP_REQUEST_TIMEOUT '{timeout_raw}': must be a number of seconds"
            ) from None
    elif "request_timeout" in fb:
        final_timeout = float(fb["request_timeout"])
    else:
        final_timeout = 30.0

    config = Config(
        database_url=final_url,
        auth_token=final_token,
        uid=final_uid,
        display_name=fb.get("display_name"),
        photo_url=fb.get("photo_url"),
        data_file=final_data_file,
        request_timeout=final_timeout,
        auto_sync=final_auto_sync,
        conflict_strategy=final_strategy,
        exercises=tuple(exercises) if exercises else DEFAULT_EXERCISES,
        debug=final_debug,
    )

    validate_config(config)

    return config
