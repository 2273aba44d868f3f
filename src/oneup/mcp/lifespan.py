"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import Config, load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import build_config
from ..core.identity import Identity, StaticIdentityProvider
from ..core.remote import FirebaseRestStore
from ..progress.migrator import StateMigrator
from ..progress.resolver import create_resolver
from ..progress.storage import LocalStorage
from ..progress.store import ProgressStore
from ..service import ProgressService
from ..sync.engine import SyncEngine

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


def build_service(config: Config) -> ProgressService:
    """Wire a ``ProgressService`` from configuration.

    The sync engine is only created when ``config.cloud_enabled``;
    otherwise the service runs offline-only.  The local snapshot is
    loaded before returning.
    """
    store = ProgressStore(LocalStorage(config.data_path), config.exercises)

    engine = None
    if config.cloud_enabled:
        remote = FirebaseRestStore(
            config.database_url,
            auth_token=config.auth_token,
            timeout=config.request_timeout,
        )
        identity = StaticIdentityProvider(
            Identity(
                uid=config.uid,
                display_name=config.display_name,
                photo_url=config.photo_url,
            )
        )
        engine = SyncEngine(
            remote=remote,
            identity=identity,
            migrator=StateMigrator([ex.id for ex in config.exercises]),
            resolver=create_resolver(config.conflict_strategy),
        )

    service = ProgressService(store, engine, auto_sync=config.auto_sync)
    service.initialize()
    return service


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present (as fallback values)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Build the ProgressService and load local progress
    - With auto-sync enabled, sync once and start the live listener

    On shutdown:
    - Stop the live listener and wait for pending saves

    Args:
        config_overrides: Optional dict with config values from CLI
            (database_url, uid, data_file, auto_sync, conflict_strategy)

    Yields:
        Dict with 'service' key containing the initialized ProgressService

    Raises:
        RuntimeError: If configuration is invalid.
    """
    logger.info("MCP server starting...")
    _stderr_print("OneUp MCP Server starting...")

    try:
        # .env first so ${VAR} interpolation in YAML can use its values
        load_dotenv()

        yaml_fallbacks: dict[str, Any] | None = None
        exercises = None
        config_files = discover_config_files()
        sources = []

        if config_files:
            unified = build_config(load_hierarchical_config())
            yaml_fallbacks = {
                k: v
                for k, v in {
                    **unified.remote.model_dump(),
                    **unified.storage.model_dump(),
                    **unified.sync.model_dump(),
                }.items()
                if v is not None
            }
            exercises = unified.exercises
            sources.append(f"config file: {config_files[0]}")

        overrides = config_overrides or {}
        config = load_config(
            database_url=overrides.get("database_url"),
            uid=overrides.get("uid"),
            data_file=overrides.get("data_file"),
            auto_sync=overrides.get("auto_sync", False),
            conflict_strategy=overrides.get("conflict_strategy"),
            debug=overrides.get("debug", False),
            yaml_fallbacks=yaml_fallbacks,
            exercises=exercises,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(f"Configuration error: {e}") from e

    service = build_service(config)
    _stderr_print(f"  Local progress: {config.data_path}")
    if service.cloud_enabled:
        logger.info("Cloud sync enabled: %s", config.database_url)
        _stderr_print(f"  Cloud sync: {config.database_url} (uid {config.uid})")
    else:
        _stderr_print("  Cloud sync: disabled (offline-only)")

    if service.cloud_enabled and config.auto_sync:
        result = await service.sync_with_cloud()
        if not result.success:
            logger.warning("Initial sync failed: %s", result.error)
            _stderr_print(f"  Initial sync failed: {result.error}")
        await service.subscribe_to_cloud()

    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield {"service": service}
    finally:
        service.unsubscribe_from_cloud()
        await service.flush()
        logger.info("MCP server shutting down")
        _stderr_print("OneUp MCP Server shutting down.")
