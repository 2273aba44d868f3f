"""Sync engine between the local progress snapshot and the remote replica.

The ``SyncEngine`` ties together the remote store, the identity
provider, the migrator and a conflict resolver.  It:

1. Saves a sanitised projection of the snapshot (no device-local
   ``count``) with a server write time and a write token.
2. Loads and normalises the remote snapshot.
3. Syncs: load, resolve against local, save the result.
4. Keeps one live subscription whose changes re-enter the same resolve
   path, skipping echoes of its own writes and no-op changes.
5. Passes settings through and maintains the caller's leaderboard entry.

Error handling: every operation returns a ``SyncResult``; remote
failures (signed out, network, permission) are logged and reported, never
raised to the caller.  Dependencies are injected, there is no module-level
client.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any

from pydantic import ValidationError

from oneup.core.async_utils import call_soon_threadsafe, run_sync
from oneup.core.identity import Identity, IdentityProvider
from oneup.core.remote import SERVER_TIMESTAMP, RemoteStore, Unsubscribe
from oneup.exercises import ExerciseDefinition
from oneup.progress import views
from oneup.progress.migrator import StateMigrator
from oneup.progress.models import ProgressState
from oneup.progress.resolver import ConflictResolver, MergeResolver
from oneup.sync.guard import WRITE_TOKEN_FIELD, SelfWriteGuard
from oneup.sync.models import LeaderboardEntry, SyncResult

logger = logging.getLogger(__name__)

NOT_SIGNED_IN = "User not signed in"
LEADERBOARD_ROOT = "leaderboard"


def progress_path(uid: str) -> str:
    return f"users/{uid}/progress"


def settings_path(uid: str) -> str:
    return f"users/{uid}/settings"


def leaderboard_path(uid: str) -> str:
    return f"{LEADERBOARD_ROOT}/{uid}"


def sanitize(state: ProgressState) -> dict:
    """Project a snapshot to the cross-device contract.

    Each completion is reduced to ``{isCompleted, timestamp, timeOfDay}``;
    the device-local ``count`` is never transmitted.
    """
    return {
        "startDate": state.start_date,
        "userStartDate": state.user_start_date,
        "isSetup": state.is_setup,
        "schemaVersion": state.schema_version,
        "completions": {
            date_str: {
                exercise_id: entry.to_remote()
                for exercise_id, entry in day.items()
            }
            for date_str, day in state.completions.items()
        },
    }


class SyncEngine:
    """Synchronise progress with the remote replica.

    Args:
        remote: Remote hierarchical key-value store.
        identity: Reports the signed-in user.
        migrator: Normalises remote payloads (which may come from older
            clients) into ``ProgressState``.
        resolver: Strategy used by ``sync()`` and the live subscription.
            Defaults to the last-writer-wins merge.
        guard: Recognises echoes of this engine's own writes.
    """

    def __init__(
        self,
        remote: RemoteStore,
        identity: IdentityProvider,
        migrator: StateMigrator,
        resolver: ConflictResolver | None = None,
        guard: SelfWriteGuard | None = None,
    ) -> None:
        self.remote = remote
        self.identity = identity
        self.migrator = migrator
        self.resolver = resolver or MergeResolver()
        self.guard = guard or SelfWriteGuard()

        self._save_in_progress = False
        self._unsubscribe: Unsubscribe | None = None

    @property
    def save_in_progress(self) -> bool:
        return self._save_in_progress

    @property
    def subscribed(self) -> bool:
        return self._unsubscribe is not None

    def _user(self) -> Identity | None:
        return self.identity.current_user()

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    async def save(self, snapshot: ProgressState) -> SyncResult:
        """Write the sanitised snapshot to the remote replica.

        At most one save is in flight: a save requested while another is
        outstanding is dropped (not queued) and reported as in progress,
        since the next state change triggers its own save.
        """
        user = self._user()
        if user is None:
            return SyncResult.failure(NOT_SIGNED_IN)

        if self._save_in_progress:
            logger.debug("Save already in progress, skipping")
            return SyncResult.failure(
                "Save already in progress", in_progress=True
            )

        self._save_in_progress = True
        token = self.guard.issue()
        payload = {
            **sanitize(snapshot),
            "lastSyncedAt": SERVER_TIMESTAMP,
            WRITE_TOKEN_FIELD: token,
        }
        try:
            await run_sync(self.remote.set, progress_path(user.uid), payload)
        except Exception as exc:
            self.guard.forget(token)
            logger.error("Error saving to cloud: %s", exc)
            return SyncResult.failure(str(exc))
        finally:
            self._save_in_progress = False

        logger.info("Progress saved to cloud for %s", user.uid)
        return SyncResult(success=True, state=snapshot)

    async def load(self) -> SyncResult:
        """Fetch the remote snapshot.  ``state`` is ``None`` when none exists."""
        user = self._user()
        if user is None:
            return SyncResult.failure(NOT_SIGNED_IN)

        try:
            raw = await run_sync(self.remote.get, progress_path(user.uid))
        except Exception as exc:
            logger.error("Error loading from cloud: %s", exc)
            return SyncResult.failure(str(exc))

        if raw is None:
            logger.info("No cloud data found")
            return SyncResult(success=True)

        state = self.migrator.migrate(raw)
        if state is None:
            logger.warning("Cloud progress for %s is unusable", user.uid)
            return SyncResult(success=True)

        logger.info("Progress loaded from cloud for %s", user.uid)
        return SyncResult(success=True, state=state)

    async def sync(
        self,
        local: ProgressState | None,
        resolver: ConflictResolver | None = None,
    ) -> SyncResult:
        """Load remote, resolve against *local*, save and return the result.

        Args:
            local: Current local snapshot.
            resolver: Overrides the engine's strategy for this call (e.g.
                local-wins when the user chose to overwrite the cloud).
        """
        loaded = await self.load()
        if not loaded.success:
            return loaded

        strategy = resolver or self.resolver
        resolved = strategy.resolve(local, loaded.state)
        if resolved is None:
            return SyncResult.failure("No progress on either side")

        saved = await self.save(resolved)
        if not saved.success and not saved.in_progress:
            return SyncResult.failure(saved.error or "save failed", state=resolved)

        logger.info("Sync completed")
        return SyncResult(
            success=True, state=resolved, in_progress=saved.in_progress
        )

    # ------------------------------------------------------------------
    # Live subscription
    # ------------------------------------------------------------------

    async def subscribe(
        self,
        callback: Callable[[ProgressState], Any],
        local_state: Callable[[], ProgressState | None],
    ) -> Unsubscribe | None:
        """Listen to remote progress changes.

        Each change that is neither an echo of this engine's own write nor
        equal to the local completions is resolved against
        ``local_state()`` and the result passed to *callback* on the event
        loop.  Replaces any previous subscription.

        Returns:
            A callable that stops the subscription, or ``None`` when not
            signed in or the listener could not be started.
        """
        user = self._user()
        if user is None:
            logger.warning("Cannot listen to cloud changes: %s", NOT_SIGNED_IN)
            return None

        self.unsubscribe()
        loop = asyncio.get_running_loop()

        def on_remote_value(payload: Any) -> None:
            call_soon_threadsafe(
                loop,
                self._handle_remote_change,
                payload,
                callback,
                local_state,
            )

        try:
            self._unsubscribe = self.remote.listen(
                progress_path(user.uid), on_remote_value
            )
        except Exception as exc:
            logger.error("Error setting up cloud listener: %s", exc)
            return None

        logger.info("Listening to cloud changes for %s", user.uid)
        return self.unsubscribe

    def unsubscribe(self) -> None:
        """Stop the live subscription, if any."""
        handle, self._unsubscribe = self._unsubscribe, None
        if handle is None:
            return
        try:
            handle()
        except Exception:
            logger.exception("Error stopping cloud listener")
        logger.debug("Cloud listener stopped")

    def _handle_remote_change(
        self,
        payload: Any,
        callback: Callable[[ProgressState], Any],
        local_state: Callable[[], ProgressState | None],
    ) -> None:
        if self.guard.is_own_echo(payload):
            logger.debug("Ignoring echo of own write")
            return

        remote = self.migrator.migrate(payload)
        if remote is None:
            return

        local = local_state()
        if (
            local is not None
            and sanitize(local)["completions"]
            == sanitize(remote)["completions"]
        ):
            logger.debug("Remote completions match local, nothing to merge")
            return

        merged = self.resolver.resolve(local, remote)
        if merged is None:
            return
        logger.info("Applying remote progress change")
        try:
            callback(merged)
        except Exception:
            logger.exception("Remote change callback failed")

    # ------------------------------------------------------------------
    # Settings (opaque pass-through)
    # ------------------------------------------------------------------

    async def save_settings(self, settings: dict) -> SyncResult:
        user = self._user()
        if user is None:
            return SyncResult.failure(NOT_SIGNED_IN)
        try:
            await run_sync(self.remote.set, settings_path(user.uid), settings)
        except Exception as exc:
            logger.error("Error syncing settings: %s", exc)
            return SyncResult.failure(str(exc))
        logger.info("Settings synced to cloud")
        return SyncResult(success=True, data=settings)

    async def load_settings(self) -> SyncResult:
        user = self._user()
        if user is None:
            return SyncResult.failure(NOT_SIGNED_IN)
        try:
            settings = await run_sync(
                self.remote.get, settings_path(user.uid)
            )
        except Exception as exc:
            logger.error("Error loading settings: %s", exc)
            return SyncResult.failure(str(exc))
        return SyncResult(success=True, data=settings)

    # ------------------------------------------------------------------
    # Leaderboard
    # ------------------------------------------------------------------

    async def publish_leaderboard(
        self,
        snapshot: ProgressState,
        exercises: Sequence[ExerciseDefinition],
        pseudo: str | None = None,
        photo_url: str | None = None,
    ) -> SyncResult:
        """Write the caller's totals to the public leaderboard."""
        user = self._user()
        if user is None:
            return SyncResult.failure(NOT_SIGNED_IN)

        exercise_reps = views.exercise_totals(
            snapshot.completions, snapshot.start_date, exercises
        )
        entry = {
            "pseudo": pseudo or user.display_name or "Anonymous",
            "photoURL": photo_url or user.photo_url,
            "totalReps": sum(exercise_reps.values()),
            "exerciseReps": exercise_reps,
            "updatedAt": SERVER_TIMESTAMP,
        }
        try:
            await run_sync(
                self.remote.set, leaderboard_path(user.uid), entry
            )
        except Exception as exc:
            logger.error("Error publishing leaderboard entry: %s", exc)
            return SyncResult.failure(str(exc))
        logger.info(
            "Leaderboard entry published (%d reps)", entry["totalReps"]
        )
        return SyncResult(success=True, data=entry)

    async def load_leaderboard(self) -> SyncResult:
        """Return all entries sorted by total reps, highest first."""
        if self._user() is None:
            return SyncResult.failure(NOT_SIGNED_IN)
        try:
            raw = await run_sync(self.remote.get, LEADERBOARD_ROOT)
        except Exception as exc:
            logger.error("Error loading leaderboard: %s", exc)
            return SyncResult.failure(str(exc))

        entries: list[LeaderboardEntry] = []
        for uid, value in (raw or {}).items():
            if not isinstance(value, dict):
                continue
            try:
                entries.append(LeaderboardEntry(uid=uid, **value))
            except (ValidationError, TypeError) as exc:
                logger.debug("Skipping leaderboard entry %s: %s", uid, exc)
        entries.sort(key=lambda e: e.total_reps, reverse=True)
        return SyncResult(success=True, data=entries)

    async def remove_from_leaderboard(self) -> SyncResult:
        user = self._user()
        if user is None:
            return SyncResult.failure(NOT_SIGNED_IN)
        try:
            await run_sync(self.remote.delete, leaderboard_path(user.uid))
        except Exception as exc:
            logger.error("Error removing leaderboard entry: %s", exc)
            return SyncResult.failure(str(exc))
        return SyncResult(success=True)
