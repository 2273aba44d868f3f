"""Public operations of the OneUp progress core.

``ProgressService`` is the surface that screens, tools and schedulers
call.  It owns the ``ProgressStore`` and an optional ``SyncEngine``:

* Local mutations are synchronous and persisted immediately.  With
  ``auto_sync`` enabled each mutation also schedules a background save
  on the running event loop.
* Cloud operations are async and report failures through
  ``SyncResult``.  Without an engine (offline-only configuration) they
  fail with ``CLOUD_NOT_CONFIGURED``.
* Change listeners are notified after every local mutation and every
  adopted remote change.  A failing listener is logged and never aborts
  the operation that triggered it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import date

from oneup.progress import views
from oneup.progress.models import ProgressState, ProgressSummary
from oneup.progress.reporter import build_summary
from oneup.progress.resolver import create_resolver
from oneup.progress.store import ProgressStore
from oneup.sync.engine import SyncEngine
from oneup.sync.models import SyncResult
from oneup.validators import (
    require,
    validate_date_str,
    validate_interaction_date,
)

logger = logging.getLogger(__name__)

CLOUD_NOT_CONFIGURED = "Cloud sync not configured"

ChangeListener = Callable[[ProgressState], None]


class ProgressService:
    """Facade over the progress store and the sync engine.

    Args:
        store: Owner of the local snapshot.
        engine: Cloud sync engine, or ``None`` for offline-only use.
        auto_sync: Save to the cloud after every local mutation.
    """

    def __init__(
        self,
        store: ProgressStore,
        engine: SyncEngine | None = None,
        auto_sync: bool = False,
    ) -> None:
        self.store = store
        self.engine = engine
        self.auto_sync = auto_sync
        self._listeners: list[ChangeListener] = []
        self._pending_saves: set[asyncio.Task] = set()

    @property
    def state(self) -> ProgressState:
        return self.store.state

    @property
    def exercises(self):
        return self.store.exercises

    @property
    def cloud_enabled(self) -> bool:
        return self.engine is not None

    def initialize(self) -> ProgressState:
        """Load the local snapshot.  Call once at startup."""
        state = self.store.initialize()
        self._notify(state)
        return state

    # ------------------------------------------------------------------
    # Change listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: ChangeListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self, state: ProgressState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Progress listener %r failed", listener)

    # ------------------------------------------------------------------
    # Local mutations
    # ------------------------------------------------------------------

    def start_challenge(self, user_start: date | str) -> ProgressState:
        return self._after_mutation(self.store.start_challenge(user_start))

    def toggle_day(self, date_str: str) -> ProgressState:
        self._require_editable(date_str)
        return self._after_mutation(self.store.toggle_day(date_str))

    def set_exercise_count(
        self,
        date_str: str,
        exercise_id: str,
        new_count: int,
        goal: int | None = None,
    ) -> ProgressState:
        """Set the counter of one exercise.  *goal* defaults to the day's goal."""
        self._require_editable(date_str)
        if goal is None:
            goal = self.store.goal_for(date_str, exercise_id)
        return self._after_mutation(
            self.store.set_exercise_count(
                date_str, exercise_id, new_count, goal
            )
        )

    def _require_editable(self, date_str: str) -> None:
        """Only days in ``[userStartDate, today]`` can be edited."""
        require(
            validate_interaction_date(
                date_str, self.state.user_start_date, self.today()
            )
        )

    def _after_mutation(self, state: ProgressState) -> ProgressState:
        self._notify(state)
        if self.auto_sync and self.engine is not None:
            self._schedule_save()
        return state

    def _schedule_save(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, skipping auto-save")
            return
        task = loop.create_task(self.save_to_cloud())
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)

    async def flush(self) -> None:
        """Wait for scheduled auto-saves to finish."""
        if self._pending_saves:
            await asyncio.gather(*self._pending_saves)

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def today(self) -> str:
        return self.store.today_str()

    def day_number(self, date_str: str | None = None) -> int:
        return self.store.day_number(date_str or self.today())

    def is_day_done(self, date_str: str | None = None) -> bool:
        return self.store.is_day_done(date_str or self.today())

    def total_reps(self, exercise_id: str) -> int:
        return self.store.total_reps(exercise_id)

    def goal_for(self, exercise_id: str, date_str: str | None = None) -> int:
        return self.store.goal_for(date_str or self.today(), exercise_id)

    def streak(self, today: str | None = None) -> int:
        today = today or self.today()
        require(validate_date_str(today))
        return views.streak(self.state.completions, today)

    def exercise_streak(
        self, exercise_id: str, today: str | None = None
    ) -> int:
        today = today or self.today()
        require(validate_date_str(today))
        return views.exercise_streak(
            self.state.completions, today, exercise_id
        )

    def summary(self, today: str | None = None) -> ProgressSummary:
        today = today or self.today()
        require(validate_date_str(today))
        return build_summary(self.state, self.exercises, today)

    # ------------------------------------------------------------------
    # Cloud
    # ------------------------------------------------------------------

    async def save_to_cloud(self) -> SyncResult:
        if self.engine is None:
            return SyncResult.failure(CLOUD_NOT_CONFIGURED)
        return await self.engine.save(self.state)

    async def load_from_cloud(self) -> SyncResult:
        """Fetch the cloud snapshot without touching local state."""
        if self.engine is None:
            return SyncResult.failure(CLOUD_NOT_CONFIGURED)
        return await self.engine.load()

    async def sync_with_cloud(self) -> SyncResult:
        """Merge local and cloud progress and adopt the result locally."""
        return await self.resolve_with_cloud(None)

    async def resolve_with_cloud(self, strategy: str | None) -> SyncResult:
        """Reconcile with the cloud using a named strategy.

        Args:
            strategy: ``"merge"``, ``"local-wins"`` (upload) or
                ``"remote-wins"`` (restore).  ``None`` uses the engine's
                configured strategy.

        Raises:
            ValueError: If *strategy* is unknown.
        """
        if self.engine is None:
            return SyncResult.failure(CLOUD_NOT_CONFIGURED)
        resolver = create_resolver(strategy) if strategy else None
        result = await self.engine.sync(self.state, resolver)
        if result.state is not None and result.state != self.state:
            self._adopt(result.state)
        return result

    async def subscribe_to_cloud(self) -> bool:
        """Start the live subscription.  Returns ``False`` if it could not start."""
        if self.engine is None:
            return False
        handle = await self.engine.subscribe(
            self._adopt, lambda: self.store.state
        )
        return handle is not None

    def unsubscribe_from_cloud(self) -> None:
        if self.engine is not None:
            self.engine.unsubscribe()

    def _adopt(self, state: ProgressState) -> None:
        self.store.adopt(state)
        self._notify(state)

    async def save_settings(self, settings: dict) -> SyncResult:
        if self.engine is None:
            return SyncResult.failure(CLOUD_NOT_CONFIGURED)
        return await self.engine.save_settings(settings)

    async def load_settings(self) -> SyncResult:
        if self.engine is None:
            return SyncResult.failure(CLOUD_NOT_CONFIGURED)
        return await self.engine.load_settings()

    async def publish_leaderboard(
        self, pseudo: str | None = None, photo_url: str | None = None
    ) -> SyncResult:
        if self.engine is None:
            return SyncResult.failure(CLOUD_NOT_CONFIGURED)
        return await self.engine.publish_leaderboard(
            self.state, self.exercises, pseudo=pseudo, photo_url=photo_url
        )

    async def load_leaderboard(self) -> SyncResult:
        if self.engine is None:
            return SyncResult.failure(CLOUD_NOT_CONFIGURED)
        return await self.engine.load_leaderboard()

    async def remove_from_leaderboard(self) -> SyncResult:
        if self.engine is None:
            return SyncResult.failure(CLOUD_NOT_CONFIGURED)
        return await self.engine.remove_from_leaderboard()
