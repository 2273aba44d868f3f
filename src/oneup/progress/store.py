"""Owner of the canonical progress snapshot.

``ProgressStore`` loads the snapshot from local storage at startup,
exposes the mutation operations, and persists the full snapshot after
every change.  Each mutation is a pure reducer: it builds a new
``ProgressState`` from the previous one, so readers never observe a
partially updated state.

State machine per (date, exercise)::

    NotStarted (count=0) --count--> InProgress (0<count<goal) --count--> Done
         ^                                                               |
         +------------------------- toggle_day --------------------------+

Count-driven updates move through all three states; the whole-day
toggle jumps straight between NotStarted and Done for every exercise.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import date, datetime, timedelta

from oneup.exercises import ExerciseDefinition, exercise_map
from oneup.progress import views
from oneup.progress.migrator import StateMigrator
from oneup.progress.models import (
    ExerciseCompletion,
    ProgressState,
    TimeOfDay,
    format_instant,
    year_anchor,
)
from oneup.progress.storage import PROGRESS_KEY, LocalStorage
from oneup.validators import (
    require,
    validate_date_str,
    validate_exercise_id,
    validate_goal,
)

logger = logging.getLogger(__name__)


def local_now() -> datetime:
    """Current time as an aware datetime in the local timezone."""
    return datetime.now().astimezone()


class ProgressStore:
    """Load, mutate and persist the progress snapshot.

    Args:
        storage: Durable local storage.
        exercises: Configured exercises (read-only).
        clock: Returns the current aware local time.  Injected so tests
            can pin "today" and the hour of day.
    """

    def __init__(
        self,
        storage: LocalStorage,
        exercises: Sequence[ExerciseDefinition],
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self.storage = storage
        self.exercises = tuple(exercises)
        self.clock = clock
        self._exercise_map = exercise_map(self.exercises)
        self.migrator = StateMigrator(self._exercise_map)
        self._state = ProgressState.empty(self.clock().year)

    @property
    def state(self) -> ProgressState:
        """The current snapshot."""
        return self._state

    def today_str(self) -> str:
        return views.local_date_str(self.clock())

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def initialize(self) -> ProgressState:
        """Load the snapshot from local storage.

        Missing, corrupt or unusable data yields an empty state.  A stored
        ``startDate`` from another year (year rollover) also forces a
        fresh, empty state.
        """
        anchor = year_anchor(self.clock().year)
        loaded = self.migrator.migrate(self.storage.get_item(PROGRESS_KEY))

        if loaded is None:
            logger.info("No usable local progress, starting fresh")
            self._state = ProgressState.empty(self.clock().year)
        elif loaded.start_date != anchor:
            logger.info(
                "Stored progress anchored on %s, resetting for %s",
                loaded.start_date,
                anchor,
            )
            self._state = ProgressState.empty(self.clock().year)
        else:
            self._state = loaded
        return self._state

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def start_challenge(self, user_start: date | str) -> ProgressState:
        """Complete onboarding and backfill past days.

        Every day in ``[user_start, today)`` is marked fully done for all
        configured exercises, stamped with the current instant and no
        time of day.  A future *user_start* backfills nothing.
        """
        if isinstance(user_start, str):
            require(validate_date_str(user_start))
            user_start = views.parse_date(user_start)

        now = self.clock()
        stamp = format_instant(now)
        today = now.date()

        completions = dict(self._state.completions)
        current = user_start
        while current < today:
            date_str = views.local_date_str(current)
            day = dict(completions.get(date_str, {}))
            for exercise in self.exercises:
                day[exercise.id] = ExerciseCompletion(
                    is_completed=True, timestamp=stamp
                )
            completions[date_str] = day
            current += timedelta(days=1)

        logger.info(
            "Challenge started from %s (%d day(s) backfilled)",
            user_start.isoformat(),
            max(0, (today - user_start).days),
        )
        return self._commit(
            self._state.model_copy(
                update={
                    "start_date": year_anchor(today.year),
                    "user_start_date": views.local_date_str(user_start),
                    "is_setup": True,
                    "completions": completions,
                }
            )
        )

    def toggle_day(self, date_str: str) -> ProgressState:
        """Flip a whole day between not-done and done.

        If any exercise is done, every exercise present that day becomes
        not-done (count reset, time of day cleared).  Otherwise every
        configured exercise becomes done.  Both directions restamp the
        timestamp; time of day is not inferred for this bulk action.
        """
        require(validate_date_str(date_str))
        stamp = format_instant(self.clock())
        day = self._state.completions.get(date_str, {})

        if views.is_day_done(self._state.completions, date_str):
            new_day = {
                exercise_id: entry.model_copy(
                    update={
                        "is_completed": False,
                        "timestamp": stamp,
                        "time_of_day": None,
                        "count": 0,
                    }
                )
                for exercise_id, entry in day.items()
            }
            logger.debug("Day %s toggled off", date_str)
        else:
            new_day = dict(day)
            for exercise in self.exercises:
                entry = day.get(exercise.id, ExerciseCompletion())
                new_day[exercise.id] = entry.model_copy(
                    update={"is_completed": True, "timestamp": stamp}
                )
            logger.debug("Day %s toggled on", date_str)

        return self._commit(self._with_day(date_str, new_day))

    def set_exercise_count(
        self, date_str: str, exercise_id: str, new_count: int, goal: int
    ) -> ProgressState:
        """Update the counter of one exercise on one day.

        The count is clamped to ``[0, goal]`` and the exercise is done
        when the clamped count reaches the goal.  The not-done -> done
        transition stamps the timestamp and buckets the local hour into a
        time of day; done -> not-done restamps and clears the time of day
        so that remote merges see the un-completion as the newer event.
        """
        require(validate_date_str(date_str))
        require(validate_exercise_id(exercise_id, self._exercise_map))
        require(validate_goal(goal))

        clamped = max(0, min(int(new_count), goal))
        completed = clamped >= goal

        day = self._state.completions.get(date_str, {})
        previous = day.get(exercise_id, ExerciseCompletion())
        update: dict = {"count": clamped, "is_completed": completed}

        if completed and not previous.is_completed:
            now = self.clock()
            update["timestamp"] = format_instant(now)
            update["time_of_day"] = TimeOfDay.from_hour(now.hour)
        elif previous.is_completed and not completed:
            update["timestamp"] = format_instant(self.clock())
            update["time_of_day"] = None

        new_day = {**day, exercise_id: previous.model_copy(update=update)}
        return self._commit(self._with_day(date_str, new_day))

    def adopt(self, state: ProgressState) -> ProgressState:
        """Replace the snapshot (e.g. with a cloud merge result) and persist it."""
        return self._commit(state)

    # ------------------------------------------------------------------
    # Derived views bound to the current snapshot
    # ------------------------------------------------------------------

    def day_number(self, date_str: str) -> int:
        return views.day_number(self._state.start_date, date_str)

    def is_day_done(self, date_str: str) -> bool:
        return views.is_day_done(self._state.completions, date_str)

    def total_reps(self, exercise_id: str) -> int:
        require(validate_exercise_id(exercise_id, self._exercise_map))
        exercise = self._exercise_map[exercise_id]
        return views.total_reps(
            self._state.completions,
            self._state.start_date,
            exercise.id,
            exercise.multiplier,
        )

    def goal_for(self, date_str: str, exercise_id: str) -> int:
        require(validate_exercise_id(exercise_id, self._exercise_map))
        return views.goal_for_date(
            self._state.start_date,
            date_str,
            self._exercise_map[exercise_id],
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _with_day(self, date_str: str, day: dict) -> ProgressState:
        completions = {**self._state.completions, date_str: day}
        return self._state.model_copy(update={"completions": completions})

    def _commit(self, state: ProgressState) -> ProgressState:
        self._state = state
        self.storage.set_item(PROGRESS_KEY, state.to_storage())
        return state
