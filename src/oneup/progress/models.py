"""Pydantic models for the progress snapshot.

Defines the data contracts shared by the store, the migrator, the
resolver and the sync engine:

- ``TimeOfDay``: Bucket of the local hour at which an exercise was done.
- ``ExerciseCompletion``: State of one exercise on one day.
- ``ProgressState``: The canonical snapshot.
- ``ProgressSummary``, ``ExerciseSummary``: derived figures for reports.

Field names on the wire and on disk are camelCase (``startDate``,
``isCompleted``) so that data stays readable by every device; Python code
uses the snake_case attribute names.  All models are frozen: mutations
always build a new snapshot.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

# Version written by this package.  See ``migrator`` for the upgrade chain.
SCHEMA_VERSION = 3


class TimeOfDay(str, Enum):
    """Local time-of-day bucket of a real-time completion."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

    @classmethod
    def from_hour(cls, hour: int) -> TimeOfDay:
        """Bucket a local hour: ``<12`` morning, ``<18`` afternoon, else evening."""
        if hour < 12:
            return cls.MORNING
        if hour < 18:
            return cls.AFTERNOON
        return cls.EVENING


class ExerciseCompletion(BaseModel):
    """Completion state of a single exercise on a single day.

    Attributes:
        is_completed: Whether the day's goal was reached.
        timestamp: ISO 8601 UTC instant of the last done/not-done
            transition.  Also acts as a tombstone when un-completing.
        time_of_day: Set on the not-done -> done transition only.
        count: In-progress counter.  Device-local, never synced.
    """

    is_completed: bool = Field(default=False, alias="isCompleted")
    timestamp: str | None = None
    time_of_day: TimeOfDay | None = Field(default=None, alias="timeOfDay")
    count: int = 0

    model_config = {"frozen": True, "populate_by_name": True}

    def to_remote(self) -> dict:
        """Project to the cross-device contract (no ``count``)."""
        return {
            "isCompleted": self.is_completed,
            "timestamp": self.timestamp,
            "timeOfDay": (
                self.time_of_day.value if self.time_of_day else None
            ),
        }


class ProgressState(BaseModel):
    """The canonical progress snapshot.

    Attributes:
        start_date: Jan 1 of the current year; anchor for day numbering.
        user_start_date: Date the user declared as their start; anchor
            for backfill and future-date gating.
        completions: Day records keyed by ``YYYY-MM-DD``.
        is_setup: True once onboarding completed.
        schema_version: Storage schema version.
    """

    start_date: str = Field(alias="startDate")
    user_start_date: str = Field(alias="userStartDate")
    completions: dict[str, dict[str, ExerciseCompletion]] = Field(
        default_factory=dict
    )
    is_setup: bool = Field(default=False, alias="isSetup")
    schema_version: int = Field(
        default=SCHEMA_VERSION, alias="schemaVersion"
    )

    model_config = {"frozen": True, "populate_by_name": True}

    @classmethod
    def empty(cls, year: int) -> ProgressState:
        """Fresh, not-yet-onboarded state anchored on Jan 1 of *year*."""
        anchor = year_anchor(year)
        return cls(start_date=anchor, user_start_date=anchor)

    def to_storage(self) -> dict:
        """Serialise for local storage, including device-local counts."""
        return self.model_dump(by_alias=True, mode="json")


def year_anchor(year: int) -> str:
    """Return the ``YYYY-01-01`` math anchor for *year*."""
    return f"{year:04d}-01-01"


def format_instant(moment: datetime) -> str:
    """Format an aware datetime as a UTC instant, ``2025-01-10T08:15:00.000Z``.

    Matches JavaScript ``Date.toISOString()`` so that timestamps written by
    every client compare the same way.
    """
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_instant(value: str | None) -> datetime | None:
    """Parse an ISO 8601 instant; ``None`` when absent or unparseable."""
    if not value:
        return None
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError, AttributeError):
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


class ExerciseSummary(BaseModel):
    """Per-exercise figures of a progress summary."""

    exercise_id: str
    label: str
    goal_today: int
    done_today: bool
    count_today: int
    total_reps: int
    streak: int

    model_config = {"frozen": True}


class ProgressSummary(BaseModel):
    """Snapshot-derived figures for one day, used by reports and tools."""

    today: str
    day_number: int
    is_setup: bool
    start_date: str
    user_start_date: str
    day_done: bool
    streak: int
    total_reps: int
    exercises: list[ExerciseSummary] = []
    time_of_day: dict[str, int] = {}

    model_config = {"frozen": True}
