"""Normalise persisted progress blobs into the current schema.

Blobs carry an explicit ``schemaVersion``; blobs written before the field
existed are version 1.  An ordered chain of upgrade functions brings any
known version up to ``SCHEMA_VERSION``:

* **v1 -> v2** -- day records become per-exercise.  Legacy flat entries
  (``{done, pushupCount, timestamp, timeOfDay}``) are folded into the
  primary exercise.  A v1 blob without ``isSetup`` predates onboarding
  and is treated as already set up.
* **v2 -> v3** -- exercise sub-objects rename ``done`` to ``isCompleted``.

``StateMigrator.migrate()`` never raises: unusable input yields ``None``
and is logged.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from oneup.exercises import PRIMARY_EXERCISE_ID
from oneup.progress.models import (
    SCHEMA_VERSION,
    ExerciseCompletion,
    ProgressState,
    TimeOfDay,
)
from oneup.validators import validate_date_str

logger = logging.getLogger(__name__)

_TIME_OF_DAY_VALUES = {bucket.value for bucket in TimeOfDay}


class StateMigrator:
    """Upgrade raw deserialised blobs to ``ProgressState``.

    Args:
        exercise_ids: Known exercise identifiers, used to tell
            per-exercise day records from legacy flat ones.
        primary_exercise_id: Exercise receiving legacy flat entries.
    """

    def __init__(
        self,
        exercise_ids: Iterable[str],
        primary_exercise_id: str = PRIMARY_EXERCISE_ID,
    ) -> None:
        self.exercise_ids = frozenset(exercise_ids)
        self.primary_exercise_id = primary_exercise_id
        self._upgrades: dict[int, Callable[[dict], dict]] = {
            1: self._upgrade_v1_to_v2,
            2: self._upgrade_v2_to_v3,
        }

    def migrate(self, raw: Any) -> ProgressState | None:
        """Return a normalised ``ProgressState`` or ``None`` if *raw* is unusable."""
        if not isinstance(raw, dict):
            if raw is not None:
                logger.warning(
                    "Ignoring progress blob of type %s", type(raw).__name__
                )
            return None
        try:
            return self._migrate(raw)
        except Exception:
            logger.exception("Failed to migrate progress blob")
            return None

    # ------------------------------------------------------------------
    # Upgrade chain
    # ------------------------------------------------------------------

    def _migrate(self, raw: dict) -> ProgressState | None:
        blob = dict(raw)
        version = blob.get("schemaVersion", 1)
        if not isinstance(version, int) or version < 1:
            logger.warning(
                "Invalid schemaVersion %r, treating as v1", version
            )
            version = 1
        if version > SCHEMA_VERSION:
            logger.warning(
                "Progress blob has newer schema v%d (known v%d), "
                "reading best-effort",
                version,
                SCHEMA_VERSION,
            )
            version = SCHEMA_VERSION

        while version < SCHEMA_VERSION:
            logger.debug(
                "Upgrading progress blob v%d -> v%d", version, version + 1
            )
            blob = self._upgrades[version](blob)
            version += 1

        return self._build_state(blob)

    def _upgrade_v1_to_v2(self, blob: dict) -> dict:
        completions = blob.get("completions")
        upgraded: dict[str, dict] = {}
        if isinstance(completions, dict):
            for date_str, entry in completions.items():
                if not isinstance(entry, dict):
                    logger.debug("Dropping non-object entry for %s", date_str)
                    continue
                if self.exercise_ids.intersection(entry):
                    upgraded[date_str] = entry
                elif "done" in entry or "pushupCount" in entry:
                    upgraded[date_str] = {
                        self.primary_exercise_id: self._flat_to_exercise(
                            entry
                        )
                    }
                else:
                    logger.debug(
                        "Dropping unrecognised entry for %s", date_str
                    )

        result = {**blob, "completions": upgraded}
        if "isSetup" not in blob:
            # Written before onboarding existed: the user was already
            # tracking from the anchor date.
            result["isSetup"] = True
            result["userStartDate"] = blob.get("startDate")
        return result

    def _upgrade_v2_to_v3(self, blob: dict) -> dict:
        completions = blob.get("completions")
        upgraded: dict[str, dict] = {}
        if isinstance(completions, dict):
            for date_str, day in completions.items():
                if not isinstance(day, dict):
                    continue
                upgraded[date_str] = {
                    exercise_id: self._rename_done(sub)
                    for exercise_id, sub in day.items()
                }
        return {**blob, "completions": upgraded}

    @staticmethod
    def _flat_to_exercise(entry: dict) -> dict:
        return {
            "isCompleted": bool(entry.get("done", False)),
            "count": entry.get("pushupCount", 0),
            "timestamp": entry.get("timestamp"),
            "timeOfDay": entry.get("timeOfDay"),
        }

    @staticmethod
    def _rename_done(sub: Any) -> Any:
        if not isinstance(sub, dict):
            return sub
        if "isCompleted" in sub or "done" not in sub:
            return sub
        renamed = {k: v for k, v in sub.items() if k != "done"}
        renamed["isCompleted"] = bool(sub["done"])
        return renamed

    # ------------------------------------------------------------------
    # Final normalisation
    # ------------------------------------------------------------------

    def _build_state(self, blob: dict) -> ProgressState | None:
        start_date = blob.get("startDate")
        if not isinstance(start_date, str) or not validate_date_str(
            start_date
        )[0]:
            logger.info("Progress blob has no usable startDate")
            return None

        user_start = blob.get("userStartDate")
        if not isinstance(user_start, str) or not validate_date_str(
            user_start
        )[0]:
            user_start = start_date

        completions: dict[str, dict[str, ExerciseCompletion]] = {}
        raw_completions = blob.get("completions")
        if isinstance(raw_completions, dict):
            for date_str, day in raw_completions.items():
                if not isinstance(day, dict):
                    continue
                if not validate_date_str(date_str)[0]:
                    logger.debug("Dropping invalid date key %r", date_str)
                    continue
                record = {
                    exercise_id: completion
                    for exercise_id, sub in day.items()
                    if (completion := _to_completion(sub)) is not None
                }
                if record:
                    completions[date_str] = record

        return ProgressState(
            start_date=start_date,
            user_start_date=user_start,
            completions=completions,
            is_setup=bool(blob.get("isSetup", False)),
        )


def _to_completion(sub: Any) -> ExerciseCompletion | None:
    if not isinstance(sub, dict):
        return None
    timestamp = sub.get("timestamp")
    time_of_day = sub.get("timeOfDay")
    count = sub.get("count", 0)
    try:
        count = max(0, int(count))
    except (TypeError, ValueError):
        count = 0
    return ExerciseCompletion(
        is_completed=bool(sub.get("isCompleted", False)),
        timestamp=timestamp if isinstance(timestamp, str) else None,
        time_of_day=(
            TimeOfDay(time_of_day)
            if isinstance(time_of_day, str)
            and time_of_day in _TIME_OF_DAY_VALUES
            else None
        ),
        count=count,
    )
