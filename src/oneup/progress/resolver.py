"""Conflict resolution between the local and remote progress snapshots.

``merge()`` is the last-writer-wins merge at per-exercise-per-day
granularity, the finest grain at which two devices can plausibly race.
It is pure: inputs are never mutated and a new snapshot is returned.

Strategy objects wrap the choices offered when a device first meets
existing cloud data:

- ``MergeResolver``: LWW ``merge()`` of both sides.
- ``LocalWinsResolver``: keep local, overwrite the cloud ("upload").
- ``RemoteWinsResolver``: take the cloud copy ("restore").

The ``create_resolver()`` factory maps config strategy strings to
resolver instances.
"""

from __future__ import annotations

import logging
from typing import Protocol

from oneup.progress.models import (
    ExerciseCompletion,
    ProgressState,
    parse_instant,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def merge(
    local: ProgressState | None, remote: ProgressState | None
) -> ProgressState | None:
    """Merge two snapshots.

    * If either side is absent the other is returned as is.
    * ``startDate`` is always local: it is the current year's anchor and
      a remote copy from another year must not move it.
    * Onboarding fields prefer local.  A local copy that was never set up
      (fresh install, defaults only) takes ``userStartDate`` and
      ``isSetup`` from a set-up remote anchored on the same year.
    * Completions merge per date, then per exercise: a date only present
      remotely is adopted wholesale; for an exercise on both sides the
      remote ``{isCompleted, timestamp, timeOfDay}`` replaces local only
      when its timestamp is strictly newer (or local has none), keeping
      the local-only ``count``.
    """
    if remote is None:
        return local
    if local is None:
        return remote

    completions = dict(local.completions)
    for date_str, remote_day in remote.completions.items():
        local_day = completions.get(date_str)
        if local_day is None:
            completions[date_str] = dict(remote_day)
            continue
        completions[date_str] = _merge_day(local_day, remote_day)

    same_year = remote.start_date == local.start_date
    if not local.is_setup and remote.is_setup and same_year:
        user_start_date = remote.user_start_date
    else:
        user_start_date = local.user_start_date

    return ProgressState(
        start_date=local.start_date,
        user_start_date=user_start_date or local.start_date,
        completions=completions,
        is_setup=local.is_setup or (remote.is_setup and same_year),
    )


def _merge_day(
    local_day: dict[str, ExerciseCompletion],
    remote_day: dict[str, ExerciseCompletion],
) -> dict[str, ExerciseCompletion]:
    merged = dict(local_day)
    for exercise_id, remote_entry in remote_day.items():
        local_entry = local_day.get(exercise_id)
        if local_entry is None:
            merged[exercise_id] = remote_entry
        elif _remote_is_newer(local_entry, remote_entry):
            merged[exercise_id] = local_entry.model_copy(
                update={
                    "is_completed": remote_entry.is_completed,
                    "timestamp": remote_entry.timestamp,
                    "time_of_day": remote_entry.time_of_day,
                }
            )
    return merged


def _remote_is_newer(
    local_entry: ExerciseCompletion, remote_entry: ExerciseCompletion
) -> bool:
    remote_ts = parse_instant(remote_entry.timestamp)
    if remote_ts is None:
        return False
    local_ts = parse_instant(local_entry.timestamp)
    if local_ts is None:
        return True
    return remote_ts > local_ts


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ConflictResolver(Protocol):
    """Protocol that all conflict resolvers must satisfy."""

    def resolve(
        self, local: ProgressState | None, remote: ProgressState | None
    ) -> ProgressState | None:
        """Return the snapshot both sides should converge to."""
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class MergeResolver:
    """Resolve by last-writer-wins merge of both sides."""

    def resolve(
        self, local: ProgressState | None, remote: ProgressState | None
    ) -> ProgressState | None:
        """Return ``merge(local, remote)``."""
        return merge(local, remote)


class LocalWinsResolver:
    """Always resolve in favour of the local snapshot."""

    def resolve(
        self, local: ProgressState | None, remote: ProgressState | None
    ) -> ProgressState | None:
        """Return local, or remote when there is no local copy."""
        if local is None:
            return remote
        logger.info("Keeping local progress, cloud copy will be replaced")
        return local


class RemoteWinsResolver:
    """Always resolve in favour of the remote snapshot."""

    def resolve(
        self, local: ProgressState | None, remote: ProgressState | None
    ) -> ProgressState | None:
        """Return remote, or local when there is no remote copy."""
        if remote is None:
            return local
        logger.info("Restoring progress from the cloud copy")
        return remote


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_STRATEGY_MAP: dict[str, type] = {
    "merge": MergeResolver,
    "local-wins": LocalWinsResolver,
    "remote-wins": RemoteWinsResolver,
}

STRATEGIES = tuple(sorted(_STRATEGY_MAP))


def create_resolver(strategy: str) -> ConflictResolver:
    """Create a conflict resolver for the given strategy string.

    Args:
        strategy: One of ``"merge"``, ``"local-wins"``, ``"remote-wins"``.

    Returns:
        A ``ConflictResolver`` implementation instance.

    Raises:
        ValueError: If the strategy string is not recognised.
    """
    cls = _STRATEGY_MAP.get(strategy)
    if cls is None:
        raise ValueError(
            f"Unknown conflict strategy: '{strategy}'. Valid strategies: {sorted(_STRATEGY_MAP.keys())}"
        )
    return cls()  # type: ignore[return-value]
