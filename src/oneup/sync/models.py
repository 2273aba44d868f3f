"""Pydantic models returned by the sync engine.

- ``SyncResult``: Outcome of one remote operation.  Remote failures are
  reported here instead of being raised to the caller.
- ``LeaderboardEntry``: Public leaderboard record of one user.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from oneup.progress.models import ProgressState


class SyncResult(BaseModel):
    """Result of a sync engine operation.

    Attributes:
        success: Whether the operation succeeded.
        error: Error message if the operation failed.
        state: Snapshot loaded, saved or merged by the operation.
        data: Operation-specific payload (settings, leaderboard entries).
        in_progress: True when a save was dropped because another save
            was still in flight.
    """

    success: bool
    error: str | None = None
    state: ProgressState | None = None
    data: Any = None
    in_progress: bool = False

    model_config = {"frozen": True}

    @classmethod
    def failure(cls, error: str, **kwargs: Any) -> SyncResult:
        return cls(success=False, error=error, **kwargs)


class LeaderboardEntry(BaseModel):
    """One user's public totals.

    Attributes:
        uid: Owner of the entry.
        pseudo: Public display name.
        photo_url: Avatar URL.
        total_reps: Repetitions over all exercises.
        exercise_reps: Repetitions per exercise id.
        updated_at: Server write time in epoch milliseconds.
    """

    uid: str
    pseudo: str = "Anonymous"
    photo_url: str | None = Field(default=None, alias="photoURL")
    total_reps: int = Field(default=0, alias="totalReps")
    exercise_reps: dict[str, int] = Field(
        default_factory=dict, alias="exerciseReps"
    )
    updated_at: int | None = Field(default=None, alias="updatedAt")

    model_config = {"frozen": True, "populate_by_name": True}
