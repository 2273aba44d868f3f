"""Offline-first progress state.

Modules:

- ``models``    -- ``ProgressState``, ``ExerciseCompletion``, ``TimeOfDay``.
- ``views``     -- pure derived views (day numbers, goals, streaks, totals).
- ``migrator``  -- ``StateMigrator``: versioned upgrade chain for stored blobs.
- ``storage``   -- ``LocalStorage``: atomic JSON key-value file.
- ``store``     -- ``ProgressStore``: owns and persists the canonical snapshot.
- ``resolver``  -- ``merge()`` and conflict resolution strategies.
- ``reporter``  -- human-readable and JSON progress summaries.
"""

from .migrator import StateMigrator
from .models import (
    SCHEMA_VERSION,
    ExerciseCompletion,
    ProgressState,
    TimeOfDay,
)
from .resolver import create_resolver, merge
from .storage import LocalStorage
from .store import ProgressStore

__all__ = [
    "SCHEMA_VERSION",
    "ExerciseCompletion",
    "LocalStorage",
    "ProgressState",
    "ProgressStore",
    "StateMigrator",
    "TimeOfDay",
    "create_resolver",
    "merge",
]
