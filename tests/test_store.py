"""Tests for progress/store.py -- mutations and persistence."""

from datetime import datetime, timezone

import pytest

from oneup.progress.models import ExerciseCompletion, TimeOfDay
from oneup.progress.storage import PROGRESS_KEY
from oneup.progress.store import ProgressStore

NOW = "2025-01-15T09:30:00.000Z"


# ---------------------------------------------------------------------------
# initialize()
# ---------------------------------------------------------------------------


class TestInitialize:
    """Loading the snapshot at startup."""

    def test_empty_storage_gives_empty_state(self, store):
        state = store.state
        assert state.start_date == "2025-01-01"
        assert state.user_start_date == "2025-01-01"
        assert state.is_setup is False
        assert state.completions == {}

    def test_loads_persisted_state(self, storage, exercises, clock):
        storage.set_item(
            PROGRESS_KEY,
            {
                "schemaVersion": 3,
                "startDate": "2025-01-01",
                "userStartDate": "2025-01-03",
                "isSetup": True,
                "completions": {
                    "2025-01-04": {"pushups": {"isCompleted": True}}
                },
            },
        )
        store = ProgressStore(storage, exercises, clock=clock)
        state = store.initialize()
        assert state.is_setup is True
        assert state.user_start_date == "2025-01-03"
        assert store.is_day_done("2025-01-04")

    def test_year_rollover_resets(self, storage, exercises, clock):
        storage.set_item(
            PROGRESS_KEY,
            {
                "startDate": "2024-01-01",
                "isSetup": True,
                "completions": {
                    "2024-12-31": {"pushups": {"isCompleted": True}}
                },
            },
        )
        store = ProgressStore(storage, exercises, clock=clock)
        state = store.initialize()
        assert state.start_date == "2025-01-01"
        assert state.completions == {}
        assert state.is_setup is False

    def test_corrupt_storage_gives_empty_state(self, storage, exercises, clock):
        storage.path.write_text("not json")
        store = ProgressStore(storage, exercises, clock=clock)
        assert store.initialize().completions == {}


# ---------------------------------------------------------------------------
# start_challenge()
# ---------------------------------------------------------------------------


class TestStartChallenge:
    """Onboarding and backfill."""

    def test_backfills_until_yesterday(self, store, exercises):
        state = store.start_challenge("2025-01-10")

        for day in range(10, 15):
            date_str = f"2025-01-{day:02d}"
            record = state.completions[date_str]
            assert set(record) == {ex.id for ex in exercises}
            for entry in record.values():
                assert entry.is_completed is True
                assert entry.timestamp == NOW
                assert entry.time_of_day is None
        assert "2025-01-15" not in state.completions

    def test_sets_onboarding_fields(self, store):
        state = store.start_challenge("2025-01-10")
        assert state.is_setup is True
        assert state.start_date == "2025-01-01"
        assert state.user_start_date == "2025-01-10"

    def test_accepts_date_object(self, store):
        from datetime import date

        state = store.start_challenge(date(2025, 1, 14))
        assert list(state.completions) == ["2025-01-14"]

    def test_future_start_backfills_nothing(self, store):
        state = store.start_challenge("2025-01-20")
        assert state.completions == {}
        assert state.is_setup is True

    def test_persists(self, store, storage):
        store.start_challenge("2025-01-14")
        saved = storage.get_item(PROGRESS_KEY)
        assert saved["isSetup"] is True
        assert saved["completions"]["2025-01-14"]["pushups"]["isCompleted"]

    def test_invalid_date_raises(self, store):
        with pytest.raises(ValueError, match="YYYY-MM-DD"):
            store.start_challenge("14/01/2025")


# ---------------------------------------------------------------------------
# toggle_day()
# ---------------------------------------------------------------------------


class TestToggleDay:
    """Whole-day toggle."""

    def test_marks_every_exercise_done(self, store, exercises):
        state = store.toggle_day("2025-01-15")
        record = state.completions["2025-01-15"]
        assert set(record) == {ex.id for ex in exercises}
        assert all(e.is_completed and e.timestamp == NOW for e in record.values())
        assert all(e.time_of_day is None for e in record.values())

    def test_toggle_off_resets_counts(self, store, clock):
        store.set_exercise_count("2025-01-15", "pushups", 15, 15)
        clock.advance(minutes=5)

        state = store.toggle_day("2025-01-15")
        entry = state.completions["2025-01-15"]["pushups"]
        assert entry.is_completed is False
        assert entry.count == 0
        assert entry.time_of_day is None
        assert entry.timestamp == "2025-01-15T09:35:00.000Z"

    def test_toggle_off_only_touches_present_entries(self, store):
        store.set_exercise_count("2025-01-15", "pushups", 15, 15)
        state = store.toggle_day("2025-01-15")
        assert set(state.completions["2025-01-15"]) == {"pushups"}

    def test_toggle_twice_round_trips_done_flag(self, store):
        store.toggle_day("2025-01-15")
        store.toggle_day("2025-01-15")
        assert store.is_day_done("2025-01-15") is False

    def test_previous_snapshot_not_mutated(self, store):
        before = store.state
        store.toggle_day("2025-01-15")
        assert before.completions == {}


# ---------------------------------------------------------------------------
# set_exercise_count()
# ---------------------------------------------------------------------------


class TestSetExerciseCount:
    """Counter updates and done transitions."""

    def test_partial_count_not_done(self, store):
        state = store.set_exercise_count("2025-01-15", "pushups", 4, 15)
        entry = state.completions["2025-01-15"]["pushups"]
        assert entry.count == 4
        assert entry.is_completed is False
        assert entry.timestamp is None

    def test_reaching_goal_marks_done_with_time_of_day(self, store):
        state = store.set_exercise_count("2025-01-15", "pushups", 15, 15)
        entry = state.completions["2025-01-15"]["pushups"]
        assert entry.is_completed is True
        assert entry.timestamp == NOW
        assert entry.time_of_day is TimeOfDay.MORNING

    def test_count_clamped(self, store):
        state = store.set_exercise_count("2025-01-15", "pushups", 99, 15)
        assert state.completions["2025-01-15"]["pushups"].count == 15
        state = store.set_exercise_count("2025-01-15", "pushups", -3, 15)
        assert state.completions["2025-01-15"]["pushups"].count == 0

    def test_dropping_below_goal_restamps_and_clears(self, store, clock):
        store.set_exercise_count("2025-01-15", "pushups", 15, 15)
        clock.now = datetime(2025, 1, 15, 19, 0, tzinfo=timezone.utc)

        state = store.set_exercise_count("2025-01-15", "pushups", 14, 15)
        entry = state.completions["2025-01-15"]["pushups"]
        assert entry.is_completed is False
        assert entry.timestamp == "2025-01-15T19:00:00.000Z"
        assert entry.time_of_day is None

    def test_staying_done_keeps_timestamp(self, store, clock):
        store.set_exercise_count("2025-01-15", "pushups", 15, 15)
        clock.advance(hours=1)
        state = store.set_exercise_count("2025-01-15", "pushups", 20, 15)
        assert state.completions["2025-01-15"]["pushups"].timestamp == NOW

    def test_afternoon_and_evening_buckets(self, store, clock):
        clock.now = datetime(2025, 1, 15, 14, 0, tzinfo=timezone.utc)
        state = store.set_exercise_count("2025-01-15", "squats", 30, 30)
        assert (
            state.completions["2025-01-15"]["squats"].time_of_day
            is TimeOfDay.AFTERNOON
        )
        clock.now = datetime(2025, 1, 15, 21, 0, tzinfo=timezone.utc)
        state = store.set_exercise_count("2025-01-15", "abs", 23, 23)
        assert (
            state.completions["2025-01-15"]["abs"].time_of_day
            is TimeOfDay.EVENING
        )

    def test_other_exercises_untouched(self, store):
        store.toggle_day("2025-01-14")
        before = store.state.completions["2025-01-14"]["squats"]
        state = store.set_exercise_count("2025-01-14", "pushups", 0, 14)
        assert state.completions["2025-01-14"]["squats"] == before

    def test_unknown_exercise_raises(self, store):
        with pytest.raises(ValueError, match="not configured"):
            store.set_exercise_count("2025-01-15", "burpees", 1, 1)

    def test_goal_below_one_raises(self, store):
        with pytest.raises(ValueError, match="at least 1"):
            store.set_exercise_count("2025-01-15", "pushups", 1, 0)

    def test_persisted_count_is_local(self, store, storage):
        store.set_exercise_count("2025-01-15", "pushups", 4, 15)
        saved = storage.get_item(PROGRESS_KEY)
        assert saved["completions"]["2025-01-15"]["pushups"]["count"] == 4


# ---------------------------------------------------------------------------
# Derived views and end-to-end totals
# ---------------------------------------------------------------------------


class TestBoundViews:
    """Views computed on the current snapshot."""

    def test_end_to_end_total_reps(self, store):
        store.set_exercise_count("2025-01-01", "pushups", 1, 1)
        assert store.total_reps("pushups") == 1

        store.set_exercise_count("2025-01-05", "pushups", 5, 5)
        assert store.total_reps("pushups") == 6

    def test_day_number_and_goal(self, store):
        assert store.day_number("2025-01-15") == 15
        assert store.goal_for("2025-01-15", "squats") == 30
        assert store.goal_for("2025-01-15", "pullups") == 8

    def test_adopt_replaces_and_persists(self, store, storage):
        adopted = store.state.model_copy(
            update={
                "is_setup": True,
                "completions": {
                    "2025-01-02": {
                        "pushups": ExerciseCompletion(is_completed=True)
                    }
                },
            }
        )
        store.adopt(adopted)
        assert store.state == adopted
        assert storage.get_item(PROGRESS_KEY)["isSetup"] is True
