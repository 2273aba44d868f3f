"""Exercise configuration consumed read-only by the progress core.

The goal for an exercise on a given day is
``max(1, ceil(day_number * multiplier))``:

============  ==========  ===============================
Exercise      Multiplier  Examples (day -> goal)
============  ==========  ===============================
pushups       1           1 -> 1, 50 -> 50, 100 -> 100
squats        2           1 -> 2, 50 -> 100, 100 -> 200
pullups       0.5         1 -> 1, 50 -> 25, 100 -> 50
abs           1.5         1 -> 2, 50 -> 75, 100 -> 150
jumpingjacks  2           1 -> 2, 50 -> 100, 100 -> 200
lunges        1           1 -> 1, 50 -> 50, 100 -> 100
============  ==========  ===============================

The list can be replaced from the ``exercises`` section of the YAML config.
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, Field

# Legacy single-exercise data is migrated into this exercise.
PRIMARY_EXERCISE_ID = "pushups"


class ExerciseDefinition(BaseModel):
    """A configured exercise.

    Attributes:
        id: Stable identifier used as key in day records.
        label: Display label.
        multiplier: Goal scaling factor applied to the day number.
    """

    id: str = Field(min_length=1)
    label: str = ""
    multiplier: float = Field(default=1.0, gt=0)

    model_config = {"frozen": True}


DEFAULT_EXERCISES: tuple[ExerciseDefinition, ...] = (
    ExerciseDefinition(id="pushups", label="Pompes", multiplier=1),
    ExerciseDefinition(id="squats", label="Squats", multiplier=2),
    ExerciseDefinition(id="pullups", label="Tractions", multiplier=0.5),
    ExerciseDefinition(id="abs", label="Abdos", multiplier=1.5),
    ExerciseDefinition(
        id="jumpingjacks", label="Jumping Jack", multiplier=2
    ),
    ExerciseDefinition(id="lunges", label="Fentes", multiplier=1),
)


def exercise_map(
    exercises: Iterable[ExerciseDefinition],
) -> dict[str, ExerciseDefinition]:
    """Return a lookup of exercises by id, preserving configured order."""
    return {ex.id: ex for ex in exercises}
