"""
Input validation functions for the OneUp progress core.

Provides validation for calendar date strings, exercise identifiers and
counter values before they reach the progress store.
"""

import re
from collections.abc import Container
from datetime import date

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Date")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_date_str(date_str: str) -> tuple[bool, str]:
    """
    Validate a calendar date key.

    Args:
        date_str: The date string to validate

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Must use the YYYY-MM-DD form
        - Must be a real calendar date (no 2025-02-30)
    """
    if not isinstance(date_str, str) or not date_str.strip():
        return (False, format_validation_error("Date", "cannot be empty"))

    if not _DATE_PATTERN.match(date_str):
        return (
            False,
            format_validation_error(
                "Date", f"'{date_str}' must use the YYYY-MM-DD format"
            ),
        )

    try:
        date.fromisoformat(date_str)
    except ValueError:
        return (
            False,
            format_validation_error(
                "Date", f"'{date_str}' is not a valid calendar date"
            ),
        )

    return (True, "")


def validate_interaction_date(
    date_str: str, user_start_date: str, today: str
) -> tuple[bool, str]:
    """
    Validate that a day can be edited.

    Args:
        date_str: The day to edit
        user_start_date: First day of the user's challenge (YYYY-MM-DD)
        today: The current local date (YYYY-MM-DD)

    Returns:
        Tuple of (is_valid, error_message).

    Validation rules:
        - Must be a valid date key (see validate_date_str)
        - Must not be after today
        - Must not be before the user's start date
    """
    is_valid, message = validate_date_str(date_str)
    if not is_valid:
        return (is_valid, message)

    if date_str > today:
        return (
            False,
            format_validation_error(
                "Date", f"'{date_str}' is in the future (today is {today})"
            ),
        )
    if date_str < user_start_date:
        return (
            False,
            format_validation_error(
                "Date",
                f"'{date_str}' is before the challenge start {user_start_date}",
            ),
        )
    return (True, "")


def validate_exercise_id(
    exercise_id: str, known_ids: Container[str]
) -> tuple[bool, str]:
    """
    Validate an exercise identifier against the configured exercises.

    Args:
        exercise_id: The identifier to validate
        known_ids: Configured exercise identifiers

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not exercise_id:
        return (
            False,
            format_validation_error("Exercise id", "cannot be empty"),
        )
    if exercise_id not in known_ids:
        return (
            False,
            format_validation_error(
                "Exercise id", f"'{exercise_id}' is not configured"
            ),
        )
    return (True, "")


def validate_goal(goal: int) -> tuple[bool, str]:
    """
    Validate a daily goal.

    Returns:
        Tuple of (is_valid, error_message). Goals must be integers >= 1.
    """
    if isinstance(goal, bool) or not isinstance(goal, int):
        return (False, format_validation_error("Goal", "must be an integer"))
    if goal < 1:
        return (False, format_validation_error("Goal", "must be at least 1"))
    return (True, "")


def require(result: tuple[bool, str]) -> None:
    """Raise ``ValueError`` with the message of a failed validation."""
    is_valid, message = result
    if not is_valid:
        raise ValueError(message)
