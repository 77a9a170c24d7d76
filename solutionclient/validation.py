"""
SolutionClient SDK - Input validation helpers.

Provides validation functions for client-side parameter checking before any
network call is made.
"""

import math
import re
from typing import Any, Optional

from .exceptions import SolutionClientError


class InputValidationError(SolutionClientError):
    """Raised when input validation fails before making a request."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message, status_code=None, response=None)
        self.field = field
        self.value = value


def validate_required(value: Any, field_name: str) -> None:
    """Validate that a required field is not None or empty."""
    if value is None:
        raise InputValidationError(f"{field_name} is required", field=field_name)
    if isinstance(value, str) and not value.strip():
        raise InputValidationError(
            f"{field_name} cannot be empty", field=field_name, value=value
        )


def validate_url(value: str, field_name: str) -> None:
    """Validate URL format."""
    if value is None:
        return

    url_pattern = re.compile(
        r"^https?://"
        r"(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,63}\.?|"
        r"localhost|"
        r"[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?|"
        r"\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})"
        r"(?::\d+)?"
        r"(?:/?|[/?]\S+)$",
        re.IGNORECASE,
    )

    if not url_pattern.match(value):
        raise InputValidationError(
            f"{field_name} must be a valid http(s) URL", field=field_name, value=value
        )


def validate_positive_number(value: float, field_name: str) -> None:
    """Validate that a number is strictly positive."""
    if value is None:
        return

    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise InputValidationError(
            f"{field_name} must be a number", field=field_name, value=value
        )

    if not math.isfinite(value):
        raise InputValidationError(
            f"{field_name} must be a finite number", field=field_name, value=value
        )

    if value <= 0:
        raise InputValidationError(
            f"{field_name} must be positive", field=field_name, value=value
        )


def validate_non_negative(value: float, field_name: str) -> None:
    """Validate that a number is non-negative."""
    if value is None:
        return

    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise InputValidationError(
            f"{field_name} must be a number", field=field_name, value=value
        )

    if not math.isfinite(value):
        raise InputValidationError(
            f"{field_name} must be a finite number", field=field_name, value=value
        )

    if value < 0:
        raise InputValidationError(
            f"{field_name} cannot be negative", field=field_name, value=value
        )


def validate_positive_int(value: int, field_name: str) -> None:
    """Validate that a number is a positive integer."""
    if value is None:
        return

    if not isinstance(value, int) or isinstance(value, bool):
        raise InputValidationError(
            f"{field_name} must be an integer", field=field_name, value=value
        )

    if value <= 0:
        raise InputValidationError(
            f"{field_name} must be positive", field=field_name, value=value
        )


def validate_ratio(value: float, field_name: str) -> None:
    """Validate that a number lies in the open interval (0, 1)."""
    validate_positive_number(value, field_name)
    if value >= 1:
        raise InputValidationError(
            f"{field_name} must be less than 1", field=field_name, value=value
        )


def validate_list(value: Any, field_name: str, item_type: type = None) -> None:
    """Validate that a value is a list with optional item type checking."""
    if value is None:
        return

    if not isinstance(value, list):
        raise InputValidationError(
            f"{field_name} must be a list", field=field_name, value=value
        )

    if item_type is not None:
        for i, item in enumerate(value):
            if not isinstance(item, item_type) or isinstance(item, bool):
                raise InputValidationError(
                    f"{field_name}[{i}] must be of type {item_type.__name__}",
                    field=f"{field_name}[{i}]",
                    value=item,
                )


def validate_dict(value: Any, field_name: str) -> None:
    """Validate that a value is a dictionary."""
    if value is None:
        return

    if not isinstance(value, dict):
        raise InputValidationError(
            f"{field_name} must be a dictionary", field=field_name, value=value
        )


def validate_violation_ids(violation_ids: Any) -> None:
    """Validate a list of ``{ruleset_name, violation_name}`` identifiers."""
    validate_required(violation_ids, "violation_ids")
    validate_list(violation_ids, "violation_ids", dict)
    if not violation_ids:
        raise InputValidationError(
            "violation_ids cannot be empty", field="violation_ids", value=violation_ids
        )
    for i, vid in enumerate(violation_ids):
        validate_required(vid.get("ruleset_name"), f"violation_ids[{i}].ruleset_name")
        validate_required(
            vid.get("violation_name"), f"violation_ids[{i}].violation_name"
        )


def validate_solution_create(
    incident_ids: list[int],
    reasoning: str,
    used_hint_ids: list[int],
) -> None:
    """Validate parameters for solution creation."""
    validate_required(incident_ids, "incident_ids")
    validate_list(incident_ids, "incident_ids", int)
    if not incident_ids:
        raise InputValidationError(
            "incident_ids cannot be empty", field="incident_ids", value=incident_ids
        )
    if reasoning is not None and not isinstance(reasoning, str):
        raise InputValidationError(
            "reasoning must be a string", field="reasoning", value=reasoning
        )
    validate_list(used_hint_ids, "used_hint_ids", int)
