"""
SolutionClient SDK - Result decoding and schema validation.

Decoding and validation are two separate steps: ``decode_payload`` turns the
concatenated text of a tool result into JSON and raises ``ProtocolError`` when
it cannot, ``validate_payload`` checks the decoded value against the result
schema of an operation and raises ``ValidationError`` when it does not match.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ProtocolError, ValidationError

logger = logging.getLogger("solutionclient.schemas")

# pydantic error types produced by range constraints (Field(ge=...) etc.)
RANGE_ERROR_TYPES = frozenset(
    {
        "greater_than",
        "greater_than_equal",
        "less_than",
        "less_than_equal",
        "multiple_of",
        "string_too_short",
        "string_too_long",
        "too_short",
        "too_long",
    }
)


class ResultModel(BaseModel):
    """Base for operation result shapes: strict primitive types, unknown keys ignored."""

    model_config = ConfigDict(strict=True, extra="ignore", frozen=True)


class BestHint(ResultModel):
    """Result of ``get_best_hint``."""

    hint_id: int
    hint: str

    @classmethod
    def empty(cls) -> BestHint:
        return cls(hint_id=-1, hint="")

    @property
    def found(self) -> bool:
        return self.hint_id != -1


class SuccessRate(ResultModel):
    """Result of ``get_success_rate``."""

    counted_solutions: int = Field(ge=0)
    accepted_solutions: int = Field(ge=0)
    rejected_solutions: int = Field(ge=0)
    modified_solutions: int = Field(ge=0)
    pending_solutions: int = Field(ge=0)
    unknown_solutions: int = Field(ge=0)

    @classmethod
    def empty(cls) -> SuccessRate:
        return cls(
            counted_solutions=0,
            accepted_solutions=0,
            rejected_solutions=0,
            modified_solutions=0,
            pending_solutions=0,
            unknown_solutions=0,
        )


class ViolationId(BaseModel):
    """Identifies a violation by ruleset and name."""

    ruleset_name: str
    violation_name: str


class SolutionFile(BaseModel):
    uri: str
    content: str


class SolutionChangeSet(BaseModel):
    """A diff plus the before/after file contents it was computed from."""

    diff: str
    before: list[SolutionFile] = Field(default_factory=list)
    after: list[SolutionFile] = Field(default_factory=list)


def decode_payload(text: str, operation: Optional[str] = None) -> Any:
    """Decode the concatenated text content of a tool result as JSON.

    Raises:
        ProtocolError: If the text is not valid JSON.
    """
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        where = f" from '{operation}'" if operation else ""
        raise ProtocolError(
            f"Malformed JSON payload{where}: {e}", payload=text
        ) from e


@lru_cache(maxsize=None)
def _adapter(schema: Any) -> TypeAdapter:
    return TypeAdapter(schema)


def validate_payload(payload: Any, schema: Any, operation: Optional[str] = None) -> Any:
    """Validate a decoded payload against ``schema``.

    ``schema`` is any type pydantic can validate: a ``BaseModel`` subclass,
    a primitive such as ``int``, or a generic like ``list[int]``.

    Returns:
        The validated value, typed as ``schema``.

    Raises:
        ValidationError: If the payload does not match. ``kind`` is ``"value"``
            when every failure is a range constraint, ``"shape"`` otherwise.
    """
    try:
        return _adapter(schema).validate_python(payload, strict=True)
    except PydanticValidationError as e:
        errors = e.errors(include_url=False)
        kind = (
            "value"
            if errors and all(err["type"] in RANGE_ERROR_TYPES for err in errors)
            else "shape"
        )
        where = f" for '{operation}'" if operation else ""
        logger.error(
            "Schema violation%s (%d errors, kind=%s); payload=%r",
            where,
            len(errors),
            kind,
            payload,
        )
        raise ValidationError(
            f"Payload{where} does not match {getattr(schema, '__name__', schema)}: "
            f"{len(errors)} error(s)",
            errors=errors,
            payload=payload,
            kind=kind,
        ) from e
