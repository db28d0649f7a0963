"""
Declarative field schemas shared by the extraction stages.

A stage declares a tuple of ``FieldSchema`` entries once; the tuple renders to
a *closed* JSON schema for the classifier (every field required, no extra keys)
and is used again to check whatever comes back.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional, Sequence, Tuple

from ..core.errors import ClassificationFailure
from ..services.normalize import clean_text, parse_numeric_literal

FieldType = Literal["number", "integer", "string"]


@dataclass(frozen=True)
class FieldSchema:
    name: str
    type: FieldType
    description: str
    choices: Optional[Tuple[str, ...]] = None

    def json_schema(self) -> Dict[str, Any]:
        prop: Dict[str, Any] = {
            "type": [self.type, "null"],
            "description": self.description,
        }
        if self.choices:
            prop["enum"] = [*self.choices, None]
        return prop


def number(name: str, description: str) -> FieldSchema:
    return FieldSchema(name, "number", description)


def integer(name: str, description: str) -> FieldSchema:
    return FieldSchema(name, "integer", description)


def string(name: str, description: str, choices: Optional[Sequence[str]] = None) -> FieldSchema:
    return FieldSchema(name, "string", description, tuple(choices) if choices else None)


def closed_schema(fields: Sequence[FieldSchema]) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {f.name: f.json_schema() for f in fields},
        "required": [f.name for f in fields],
        "additionalProperties": False,
    }


def _coerce_value(field: FieldSchema, value: Any) -> Any:
    if value is None:
        return None

    if field.type == "string":
        if not isinstance(value, str):
            raise ValueError(f"expected string, got {type(value).__name__}")
        if field.choices:
            if value not in field.choices:
                raise ValueError(f"{value!r} is not one of {list(field.choices)}")
            return value
        return clean_text(value)

    # Numbers may leak through as literals ("400k", "15%") from providers
    # without strict structured output.
    parsed = parse_numeric_literal(value)
    if parsed is None:
        return None
    if field.type == "integer":
        if not float(parsed).is_integer():
            raise ValueError(f"expected integer, got {value!r}")
        return int(parsed)
    return parsed


def validate_payload(fields: Sequence[FieldSchema], payload: Any) -> Dict[str, Any]:
    """
    Check a classifier payload against a closed schema.

    Returns a new dict in declaration order with values normalized. Raises
    ClassificationFailure on missing keys, extra keys or values of the wrong
    type.
    """
    if not isinstance(payload, dict):
        raise ClassificationFailure(
            f"Expected a JSON object, got {type(payload).__name__}"
        )

    declared = [f.name for f in fields]
    missing = [name for name in declared if name not in payload]
    extra = sorted(set(payload) - set(declared))
    if missing or extra:
        raise ClassificationFailure(
            f"Payload does not match schema (missing={missing}, extra={extra})"
        )

    result: Dict[str, Any] = {}
    for field in fields:
        try:
            value = _coerce_value(field, payload[field.name])
        except ValueError as e:
            raise ClassificationFailure(f"Field '{field.name}': {e}") from e
        if isinstance(value, float) and not math.isfinite(value):
            raise ClassificationFailure(f"Field '{field.name}' is not finite")
        result[field.name] = value
    return result
