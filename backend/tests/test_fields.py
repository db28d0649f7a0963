"""
Tests for schemas/fields.py

Closed schema rendering and payload checking for classifier answers.
"""
import pytest

from company_db.core.errors import ClassificationFailure
from company_db.schemas.fields import (
    closed_schema,
    integer,
    number,
    string,
    validate_payload,
)

FIELDS = (
    number("amount", "An amount"),
    integer("count", "A count"),
    string("notes", "Free text"),
    string("period", "A period", choices=("monthly", "annual")),
)


def _payload(**overrides):
    payload = {"amount": None, "count": None, "notes": None, "period": None}
    payload.update(overrides)
    return payload


class TestClosedSchema:
    def test_every_field_required_and_no_extras(self):
        schema = closed_schema(FIELDS)
        assert schema["type"] == "object"
        assert schema["additionalProperties"] is False
        assert schema["required"] == ["amount", "count", "notes", "period"]

    def test_fields_are_nullable(self):
        props = closed_schema(FIELDS)["properties"]
        assert props["amount"]["type"] == ["number", "null"]
        assert props["count"]["type"] == ["integer", "null"]
        assert props["notes"]["type"] == ["string", "null"]

    def test_choices_render_as_enum_with_null(self):
        props = closed_schema(FIELDS)["properties"]
        assert props["period"]["enum"] == ["monthly", "annual", None]
        assert "enum" not in props["notes"]


class TestValidatePayload:
    """Classifier answers must match the closed schema exactly."""

    def test_all_null_is_valid(self):
        assert validate_payload(FIELDS, _payload()) == _payload()

    def test_missing_key_rejected(self):
        payload = _payload()
        del payload["count"]
        with pytest.raises(ClassificationFailure, match="missing"):
            validate_payload(FIELDS, payload)

    def test_extra_key_rejected(self):
        with pytest.raises(ClassificationFailure, match="extra"):
            validate_payload(FIELDS, _payload(surprise=1))

    def test_non_object_rejected(self):
        with pytest.raises(ClassificationFailure):
            validate_payload(FIELDS, ["not", "a", "dict"])

    def test_numeric_literals_are_normalized(self):
        """Shorthand leaking through as a string is normalized, not stored as text."""
        result = validate_payload(FIELDS, _payload(amount="1.2M", count="42"))
        assert result["amount"] == 1200000.0
        assert result["count"] == 42
        assert isinstance(result["count"], int)

    def test_placeholder_number_is_null(self):
        assert validate_payload(FIELDS, _payload(amount="NA"))["amount"] is None

    def test_unparseable_number_rejected(self):
        with pytest.raises(ClassificationFailure, match="amount"):
            validate_payload(FIELDS, _payload(amount="a lot"))

    def test_fractional_integer_rejected(self):
        with pytest.raises(ClassificationFailure, match="count"):
            validate_payload(FIELDS, _payload(count=3.5))

    def test_whole_float_integer_accepted(self):
        assert validate_payload(FIELDS, _payload(count=3.0))["count"] == 3

    def test_non_finite_rejected(self):
        with pytest.raises(ClassificationFailure):
            validate_payload(FIELDS, _payload(amount=float("inf")))

    def test_choice_outside_set_rejected(self):
        with pytest.raises(ClassificationFailure, match="period"):
            validate_payload(FIELDS, _payload(period="weekly"))

    def test_string_field_rejects_numbers(self):
        with pytest.raises(ClassificationFailure, match="notes"):
            validate_payload(FIELDS, _payload(notes=12))

    def test_text_is_cleaned(self):
        result = validate_payload(FIELDS, _payload(notes="  Strong   team \n"))
        assert result["notes"] == "Strong team"
        assert validate_payload(FIELDS, _payload(notes="N/A"))["notes"] is None
