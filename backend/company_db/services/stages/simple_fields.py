"""
Simple-field batch normalization.

All scalar fields that need no cross-field judgement are normalized in one
classifier call.
"""
from __future__ import annotations

import json
from typing import Tuple

from ...schemas.fields import FieldSchema, integer, number, string
from ..sections import NoteDocument
from .base import ExtractionStage

SIMPLE_FIELDS: Tuple[FieldSchema, ...] = (
    number("arr_run_rate", "Annual Recurring Revenue run rate in dollars"),
    number(
        "carr",
        "Contracted Annual Recurring Revenue, only if explicitly mentioned as "
        "'contracted ARR' or 'CARR'",
    ),
    number("revenue_2024", "Revenue for 2024 in dollars"),
    number("revenue_2023", "Revenue for 2023 in dollars"),
    number("revenue_2022", "Revenue for 2022 in dollars"),
    number("cash", "Current cash position in dollars"),
    number("runway", "Runway in months ('18 months' -> 18)"),
    number("raising", "Amount currently raising in dollars"),
    number("raised", "Total amount previously raised in dollars"),
    number("cac", "Blended Customer Acquisition Cost in dollars"),
    number("payback_period", "CAC payback period in months"),
    number("ltv_to_cac", "LTV to CAC ratio as a decimal ('3.5x' -> 3.5)"),
    number("gross_margin", "Gross margin as a decimal ('85%' -> 0.85)"),
    number(
        "saas_recurring_percent",
        "Share of revenue that is SaaS recurring, as a decimal ('70%' -> 0.7)",
    ),
    number("nrr", "Net Revenue Retention as a decimal ('115%' -> 1.15)"),
    integer("team_size", "Number of full-time employees"),
    integer("year_founded", "Four-digit founding year"),
    string("location", "Headquarters location, cleaned up"),
    string("description", "Company description, cleaned up"),
    string("competition", "Competition notes, cleaned up"),
    string("revenue_notes", "Revenue-related notes, cleaned up"),
    string("funding_notes", "Funding-related notes, cleaned up"),
    string("good", "Positive notes, cleaned up"),
    string("challenges", "Challenge notes, cleaned up"),
    string("needs_action", "Action items, cleaned up"),
)

NORMALIZATION_RULES = """
NORMALIZATION RULES:
- Convert shorthand to full numbers: "400k" -> 400000, "1.2M" -> 1200000, "5B" -> 5000000000
- Convert percentages to decimals: "15%" -> 0.15, "150%" -> 1.5, "85%" -> 0.85
- Remove currency symbols but preserve numbers: "$50k" -> 50000, "$1.2M" -> 1200000
- For missing/empty fields, return null (never the string "NA")
- For unclear, contradictory or ambiguous values, return null rather than guessing
- Preserve meaningful precision for large numbers
- For text fields, clean up formatting but preserve content; never invent text
""".strip()


class SimpleFieldsStage(ExtractionStage):
    name = "simple_fields_batch"
    fields = SIMPLE_FIELDS
    output_fields = tuple(f.name for f in SIMPLE_FIELDS)

    def __init__(self, max_document_tokens: int = 12000) -> None:
        self.max_document_tokens = max_document_tokens

    def _field_definitions(self) -> str:
        return "\n".join(f"- {f.name}: {f.description}" for f in self.fields)

    def build_prompt(self, note: NoteDocument) -> str:
        if note.has_template:
            data_block = "RAW FIELD DATA:\n" + json.dumps(
                note.filled_sections(), indent=2, ensure_ascii=False
            )
        else:
            data_block = "RAW NOTE TEXT:\n" + self.note_text(note)

        return (
            "TASK: Extract and normalize the following company fields from raw note data.\n\n"
            f"{NORMALIZATION_RULES}\n\n"
            "FIELD DEFINITIONS:\n"
            f"{self._field_definitions()}\n\n"
            f"{data_block}\n\n"
            "Extract and normalize these fields. Return null for any field that is "
            "missing, empty, or unclear."
        )
