from __future__ import annotations

from typing import Any, Dict

from ...schemas.fields import number, string
from ..sections import NoteDocument
from .base import ExtractionStage

SOURCE_LABEL = "Monthly Burn"
DEFAULT_LOW_BURN_SENTINEL = 50000.0


class MonthlyBurnStage(ExtractionStage):
    """
    Monthly burn from qualitative or quantitative notes.

    Precedence: an explicit amount, then "profitable" (0), then "low burn"
    (the configured sentinel), else null.
    """

    name = "monthly_burn"
    fields = (
        number(
            "burn_amount",
            "Explicit monthly burn amount in dollars, if a figure is given "
            "('$300k monthly' -> 300000)",
        ),
        string(
            "burn_qualifier",
            "'profitable' if the company is profitable or cash-flow positive, "
            "'low' if burn is only described as low/minimal, otherwise 'none'",
            choices=("profitable", "low", "none"),
        ),
    )
    output_fields = ("monthly_burn",)

    def __init__(self, low_burn_sentinel: float = DEFAULT_LOW_BURN_SENTINEL) -> None:
        self.low_burn_sentinel = low_burn_sentinel

    def source_text(self, note: NoteDocument) -> str:
        if not note.has_template:
            return self.note_text(note)
        return note.section(SOURCE_LABEL)

    def build_prompt(self, note: NoteDocument) -> str:
        data_label = "Raw burn data" if note.has_template else "Note text"
        return (
            "You are reading the monthly burn rate from venture capital notes.\n\n"
            "Report an explicit monthly dollar figure if one is given. Convert annual "
            "figures to monthly ($1.2M per year -> 100000). Classify qualitative "
            "descriptions separately; do not turn them into numbers.\n\n"
            "EXAMPLES:\n"
            '- "$300k monthly" -> burn_amount 300000, burn_qualifier "none"\n'
            '- "profitable" -> burn_amount null, burn_qualifier "profitable"\n'
            '- "Low burn rate" -> burn_amount null, burn_qualifier "low"\n'
            '- "Not disclosed" -> burn_amount null, burn_qualifier "none"\n\n'
            f'{data_label}: "{self.source_text(note)}"'
        )

    def interpret(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        amount = payload.get("burn_amount")
        qualifier = payload.get("burn_qualifier")

        if amount is not None:
            # Negative burn means cash-flow positive
            burn = max(float(amount), 0.0)
        elif qualifier == "profitable":
            burn = 0.0
        elif qualifier == "low":
            burn = self.low_burn_sentinel
        else:
            burn = None
        return {"monthly_burn": burn}
