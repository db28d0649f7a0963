from __future__ import annotations

from typing import Any, Dict

from ...schemas.fields import number, string
from ..normalize import annualize_rate
from ..sections import NoteDocument
from .base import ExtractionStage

SOURCE_LABEL = "Logo Churn Annual"
CHURN_PERIODS = ("annual", "quarterly", "monthly", "weekly", "unknown")


class ChurnStage(ExtractionStage):
    """
    Logo churn, always reported on an annual basis.

    The classifier only reads off the stated rate and its period; compounding
    to an annual figure happens in ``annualize_rate``.
    """

    name = "churn_annualization"
    fields = (
        number(
            "churn_rate",
            "Logo churn rate as stated, as a decimal per period ('2%' -> 0.02)",
        ),
        string(
            "churn_period",
            "Period the stated rate applies to",
            choices=CHURN_PERIODS,
        ),
    )
    output_fields = ("logo_churn_annual",)

    def source_text(self, note: NoteDocument) -> str:
        if not note.has_template:
            return self.note_text(note)
        return note.section(SOURCE_LABEL)

    def build_prompt(self, note: NoteDocument) -> str:
        data_label = "Raw churn data" if note.has_template else "Note text"
        return (
            "You are reading the customer (logo) churn figure from venture capital notes.\n\n"
            "Report the churn rate exactly as stated, as a decimal, together with the time "
            "period it covers. Do NOT convert between periods yourself.\n\n"
            "EXAMPLES:\n"
            '- "2% monthly" -> churn_rate 0.02, churn_period "monthly"\n'
            '- "15% annual" -> churn_rate 0.15, churn_period "annual"\n'
            '- "5% per quarter" -> churn_rate 0.05, churn_period "quarterly"\n'
            '- "8%" with no period in a field labeled annual -> churn_period "annual"\n'
            '- "low churn" -> churn_rate null, churn_period "unknown"\n\n'
            f'{data_label}: "{self.source_text(note)}"'
        )

    def interpret(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "logo_churn_annual": annualize_rate(
                payload.get("churn_rate"), payload.get("churn_period")
            )
        }
