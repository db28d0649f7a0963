from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ...schemas.fields import number, string
from ..sections import NoteDocument
from .base import ExtractionStage

logger = logging.getLogger(__name__)

ROUND_STATUSES = ("current", "only_round", "historical", "target", "unknown")
ACCEPTED_ROUND_STATUSES = frozenset({"current", "only_round"})

SOURCE_LABELS = ("Active round / fundraise Notes", "Other Funding Notes")
CONTEXT_LABELS = ("Raised", "Raising")


def resolve_post_money(
    post_money: Optional[float],
    pre_money: Optional[float],
    investment: Optional[float],
    equity_fraction: Optional[float],
) -> Optional[float]:
    """
    Post-money valuation from whichever figures the round provides.

    In order: explicit post-money, pre-money + investment, investment divided
    by the equity fraction sold. A pre-money figure alone is not enough.
    """
    if post_money is not None and post_money > 0:
        return post_money
    if pre_money is not None and investment is not None and pre_money > 0 and investment > 0:
        return pre_money + investment
    if investment is not None and equity_fraction is not None and investment > 0:
        if 0 < equity_fraction <= 1:
            return investment / equity_fraction
    return None


class ValuationStage(ExtractionStage):
    """Most recent post-money valuation, or null when it cannot be pinned down."""

    name = "valuation_extraction"
    fields = (
        number("post_money_valuation", "Explicit post-money valuation in dollars"),
        number("pre_money_valuation", "Explicit pre-money valuation in dollars"),
        number("investment_amount", "Amount invested in the round in dollars"),
        number(
            "equity_fraction",
            "Fraction of the company sold in the round as a decimal ('10%' -> 0.1)",
        ),
        string(
            "round_status",
            "'current' for the most recent round, 'only_round' if only one round is "
            "mentioned, 'historical' for an earlier round, 'target' for an aspirational "
            "or hoped-for valuation, 'unknown' if unclear",
            choices=ROUND_STATUSES,
        ),
    )
    output_fields = ("last_round_valuation",)

    def source_text(self, note: NoteDocument) -> str:
        if not note.has_template:
            return self.note_text(note)
        parts = [note.section(label) for label in SOURCE_LABELS]
        return "\n".join(p for p in parts if p)

    def _funding_block(self, note: NoteDocument) -> str:
        if not note.has_template:
            return f"NOTE TEXT:\n{self.source_text(note)}"
        funding_lines = "\n".join(
            f"{label}: {note.section(label) or 'Not provided'}" for label in SOURCE_LABELS
        )
        context_lines = "\n".join(
            f"{label}: {note.section(label) or 'Not provided'}" for label in CONTEXT_LABELS
        )
        return f"FUNDING NOTES:\n{funding_lines}\n\nADDITIONAL CONTEXT:\n{context_lines}"

    def build_prompt(self, note: NoteDocument) -> str:
        return (
            "You are extracting the most recent round's valuation from venture capital notes.\n\n"
            "RULES:\n"
            "- Report the figures of the most recent or current round only\n"
            "- Report only figures that are stated; do not compute a post-money yourself\n"
            "- A target, hoped-for or aspirational valuation is round_status 'target'\n"
            "- If several rounds are mentioned and the latest cannot be identified, "
            "use 'unknown'\n\n"
            "EXAMPLES:\n"
            '- "$20M post-money" -> post_money_valuation 20000000, round_status "current"\n'
            '- "Raised $5M for 10%" -> investment_amount 5000000, equity_fraction 0.1, '
            'round_status "only_round"\n'
            '- "$20M pre-money" in a previous round -> pre_money_valuation 20000000, '
            'round_status "historical"\n'
            '- "Hoping for $50M valuation" -> round_status "target"\n\n'
            f"{self._funding_block(note)}"
        )

    def interpret(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        status = payload.get("round_status")
        if status not in ACCEPTED_ROUND_STATUSES:
            logger.debug(
                "Valuation rejected for round status %r",
                status,
                extra={"stage": self.name},
            )
            return {"last_round_valuation": None}

        return {
            "last_round_valuation": resolve_post_money(
                payload.get("post_money_valuation"),
                payload.get("pre_money_valuation"),
                payload.get("investment_amount"),
                payload.get("equity_fraction"),
            )
        }
