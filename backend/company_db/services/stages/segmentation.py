"""
Segmentation analysis for ACV and customer count.

The classifier only *reports* what the note says about customer segments; the
decision whether a metric is split into primary + secondary values is taken
here, deterministically, by ``assess_segmentation``. A metric is complex only
if ALL of the following hold:

1. two distinct named segments, each with a per-customer value
2. the value ratio between them is above 10x
3. each segment is above 20% of implied revenue
4. the split is an actionable business distinction (not noise or one outlier)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from ...schemas.fields import FieldSchema, integer, number, string
from ..sections import NoteDocument
from .base import ExtractionStage

logger = logging.getLogger(__name__)

MIN_VALUE_RATIO = 10.0
MIN_REVENUE_SHARE = 0.20
# A "segment" of one customer is an outlier, not a segment
MIN_SEGMENT_CUSTOMERS = 2


@dataclass(frozen=True)
class Segment:
    label: Optional[str]
    unit_value: Optional[float]
    customer_count: Optional[int]
    revenue_share: Optional[float]

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], prefix: str) -> "Segment":
        return cls(
            label=payload.get(f"{prefix}_label"),
            unit_value=payload.get(f"{prefix}_unit_value"),
            customer_count=payload.get(f"{prefix}_customer_count"),
            revenue_share=payload.get(f"{prefix}_revenue_share"),
        )

    @property
    def is_priced(self) -> bool:
        return bool(self.label) and self.unit_value is not None and self.unit_value > 0

    @property
    def implied_revenue(self) -> Optional[float]:
        if self.unit_value is None or self.customer_count is None:
            return None
        return self.unit_value * self.customer_count


@dataclass(frozen=True)
class SegmentationDecision:
    is_complex: bool
    reason: str
    high: Optional[Segment] = None
    low: Optional[Segment] = None


def _revenue_shares(high: Segment, low: Segment) -> Optional[Tuple[float, float]]:
    """
    Share of revenue for each segment: as reported, else derived from
    count x value. None when neither is available.
    """
    if high.revenue_share is not None and low.revenue_share is not None:
        return high.revenue_share, low.revenue_share

    high_rev, low_rev = high.implied_revenue, low.implied_revenue
    if high_rev is None or low_rev is None:
        return None
    total = high_rev + low_rev
    if total <= 0:
        return None
    return high_rev / total, low_rev / total


def assess_segmentation(
    first: Segment,
    second: Segment,
    actionable_split: Optional[str],
) -> SegmentationDecision:
    if not (first.is_priced and second.is_priced):
        return SegmentationDecision(False, "fewer than two priced segments")

    if first.label.strip().lower() == second.label.strip().lower():
        return SegmentationDecision(False, "segments are not distinct")

    high, low = sorted((first, second), key=lambda s: s.unit_value, reverse=True)

    ratio = high.unit_value / low.unit_value
    if ratio <= MIN_VALUE_RATIO:
        return SegmentationDecision(False, f"value ratio {ratio:.1f}x is not above {MIN_VALUE_RATIO:.0f}x")

    for seg in (high, low):
        if seg.customer_count is not None and seg.customer_count < MIN_SEGMENT_CUSTOMERS:
            return SegmentationDecision(False, f"segment '{seg.label}' is a single-customer outlier")

    shares = _revenue_shares(high, low)
    if shares is None:
        return SegmentationDecision(False, "revenue split between segments is unknown")
    if min(shares) <= MIN_REVENUE_SHARE:
        return SegmentationDecision(
            False,
            f"revenue shares {shares[0]:.2f}/{shares[1]:.2f} leave a segment at or under "
            f"{MIN_REVENUE_SHARE:.0%}",
        )

    if actionable_split != "yes":
        return SegmentationDecision(False, "split is not an actionable business distinction")

    return SegmentationDecision(
        True,
        f"{ratio:.0f}x value gap, revenue shares {shares[0]:.2f}/{shares[1]:.2f}",
        high=high,
        low=low,
    )


def _segment_fields(prefix: str, ordinal: str) -> Tuple[FieldSchema, ...]:
    return (
        string(f"{prefix}_label", f"Name of the {ordinal} customer segment, e.g. 'Enterprise'"),
        number(
            f"{prefix}_unit_value",
            f"Annual contract value per customer in the {ordinal} segment, in dollars",
        ),
        integer(f"{prefix}_customer_count", f"Number of customers in the {ordinal} segment"),
        number(
            f"{prefix}_revenue_share",
            f"Share of total revenue from the {ordinal} segment as a decimal (0.5 = half), "
            "only if stated or directly computable",
        ),
    )


COMPLEXITY_FILTER = f"""
CRITICAL COMPLEXITY FILTER:
A split into two values is only warranted if ALL conditions are met:
1. There are clearly distinct customer segments mentioned with specific per-customer values
2. The value difference between segments is more than {MIN_VALUE_RATIO:.0f}x
3. Both segments represent meaningful revenue (each more than {MIN_REVENUE_SHARE:.0%} of total revenue)
4. The segmentation provides actionable business insight (e.g. Enterprise vs SMB)

A single outlier customer, a mild spread of values, a range, or a blended average
is NOT a split.
""".strip()


class SegmentationStage(ExtractionStage):
    """
    One metric's segmentation analysis.

    ``primary_source`` picks what the primary/secondary values are on a split:
    the segments' per-customer value (ACV) or their customer counts.
    """

    def __init__(
        self,
        *,
        name: str,
        metric_description: str,
        source_label: str,
        context_labels: Sequence[str],
        primary_field: str,
        secondary_field: str,
        primary_source: str,
        single_field: FieldSchema,
        examples: str,
    ) -> None:
        if primary_source not in ("unit_value", "customer_count"):
            raise ValueError(f"Unknown primary_source: {primary_source}")
        self.name = name
        self.metric_description = metric_description
        self.source_label = source_label
        self.context_labels = tuple(context_labels)
        self.primary_field = primary_field
        self.secondary_field = secondary_field
        self.primary_source = primary_source
        self.single_field = single_field
        self.examples = examples
        self.fields = (
            *_segment_fields("segment_1", "first"),
            *_segment_fields("segment_2", "second"),
            single_field,
            string(
                "actionable_split",
                "'yes' if the two segments are an actionable business distinction "
                "such as Enterprise vs SMB, otherwise 'no'",
                choices=("yes", "no"),
            ),
        )
        self.output_fields = (primary_field, secondary_field)

    def source_text(self, note: NoteDocument) -> str:
        if not note.has_template:
            return self.note_text(note)
        return note.section(self.source_label)

    def _data_block(self, note: NoteDocument) -> str:
        if not note.has_template:
            return f'Note text: "{self.source_text(note)}"'
        context_lines = "\n".join(
            f'- {label}: "{note.section(label) or "Not provided"}"'
            for label in self.context_labels
        )
        return (
            "ADDITIONAL CONTEXT:\n"
            "Consider the following related information when describing the segments:\n"
            f"{context_lines}\n\n"
            f'Raw {self.metric_description} data: "{self.source_text(note)}"'
        )

    def build_prompt(self, note: NoteDocument) -> str:
        return (
            f"You are analyzing {self.metric_description} data for venture capital investment analysis.\n\n"
            f"{COMPLEXITY_FILTER}\n\n"
            f"{self.examples}\n\n"
            f"{self._data_block(note)}\n\n"
            "TASK: Describe up to two customer segments named in the data (label, per-customer "
            "annual value, customer count, revenue share). Leave segment fields null when fewer "
            f"segments are named. Set {self.single_field.name} to the single figure that should "
            "be reported if the data is NOT split. Use the additional context to judge revenue "
            "distribution."
        )

    def interpret(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        first = Segment.from_payload(payload, "segment_1")
        second = Segment.from_payload(payload, "segment_2")
        decision = assess_segmentation(first, second, payload.get("actionable_split"))

        if decision.is_complex:
            primary = getattr(decision.high, self.primary_source)
            secondary = getattr(decision.low, self.primary_source)
            if primary is not None and secondary is not None:
                logger.info(
                    "Stage '%s' split into two segments: %s",
                    self.name,
                    decision.reason,
                    extra={"stage": self.name},
                )
                return {self.primary_field: primary, self.secondary_field: secondary}
            decision = SegmentationDecision(False, f"segments lack {self.primary_source}")

        logger.debug(
            "Stage '%s' kept a single value: %s",
            self.name,
            decision.reason,
            extra={"stage": self.name},
        )
        return {
            self.primary_field: payload.get(self.single_field.name),
            self.secondary_field: None,
        }


ACV_EXAMPLES = """
EXAMPLES OF A SINGLE ACV:
- "Enterprise customers pay $50k, Pro customers pay $75k" -> single (1.5x difference)
- "ACV around $20k-30k range" -> single (one range)
- "Mostly $25k contracts with some at $40k" -> single, 25000 (1.6x difference)
- "Mix of monthly and annual contracts averaging $50k ACV" -> single (blended)
- "12 customers at 20k, 1 customer at 250k" -> single, 20000 (outlier)

EXAMPLES OF A SPLIT ACV:
- "3 enterprise customers at $250k each, 300 SMB customers at $800 each" (312x, clear segments)
- "10 Fortune 500 contracts at $500k average, 400 mid-market at $15k average" (33x, 45/55 revenue split)
- "Enterprise tier $200k ACV, SMB tier $5k ACV, roughly 50/50 revenue split" (40x, both meaningful)
""".strip()

CUSTOMER_EXAMPLES = """
EXAMPLES OF A SINGLE CUSTOMER COUNT:
- "100 enterprise customers at $50k each, 5000 freemium customers at $200 each" -> single, 5100 (freemium is under 20% of revenue)
- "50 Fortune 500 clients, 2000 SMB clients" -> single, 2050 (no per-customer values)
- "150 enterprise customers, 200 mid-market customers" -> single, 350 (similar value segments)
- "Mix of monthly and annual customers, about 500 total" -> single, 500
- "400 customers across different plan tiers" -> single, 400

EXAMPLES OF A SPLIT CUSTOMER COUNT:
- "100 enterprise customers at $50k each, 2000 SMB customers at $1k each" (50x value difference, 71/29 revenue split)
- "20 Fortune 500 clients at $300k, 1500 self-serve clients at $4k" (75x value difference, 50/50 revenue split)
""".strip()


def acv_stage() -> SegmentationStage:
    return SegmentationStage(
        name="acv_complexity_analysis",
        metric_description="ACV (Annual Contract Value)",
        source_label="ACV",
        context_labels=("Revenue Notes", "ARR Run Rate", "# of Customers"),
        primary_field="acv",
        secondary_field="acv_2",
        primary_source="unit_value",
        single_field=number(
            "single_value",
            "The single ACV in dollars to report when the data is not split "
            "(typical or blended contract value)",
        ),
        examples=ACV_EXAMPLES,
    )


def customer_count_stage() -> SegmentationStage:
    return SegmentationStage(
        name="customer_complexity_analysis",
        metric_description="customer count",
        source_label="# of Customers",
        context_labels=("Customer Notes", "ACV", "Revenue Notes"),
        primary_field="customer_count",
        secondary_field="customer_count_2",
        primary_source="customer_count",
        single_field=integer(
            "single_value",
            "The single total customer count to report when the data is not split",
        ),
        examples=CUSTOMER_EXAMPLES,
    )
