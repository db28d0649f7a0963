# backend/company_db/schemas/company.py
from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_DOCUMENT_ID_LEN = 200
# Percentage-like fields are decimals; NRR can legitimately exceed 1.0
PERCENT_CEILING = 5.0

FiniteFloat = Annotated[float, Field(allow_inf_nan=False)]

PERCENT_FIELDS = (
    "gross_margin",
    "saas_recurring_percent",
    "nrr",
    "logo_churn_annual",
)

# secondary segment field -> primary counterpart
SEGMENT_PAIRS = {
    "acv_2": "acv",
    "customer_count_2": "customer_count",
}


class CompanyRecord(BaseModel):
    """
    One normalized company, assembled from a single note document.

    Every field is required (it may be null) and unknown keys are rejected, so
    a record can only be built from a complete set of stage outputs.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", strict=True, from_attributes=True)

    # core identification
    id: str
    company_name: Optional[str]
    website: Optional[str]
    doc_url: Optional[str]
    date_created: datetime

    # financial metrics
    arr_run_rate: Optional[FiniteFloat]
    carr: Optional[FiniteFloat]
    revenue_2024: Optional[FiniteFloat]
    revenue_2023: Optional[FiniteFloat]
    revenue_2022: Optional[FiniteFloat]
    monthly_burn: Optional[FiniteFloat]
    cash: Optional[FiniteFloat]
    runway: Optional[FiniteFloat]
    raising: Optional[FiniteFloat]
    raised: Optional[FiniteFloat]
    last_round_valuation: Optional[FiniteFloat]

    # customer metrics
    acv: Optional[FiniteFloat]
    acv_2: Optional[FiniteFloat]
    customer_count: Optional[int]
    customer_count_2: Optional[int]
    logo_churn_annual: Optional[FiniteFloat]

    # other metrics
    cac: Optional[FiniteFloat]
    payback_period: Optional[FiniteFloat]
    ltv_to_cac: Optional[FiniteFloat]
    gross_margin: Optional[FiniteFloat]
    saas_recurring_percent: Optional[FiniteFloat]
    nrr: Optional[FiniteFloat]

    # company info
    team_size: Optional[int]
    year_founded: Optional[int]
    location: Optional[str]
    description: Optional[str]
    competition: Optional[str]
    revenue_notes: Optional[str]
    funding_notes: Optional[str]
    good: Optional[str]
    challenges: Optional[str]
    needs_action: Optional[str]

    @field_validator(*PERCENT_FIELDS)
    @classmethod
    def _percent_is_decimal(cls, v: Optional[float]) -> Optional[float]:
        if v is None:
            return v
        if v < 0 or v > PERCENT_CEILING:
            raise ValueError(
                f"must be a decimal between 0 and {PERCENT_CEILING} (got {v})"
            )
        return v

    @model_validator(mode="after")
    def _secondary_requires_primary(self):
        for secondary, primary in SEGMENT_PAIRS.items():
            if getattr(self, secondary) is not None and getattr(self, primary) is None:
                raise ValueError(f"{secondary} is set but {primary} is null")
        return self


class ParseRequest(BaseModel):
    document_id: str

    @field_validator("document_id")
    @classmethod
    def validate_document_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("document_id must not be empty")
        if len(v) > MAX_DOCUMENT_ID_LEN:
            raise ValueError(
                f"document_id must be at most {MAX_DOCUMENT_ID_LEN} characters"
            )
        return v


class ParseJobOut(BaseModel):
    task_id: str
    document_id: str
    status: str = "QUEUED"


class SegmentCounts(BaseModel):
    with_complex_acv: int = 0
    with_complex_customers: int = 0
    with_carr: int = 0
    with_valuation: int = 0


class DatabaseSummaryOut(BaseModel):
    total_companies: int
    metrics: dict[str, float | None] = {}
    segments: SegmentCounts = SegmentCounts()
    earliest: datetime | None = None
    latest: datetime | None = None


class CompanyNeedingUpdateOut(BaseModel):
    id: str
    company_name: str | None = None
    doc_url: str | None = None
    missing_fields: list[str] = []
