"""
Read-side helpers over stored company records.

All functions take an already-loaded sequence of records and never touch
storage, so the same code serves the CLI, the API and tests.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from ..schemas.company import (
    CompanyNeedingUpdateOut,
    CompanyRecord,
    DatabaseSummaryOut,
    SegmentCounts,
)

# Fields averaged in the database summary
SUMMARY_METRICS = (
    "acv",
    "arr_run_rate",
    "team_size",
    "gross_margin",
    "nrr",
    "logo_churn_annual",
)

# A record missing any of these is flagged for follow-up
CRITICAL_FIELDS = (
    "arr_run_rate",
    "acv",
    "customer_count",
    "team_size",
    "monthly_burn",
    "cash",
    "gross_margin",
    "location",
    "description",
)


def get_company_by_id(records: Sequence[CompanyRecord], record_id: str) -> Optional[CompanyRecord]:
    return next((r for r in records if r.id == record_id), None)


def get_company_by_name(records: Sequence[CompanyRecord], name: str) -> Optional[CompanyRecord]:
    """Case-insensitive exact match on company_name."""
    wanted = (name or "").strip().lower()
    if not wanted:
        return None
    return next((r for r in records if _matches_name(r, wanted)), None)


def _in_range(value: Optional[float], min_value: Optional[float], max_value: Optional[float]) -> bool:
    if value is None:
        return False
    if min_value is not None and value < min_value:
        return False
    if max_value is not None and value > max_value:
        return False
    return True


def companies_by_acv_range(
    records: Sequence[CompanyRecord],
    min_acv: Optional[float] = None,
    max_acv: Optional[float] = None,
) -> List[CompanyRecord]:
    return [r for r in records if _in_range(r.acv, min_acv, max_acv)]


def companies_by_arr_range(
    records: Sequence[CompanyRecord],
    min_arr: Optional[float] = None,
    max_arr: Optional[float] = None,
) -> List[CompanyRecord]:
    return [r for r in records if _in_range(r.arr_run_rate, min_arr, max_arr)]


def _matches_name(record: CompanyRecord, wanted: str) -> bool:
    return bool(record.company_name) and record.company_name.strip().lower() == wanted


def search_companies(
    records: Sequence[CompanyRecord],
    *,
    name: Optional[str] = None,
    location: Optional[str] = None,
    year_founded_min: Optional[int] = None,
    year_founded_max: Optional[int] = None,
    team_size_min: Optional[int] = None,
    team_size_max: Optional[int] = None,
    min_acv: Optional[float] = None,
    max_acv: Optional[float] = None,
    min_arr: Optional[float] = None,
    max_arr: Optional[float] = None,
    has_valuation: Optional[bool] = None,
    has_complex_acv: Optional[bool] = None,
) -> List[CompanyRecord]:
    """
    Records matching every given criterion; None means "don't filter".

    - name: case-insensitive exact match (first match only)
    - location: case-insensitive substring
    - ranges are inclusive; a record with the field unset never matches a range
    - has_valuation / has_complex_acv: presence of last_round_valuation / acv_2
    """
    matches = list(records)

    if name and name.strip():
        found = get_company_by_name(matches, name)
        matches = [found] if found is not None else []
    if location and location.strip():
        needle = location.strip().lower()
        matches = [r for r in matches if r.location and needle in r.location.lower()]

    for field, low, high in (
        ("year_founded", year_founded_min, year_founded_max),
        ("team_size", team_size_min, team_size_max),
    ):
        if low is not None or high is not None:
            matches = [r for r in matches if _in_range(getattr(r, field), low, high)]
    if min_acv is not None or max_acv is not None:
        matches = companies_by_acv_range(matches, min_acv, max_acv)
    if min_arr is not None or max_arr is not None:
        matches = companies_by_arr_range(matches, min_arr, max_arr)

    if has_valuation is not None:
        matches = [r for r in matches if (r.last_round_valuation is not None) == has_valuation]
    if has_complex_acv is not None:
        matches = [r for r in matches if (r.acv_2 is not None) == has_complex_acv]
    return matches


def _average(values: List[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def database_summary(records: Sequence[CompanyRecord]) -> DatabaseSummaryOut:
    if not records:
        return DatabaseSummaryOut(total_companies=0)

    metrics: Dict[str, Optional[float]] = {}
    for field in SUMMARY_METRICS:
        values = [getattr(r, field) for r in records if getattr(r, field) is not None]
        metrics[field] = _average(values)

    segments = SegmentCounts(
        with_complex_acv=sum(1 for r in records if r.acv_2 is not None),
        with_complex_customers=sum(1 for r in records if r.customer_count_2 is not None),
        with_carr=sum(1 for r in records if r.carr is not None),
        with_valuation=sum(1 for r in records if r.last_round_valuation is not None),
    )

    created = [r.date_created for r in records]
    return DatabaseSummaryOut(
        total_companies=len(records),
        metrics=metrics,
        segments=segments,
        earliest=min(created),
        latest=max(created),
    )


def missing_critical_fields(record: CompanyRecord) -> List[str]:
    return [f for f in CRITICAL_FIELDS if getattr(record, f) is None]


def companies_needing_updates(records: Sequence[CompanyRecord]) -> List[CompanyNeedingUpdateOut]:
    out: List[CompanyNeedingUpdateOut] = []
    for record in records:
        missing = missing_critical_fields(record)
        if missing:
            out.append(
                CompanyNeedingUpdateOut(
                    id=record.id,
                    company_name=record.company_name,
                    doc_url=record.doc_url,
                    missing_fields=missing,
                )
            )
    return out
