"""
Deterministic normalization helpers for note values.

These implement the numeric rules every stage is held to:

- shorthand suffixes expand: "400k" -> 400000, "1.2M" -> 1200000, "5B" -> 5e9
- percentage literals become decimals: "15%" -> 0.15, "150%" -> 1.5
- currency symbols are stripped, magnitude preserved: "$50k" -> 50000
- placeholders ("NA", "TBD", "-") and empty strings become None

Decimal arithmetic is used for the scaling so "1.2M" lands on 1200000.0
exactly rather than on a float neighbour.
"""
from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

# Tokens that mean "no value" in the notes template
PLACEHOLDER_VALUES = {
    "",
    "-",
    "--",
    "n/a",
    "na",
    "n.a.",
    "none",
    "null",
    "tbd",
    "unknown",
    "?",
}

SUFFIX_MULTIPLIERS: Dict[str, int] = {
    "k": 10**3,
    "thousand": 10**3,
    "m": 10**6,
    "mm": 10**6,
    "mn": 10**6,
    "million": 10**6,
    "b": 10**9,
    "bn": 10**9,
    "billion": 10**9,
}

PERIODS_PER_YEAR: Dict[str, int] = {
    "annual": 1,
    "quarterly": 4,
    "monthly": 12,
    "weekly": 52,
}

_AMOUNT_RE = re.compile(
    r"(?P<sign>-)?\s*(?:[$€£¥]|usd|eur|gbp)?\s*"
    r"(?P<number>\d[\d,]*(?:\.\d+)?|\.\d+)(?![\d.,]?\d)\s*"
    r"(?P<suffix>thousand|million|billion|mm|mn|bn|k|m|b)?(?![a-z])",
    re.IGNORECASE,
)

_PERCENT_RE = re.compile(r"(?P<number>-?\d+(?:\.\d+)?)\s*%")


def is_placeholder(value: Optional[str]) -> bool:
    if value is None:
        return True
    return value.strip().strip("*").strip().lower() in PLACEHOLDER_VALUES


def clean_text(value: Optional[str]) -> Optional[str]:
    """
    Trim and collapse whitespace; placeholders become None.
    """
    if value is None:
        return None
    collapsed = " ".join(str(value).split())
    if is_placeholder(collapsed):
        return None
    return collapsed


def _to_decimal(raw: str) -> Optional[Decimal]:
    try:
        return Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return None


def parse_amount(value: Optional[str]) -> Optional[float]:
    """
    Parse the first money/count figure in ``value``.

    Returns None when there is no figure or the text is a placeholder.
    Percentages are not amounts: "15%" returns None.
    """
    if value is None or is_placeholder(value):
        return None

    text = str(value).strip()
    if _PERCENT_RE.search(text) and not re.search(r"[$€£¥]", text):
        return None

    match = _AMOUNT_RE.search(text)
    if not match:
        return None

    number = _to_decimal(match.group("number"))
    if number is None:
        return None

    suffix = (match.group("suffix") or "").lower()
    multiplier = SUFFIX_MULTIPLIERS.get(suffix, 1)
    result = number * multiplier
    if match.group("sign"):
        result = -result
    return float(result)


def parse_percentage(value: Optional[str]) -> Optional[float]:
    """
    Parse a percentage literal into a decimal fraction.

    A bare number without a percent sign is taken to be a decimal already
    ("0.85" -> 0.85).
    """
    if value is None or is_placeholder(value):
        return None

    text = str(value).strip()
    match = _PERCENT_RE.search(text)
    if match:
        number = _to_decimal(match.group("number"))
        return float(number / 100) if number is not None else None

    bare = re.fullmatch(r"-?\d+(?:\.\d+)?", text)
    if bare:
        number = _to_decimal(text)
        return float(number) if number is not None else None
    return None


def parse_numeric_literal(value: Any) -> Optional[float]:
    """
    Normalize a single numeric value that may arrive as a string.

    Strings ending in a percent sign are parsed as percentages, everything else
    as an amount. Non-finite numbers are rejected.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("boolean is not a numeric value")
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise ValueError(f"non-finite number: {value!r}")
        return float(value)

    text = str(value).strip()
    if is_placeholder(text):
        return None
    parsed = parse_percentage(text) if "%" in text else parse_amount(text)
    if parsed is None:
        raise ValueError(f"not a numeric literal: {value!r}")
    return parsed


def annualize_rate(rate: Optional[float], period: Optional[str]) -> Optional[float]:
    """
    Convert a per-period rate to an annual one by compounding.

    annual = 1 - (1 - rate) ** periods_per_year

    An annual rate passes through unchanged. Unknown periods and rates outside
    [0, 1] give None.
    """
    if rate is None or period is None:
        return None
    periods = PERIODS_PER_YEAR.get(period.strip().lower())
    if periods is None:
        return None
    if not math.isfinite(rate) or rate < 0 or rate > 1:
        return None
    if periods == 1:
        return rate
    return 1 - (1 - rate) ** periods
