from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

_MTOK = 1_000_000


@dataclass(frozen=True)
class ModelRate:
    """USD per 1M tokens."""

    input_per_mtok: float
    output_per_mtok: float
    cached_input_per_mtok: Optional[float] = None

    def cost(self, input_tokens: int, output_tokens: int, cached_input_tokens: int = 0) -> float:
        cached = max(0, int(cached_input_tokens))
        paid_input = max(0, int(input_tokens) - cached)
        cached_rate = (
            self.cached_input_per_mtok
            if self.cached_input_per_mtok is not None
            else self.input_per_mtok
        )
        return (
            paid_input * self.input_per_mtok
            + max(0, int(output_tokens)) * self.output_per_mtok
            + cached * cached_rate
        ) / _MTOK


# Prices sourced from OpenAI API pricing
DEFAULT_PRICEBOOK: Dict[str, ModelRate] = {
    "gpt-4o": ModelRate(2.50, 10.00, 1.25),
    "gpt-4o-mini": ModelRate(0.15, 0.60, 0.075),
    "gpt-4.1": ModelRate(2.00, 8.00, 0.50),
    "gpt-4.1-mini": ModelRate(0.40, 1.60, 0.10),
}

_rate_adapter = TypeAdapter(ModelRate)


def load_pricebook(override_raw: str | None = None) -> Dict[str, ModelRate]:
    """
    Default pricebook, extended or overridden by LLM_PRICEBOOK_JSON:

        {"model-name": {"input_per_mtok": 1.0, "output_per_mtok": 2.0}}

    Unreadable JSON and invalid entries are logged and ignored.
    """
    pricebook = dict(DEFAULT_PRICEBOOK)
    if not override_raw:
        return pricebook

    try:
        override = json.loads(override_raw)
    except json.JSONDecodeError as e:
        logger.warning("Ignoring LLM_PRICEBOOK_JSON: %s", e)
        return pricebook
    if not isinstance(override, dict):
        logger.warning("Ignoring LLM_PRICEBOOK_JSON: expected an object")
        return pricebook

    for model, value in override.items():
        try:
            pricebook[normalize_model_name(model)] = _rate_adapter.validate_python(value)
        except ValidationError as e:
            logger.warning("Ignoring pricebook entry %r: %s", model, e.error_count())
    return pricebook


def normalize_model_name(model: str | None) -> str:
    """'openai/gpt-4o:free' -> 'gpt-4o'."""
    m = (model or "").strip().lower()
    m = m.rsplit("/", 1)[-1]
    return m.split(":", 1)[0]


def cost_for_tokens(
    model: str | None,
    input_tokens: int,
    output_tokens: int,
    cached_input_tokens: int = 0,
    pricebook: Dict[str, ModelRate] | None = None,
) -> float:
    """Unpriced models cost 0.0."""
    rate = (pricebook or DEFAULT_PRICEBOOK).get(normalize_model_name(model))
    if rate is None:
        return 0.0
    return rate.cost(input_tokens, output_tokens, cached_input_tokens)


class LLMCostTracker:
    """
    Thread-safe accumulator of token usage, one record per classifier call.

    Stages run concurrently, so records are appended under a lock.
    """

    def __init__(self, run_id: str):
        self.run_id = run_id
        self._lock = threading.Lock()
        self._records: List[Dict[str, Any]] = []

    def add_record(
        self,
        provider: str,
        model: str | None,
        stage: str,
        *,
        input_tokens: int = 0,
        output_tokens: int = 0,
        cached_input_tokens: int = 0,
        cost_usd: float | None = None,
    ) -> None:
        record = {
            "provider": provider or "unknown",
            "model": model or "",
            "stage": stage,
            "input_tokens": int(input_tokens or 0),
            "output_tokens": int(output_tokens or 0),
            "cached_input_tokens": int(cached_input_tokens or 0),
            "cost_usd": float(cost_usd) if cost_usd is not None else 0.0,
        }
        with self._lock:
            self._records.append(record)

    def summarize(self) -> dict:
        stages: Dict[str, Dict[str, Any]] = {}
        total_cost = 0.0
        totals = {"input": 0, "output": 0, "cached_input": 0}

        with self._lock:
            records_snapshot = list(self._records)

        for rec in records_snapshot:
            entry = stages.setdefault(
                rec["stage"],
                {"model": rec["model"], "calls": 0, "cost_usd": 0.0},
            )
            entry["calls"] += 1
            entry["cost_usd"] += rec["cost_usd"]
            totals["input"] += rec["input_tokens"]
            totals["output"] += rec["output_tokens"]
            totals["cached_input"] += rec["cached_input_tokens"]
            total_cost += rec["cost_usd"]

        return {
            "run_id": self.run_id,
            "stages": stages,
            "totals": totals,
            "total_cost_usd": total_cost,
        }
