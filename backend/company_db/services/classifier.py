# backend/company_db/services/classifier.py

from __future__ import annotations

import hashlib
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence

from openai import OpenAI, OpenAIError

from ..core.config import Settings
from ..core.errors import ClassificationFailure
from ..schemas.fields import FieldSchema, closed_schema, validate_payload
from .caching import cached_get
from .llm import build_llm_client, limit_llm_concurrency
from .llm_costs import LLMCostTracker, cost_for_tokens, load_pricebook

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a financial data analyst normalizing venture capital due diligence "
    "notes into a structured database. Answer only from the supplied text. "
    "Use null whenever the text gives no clear evidence for a field."
)


class TextClassifier(ABC):
    """
    Capability: turn an instruction plus a closed field schema into values.

    Implementations must return a dict containing exactly the declared fields
    or raise ClassificationFailure.
    """

    @abstractmethod
    def classify(
        self,
        instruction: str,
        fields: Sequence[FieldSchema],
        name: str,
    ) -> Dict[str, Any]:
        ...


class OpenAIClassifier(TextClassifier):
    """
    Classifier backed by an OpenAI-compatible chat completions endpoint using
    strict ``json_schema`` structured output.

    No retries are attempted here: a failed call surfaces immediately as a
    ClassificationFailure and fails the stage that made it.
    """

    provider = "openai"

    def __init__(
        self,
        settings: Settings,
        client: Optional[OpenAI] = None,
        cost_tracker: Optional[LLMCostTracker] = None,
    ) -> None:
        self._client = client or build_llm_client(settings)
        self._model = settings.LLM_MODEL
        self._temperature = settings.LLM_TEMPERATURE
        self._max_concurrency = settings.LLM_MAX_CONCURRENCY
        self._cache_ttl = settings.CLASSIFIER_CACHE_TTL_SECONDS
        self._redis_url = settings.REDIS_URL
        self._pricebook = load_pricebook(settings.LLM_PRICEBOOK_JSON)
        self.cost_tracker = cost_tracker
        if settings.OPENROUTER_API_KEY:
            self.provider = "openrouter"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _cache_key(self, instruction: str, schema: Dict[str, Any], name: str) -> str:
        digest = hashlib.sha256(
            json.dumps(
                {"model": self._model, "name": name, "instruction": instruction, "schema": schema},
                sort_keys=True,
            ).encode("utf-8")
        ).hexdigest()
        return f"classify:{name}:{digest}"

    def _record_usage(self, name: str, response: Any) -> None:
        if self.cost_tracker is None:
            return
        usage = getattr(response, "usage", None)
        if usage is None:
            return
        input_tokens = getattr(usage, "prompt_tokens", 0) or 0
        output_tokens = getattr(usage, "completion_tokens", 0) or 0
        details = getattr(usage, "prompt_tokens_details", None)
        cached_tokens = (getattr(details, "cached_tokens", 0) or 0) if details else 0
        self.cost_tracker.add_record(
            self.provider,
            self._model,
            name,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cached_input_tokens=cached_tokens,
            cost_usd=cost_for_tokens(
                self._model,
                input_tokens,
                output_tokens,
                cached_tokens,
                pricebook=self._pricebook,
            ),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def classify(
        self,
        instruction: str,
        fields: Sequence[FieldSchema],
        name: str,
    ) -> Dict[str, Any]:
        schema = closed_schema(fields)

        cache_key = None
        if self._cache_ttl:
            cache_key = self._cache_key(instruction, schema, name)
            cached = cached_get(self._redis_url, cache_key)
            if cached is not None:
                logger.debug("Classifier cache hit for %s", name, extra={"stage": name})
                return validate_payload(fields, cached)

        try:
            with limit_llm_concurrency(self._max_concurrency):
                response = self._client.chat.completions.create(
                    model=self._model,
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": instruction},
                    ],
                    temperature=self._temperature,
                    response_format={
                        "type": "json_schema",
                        "json_schema": {
                            "name": name,
                            "strict": True,
                            "schema": schema,
                        },
                    },
                )
        except OpenAIError as e:
            logger.warning(
                "Classification call failed for %s: %s",
                name,
                e,
                extra={"stage": name},
            )
            raise ClassificationFailure(f"{name}: {e}") from e

        self._record_usage(name, response)

        if not response.choices:
            raise ClassificationFailure(f"{name}: response contained no choices")
        message = response.choices[0].message
        refusal = getattr(message, "refusal", None)
        if refusal:
            raise ClassificationFailure(f"{name}: model refused: {refusal}")

        content = (message.content or "").strip()
        if not content:
            raise ClassificationFailure(f"{name}: empty response content")

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ClassificationFailure(f"{name}: response is not valid JSON: {e}") from e

        result = validate_payload(fields, data)

        if cache_key:
            cached_get(self._redis_url, cache_key, set_value=data, ttl=self._cache_ttl)

        return result
