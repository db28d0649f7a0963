"""
Tests for classifier.py

OpenAIClassifier against a mocked OpenAI client: request shape, response
checking, cost tracking and the optional Redis cache.
"""
import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from openai import OpenAIError

from company_db.core.errors import ClassificationFailure
from company_db.schemas.fields import closed_schema, number, string
from company_db.services.classifier import OpenAIClassifier
from company_db.services.llm_costs import LLMCostTracker
from tests.fixtures.company_notes import make_settings

FIELDS = (
    number("churn_rate", "rate"),
    string("churn_period", "period", choices=("annual", "monthly")),
)


def _response(content, refusal=None, prompt_tokens=1000, completion_tokens=50, cached=0):
    message = SimpleNamespace(content=content, refusal=refusal)
    usage = SimpleNamespace(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        prompt_tokens_details=SimpleNamespace(cached_tokens=cached),
    )
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


def _classifier(response=None, side_effect=None, tracker=None, **settings_overrides):
    client = MagicMock()
    if side_effect is not None:
        client.chat.completions.create.side_effect = side_effect
    else:
        client.chat.completions.create.return_value = response
    classifier = OpenAIClassifier(
        make_settings(**settings_overrides), client=client, cost_tracker=tracker
    )
    return classifier, client


class TestOpenAIClassifier:
    def test_returns_checked_payload(self):
        classifier, _ = _classifier(
            _response(json.dumps({"churn_rate": 0.02, "churn_period": "monthly"}))
        )
        assert classifier.classify("prompt", FIELDS, "churn") == {
            "churn_rate": 0.02,
            "churn_period": "monthly",
        }

    def test_request_uses_strict_json_schema(self):
        classifier, client = _classifier(
            _response(json.dumps({"churn_rate": None, "churn_period": None})),
            LLM_MODEL="gpt-4o-mini",
        )
        classifier.classify("the instruction", FIELDS, "churn")

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.0
        assert kwargs["messages"][0]["role"] == "system"
        assert kwargs["messages"][1] == {"role": "user", "content": "the instruction"}
        fmt = kwargs["response_format"]
        assert fmt["type"] == "json_schema"
        assert fmt["json_schema"]["name"] == "churn"
        assert fmt["json_schema"]["strict"] is True
        assert fmt["json_schema"]["schema"] == closed_schema(FIELDS)

    def test_sdk_error_becomes_classification_failure(self):
        classifier, _ = _classifier(side_effect=OpenAIError("connection reset"))
        with pytest.raises(ClassificationFailure, match="connection reset"):
            classifier.classify("prompt", FIELDS, "churn")

    def test_sdk_call_is_not_retried(self):
        classifier, client = _classifier(side_effect=OpenAIError("boom"))
        with pytest.raises(ClassificationFailure):
            classifier.classify("prompt", FIELDS, "churn")
        assert client.chat.completions.create.call_count == 1

    def test_invalid_json(self):
        classifier, _ = _classifier(_response("not json"))
        with pytest.raises(ClassificationFailure, match="JSON"):
            classifier.classify("prompt", FIELDS, "churn")

    def test_empty_content(self):
        classifier, _ = _classifier(_response(""))
        with pytest.raises(ClassificationFailure, match="empty"):
            classifier.classify("prompt", FIELDS, "churn")

    def test_refusal(self):
        classifier, _ = _classifier(_response(None, refusal="cannot help"))
        with pytest.raises(ClassificationFailure, match="refused"):
            classifier.classify("prompt", FIELDS, "churn")

    def test_no_choices(self):
        response = _response("{}")
        response.choices = []
        classifier, _ = _classifier(response)
        with pytest.raises(ClassificationFailure, match="no choices"):
            classifier.classify("prompt", FIELDS, "churn")

    def test_non_conforming_payload(self):
        classifier, _ = _classifier(_response(json.dumps({"churn_rate": 0.02})))
        with pytest.raises(ClassificationFailure, match="missing"):
            classifier.classify("prompt", FIELDS, "churn")

    def test_usage_is_tracked(self):
        tracker = LLMCostTracker("run-1")
        classifier, _ = _classifier(
            _response(json.dumps({"churn_rate": None, "churn_period": None})),
            tracker=tracker,
            LLM_MODEL="gpt-4o",
        )
        classifier.classify("prompt", FIELDS, "churn")

        summary = tracker.summarize()
        assert summary["stages"]["churn"]["calls"] == 1
        assert summary["totals"]["input"] == 1000
        assert summary["totals"]["output"] == 50
        # 1000 input @ $2.50/M + 50 output @ $10/M
        assert summary["total_cost_usd"] == pytest.approx(0.0025 + 0.0005)

    def test_provider_follows_configured_key(self):
        classifier, _ = _classifier(_response("{}"), OPENROUTER_API_KEY="or-key")
        assert classifier.provider == "openrouter"
        classifier, _ = _classifier(_response("{}"))
        assert classifier.provider == "openai"


class TestClassifierCache:
    def test_cache_disabled_by_default(self):
        classifier, _ = _classifier(
            _response(json.dumps({"churn_rate": None, "churn_period": None}))
        )
        with patch("company_db.services.classifier.cached_get") as cached_get:
            classifier.classify("prompt", FIELDS, "churn")
        cached_get.assert_not_called()

    def test_cache_hit_skips_call(self):
        classifier, client = _classifier(CLASSIFIER_CACHE_TTL_SECONDS=60)
        with patch(
            "company_db.services.classifier.cached_get",
            return_value={"churn_rate": 0.05, "churn_period": "annual"},
        ):
            result = classifier.classify("prompt", FIELDS, "churn")
        assert result == {"churn_rate": 0.05, "churn_period": "annual"}
        client.chat.completions.create.assert_not_called()

    def test_cache_miss_stores_answer(self):
        answer = {"churn_rate": 0.02, "churn_period": "monthly"}
        classifier, client = _classifier(
            _response(json.dumps(answer)), CLASSIFIER_CACHE_TTL_SECONDS=60
        )
        with patch("company_db.services.classifier.cached_get", return_value=None) as cached_get:
            classifier.classify("prompt", FIELDS, "churn")

        client.chat.completions.create.assert_called_once()
        write_call = cached_get.call_args_list[-1]
        assert write_call.kwargs == {"set_value": answer, "ttl": 60}
        assert write_call.args[1].startswith("classify:churn:")

    def test_invalid_cached_payload_fails(self):
        classifier, _ = _classifier(CLASSIFIER_CACHE_TTL_SECONDS=60)
        with patch(
            "company_db.services.classifier.cached_get",
            return_value={"churn_rate": "lots", "churn_period": "annual"},
        ):
            with pytest.raises(ClassificationFailure):
                classifier.classify("prompt", FIELDS, "churn")

    def test_malformed_redis_url_is_a_cache_miss(self):
        answer = {"churn_rate": 0.02, "churn_period": "monthly"}
        classifier, client = _classifier(
            _response(json.dumps(answer)),
            CLASSIFIER_CACHE_TTL_SECONDS=60,
            REDIS_URL="not-a-redis-url",
        )
        assert classifier.classify("prompt", FIELDS, "churn") == answer
        client.chat.completions.create.assert_called_once()
