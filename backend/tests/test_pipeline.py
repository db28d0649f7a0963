"""
Tests for pipeline.py and the stage runner.

End-to-end runs with a deterministic fake classifier.
"""
import pytest

from company_db.core.errors import ExtractionFailure, SourceUnavailable
from company_db.services.pipeline import CompanyParsePipeline
from company_db.services.stages import StageRunner, default_stages
from company_db.services.stages.burn import MonthlyBurnStage
from tests.fixtures.company_notes import (
    SAMPLE_NOTE,
    FREE_TEXT_NOTE,
    SPARSE_NOTE,
    UNTEMPLATED_NOTE,
    FakeClassifier,
    StaticSource,
    failing,
    fixed_clock,
    full_script,
    make_settings,
    sequential_ids,
)

DOCS = {
    "acme": SAMPLE_NOTE,
    "quiet": SPARSE_NOTE,
    "free": UNTEMPLATED_NOTE,
    "narrative": FREE_TEXT_NOTE,
}


def _pipeline(script=None, concurrent=False, **kwargs):
    settings = make_settings(PIPELINE_CONCURRENT_STAGES=concurrent)
    classifier = FakeClassifier(full_script() if script is None else script)
    pipeline = CompanyParsePipeline(
        settings,
        classifier=classifier,
        source=StaticSource(DOCS),
        id_factory=kwargs.pop("id_factory", sequential_ids()),
        clock=fixed_clock,
        **kwargs,
    )
    return pipeline, classifier


class TestCompanyParsePipeline:
    def test_full_note(self):
        pipeline, classifier = _pipeline()
        record = pipeline.parse("acme")

        assert record.company_name == "Acme Analytics"
        assert record.website == "https://acme.io"
        assert record.doc_url == "https://docs.google.com/document/d/acme"
        assert record.arr_run_rate == 4200000
        assert record.acv == 250000
        assert record.acv_2 == 800
        assert record.customer_count == 3
        assert record.customer_count_2 == 300
        assert record.logo_churn_annual == pytest.approx(1 - 0.98 ** 12)
        assert record.monthly_burn == 300000
        assert record.last_round_valuation == pytest.approx(50e6)
        assert record.gross_margin == 0.78
        assert sorted(classifier.called_stages()) == sorted(s.name for s in pipeline.stages)

    def test_idempotent_apart_from_identity(self):
        """Same note, same classifier answers: only id and date_created may differ."""
        pipeline, _ = _pipeline()
        first = pipeline.parse("acme")
        second = pipeline.parse("acme")
        assert first.id != second.id
        exclude = {"id", "date_created"}
        assert first.model_dump(exclude=exclude) == second.model_dump(exclude=exclude)

    def test_concurrent_and_sequential_agree(self):
        sequential, _ = _pipeline(concurrent=False)
        concurrent, _ = _pipeline(concurrent=True)
        exclude = {"id", "date_created"}
        assert sequential.parse("acme").model_dump(exclude=exclude) == concurrent.parse(
            "acme"
        ).model_dump(exclude=exclude)

    def test_sparse_note_only_calls_simple_fields(self):
        pipeline, classifier = _pipeline(script={})
        record = pipeline.parse("quiet")
        assert classifier.called_stages() == ["simple_fields_batch"]
        assert record.company_name == "Quiet Co"
        assert record.website == "https://quiet.example.com"
        assert record.acv is None and record.acv_2 is None
        assert record.monthly_burn is None

    def test_untemplated_note_has_no_identity(self):
        pipeline, _ = _pipeline(script={})
        record = pipeline.parse("free")
        assert record.company_name is None
        assert record.website is None

    def test_free_text_note_runs_every_stage(self):
        """Without template labels every stage reads the whole note."""
        script = full_script(monthly_burn={"burn_amount": None, "burn_qualifier": "profitable"})
        # No segments in the note: those stages get an all-null answer
        script.pop("acv_complexity_analysis")
        script.pop("customer_complexity_analysis")
        pipeline, classifier = _pipeline(script=script)
        record = pipeline.parse("narrative")

        assert sorted(classifier.called_stages()) == sorted(s.name for s in pipeline.stages)
        for call in classifier.calls:
            assert "Churn is 2% monthly" in call["instruction"]
        assert record.logo_churn_annual == pytest.approx(0.2153, abs=5e-4)
        assert record.monthly_burn == 0.0
        assert record.last_round_valuation == pytest.approx(5e7)
        assert record.acv is None and record.customer_count is None

    @pytest.mark.parametrize("concurrent", [False, True])
    def test_stage_failure_aborts_run(self, concurrent):
        pipeline, _ = _pipeline(
            script=full_script(monthly_burn=failing("rate limited")), concurrent=concurrent
        )
        with pytest.raises(ExtractionFailure) as exc_info:
            pipeline.parse("acme")
        assert exc_info.value.stage == "monthly_burn"

    def test_source_unavailable_propagates(self):
        pipeline, classifier = _pipeline()
        with pytest.raises(SourceUnavailable):
            pipeline.parse("missing")
        assert classifier.calls == []

    def test_custom_stage_registry(self):
        settings = make_settings(LOW_BURN_SENTINEL=10000.0)
        stages = default_stages(settings)
        burn = next(s for s in stages if s.name == "monthly_burn")
        assert isinstance(burn, MonthlyBurnStage)
        assert burn.low_burn_sentinel == 10000.0

    def test_parse_text_bypasses_source(self):
        pipeline, _ = _pipeline()
        record = pipeline.parse_text("inline", SAMPLE_NOTE)
        assert record.doc_url.endswith("/inline")

    def test_cost_summary_absent_for_fake_classifier(self):
        pipeline, _ = _pipeline()
        assert pipeline.cost_summary() is None


class TestStageRunner:
    def test_duplicate_stage_names_rejected(self):
        with pytest.raises(ValueError):
            StageRunner([MonthlyBurnStage(), MonthlyBurnStage()])

    def test_results_keyed_by_stage(self):
        from company_db.services.sections import NoteDocument

        stages = default_stages(make_settings())
        runner = StageRunner(stages, concurrent=True)
        results = runner.run(NoteDocument.from_text("acme", SAMPLE_NOTE), FakeClassifier(full_script()))
        assert set(results) == {s.name for s in stages}
        assert results["monthly_burn"].values == {"monthly_burn": 300000.0}
