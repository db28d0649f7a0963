"""
Tests for the command-line entry point (python -m company_db).
"""
import json
from unittest.mock import patch

import pytest

from company_db import __main__ as cli
from company_db.services.pipeline import CompanyParsePipeline
from company_db.services.sources import DirectorySource
from tests.fixtures.company_notes import (
    SAMPLE_NOTE,
    FakeClassifier,
    InMemorySink,
    failing,
    fixed_clock,
    full_script,
    make_record,
    make_settings,
    sequential_ids,
)


@pytest.fixture(autouse=True)
def _isolated_cli(monkeypatch):
    # JSON logs go to stdout, which these tests parse
    monkeypatch.setattr(cli, "configure_logging", lambda: None)
    monkeypatch.setattr(cli, "get_settings", make_settings)


def _fake_build_pipeline(script):
    def build(settings, run_id=None):
        return CompanyParsePipeline(
            make_settings(),
            classifier=FakeClassifier(script),
            source=DirectorySource(settings.NOTES_DIR),
            id_factory=sequential_ids(),
            clock=fixed_clock,
        )

    return build


class TestParseCommand:
    def test_prints_record_json(self, tmp_path, capsys):
        (tmp_path / "acme.txt").write_text(SAMPLE_NOTE, encoding="utf-8")
        with patch.object(cli, "build_pipeline", _fake_build_pipeline(full_script())):
            code = cli.main(["parse", "acme", "--source-dir", str(tmp_path)])

        assert code == 0
        record = json.loads(capsys.readouterr().out)
        assert record["company_name"] == "Acme Analytics"
        assert record["monthly_burn"] == 300000.0

    def test_failure_exit_code(self, tmp_path, capsys):
        (tmp_path / "acme.txt").write_text(SAMPLE_NOTE, encoding="utf-8")
        script = full_script(churn_annualization=failing("timeout"))
        with patch.object(cli, "build_pipeline", _fake_build_pipeline(script)):
            code = cli.main(["parse", "acme", "--source-dir", str(tmp_path)])

        assert code == 1
        assert "churn_annualization" in capsys.readouterr().err

    def test_missing_document(self, tmp_path, capsys):
        with patch.object(cli, "build_pipeline", _fake_build_pipeline(full_script())):
            code = cli.main(["parse", "nope", "--source-dir", str(tmp_path)])
        assert code == 1


class TestBatchCommand:
    def test_requires_ids_or_directory(self, capsys):
        with patch.object(cli, "get_settings", return_value=make_settings(NOTES_DIR=None)):
            code = cli.main(["batch"])
        assert code == 2
        assert "No document ids" in capsys.readouterr().err

    def test_runs_every_note_in_directory(self, tmp_path, capsys):
        (tmp_path / "acme.txt").write_text(SAMPLE_NOTE, encoding="utf-8")
        (tmp_path / "beta.txt").write_text("Company Name: Beta", encoding="utf-8")
        settings = make_settings(DATABASE_URL=f"sqlite:///{tmp_path / 'db.sqlite3'}")
        with patch.object(cli, "get_settings", return_value=settings), patch.object(
            cli, "build_pipeline", _fake_build_pipeline(full_script())
        ):
            assert cli.main(["init-db"]) == 0
            code = cli.main(["batch", "--source-dir", str(tmp_path)])

        assert code == 0
        out = capsys.readouterr().out
        summary = json.loads(out[out.index("{"):])
        assert summary["processed"] == 2
        assert summary["failed"] == 0


class TestSearchCommand:
    def test_filters_stored_companies(self, capsys):
        sink = InMemorySink()
        sink.upsert(make_record(id="rec-1", company_name="Acme", location="Austin, TX", team_size=40))
        sink.upsert(make_record(id="rec-2", company_name="Beta", location="Berlin", team_size=8,
                                last_round_valuation=2e7))
        with patch.object(cli, "_sink", return_value=sink):
            code = cli.main(["search", "--team-size-max", "10", "--has-valuation"])

        assert code == 0
        found = json.loads(capsys.readouterr().out)
        assert [r["id"] for r in found] == ["rec-2"]

    def test_negated_flag(self, capsys):
        sink = InMemorySink()
        sink.upsert(make_record(id="rec-1", company_name="Acme"))
        sink.upsert(make_record(id="rec-2", company_name="Beta", last_round_valuation=2e7))
        with patch.object(cli, "_sink", return_value=sink):
            cli.main(["search", "--no-has-valuation"])

        assert [r["id"] for r in json.loads(capsys.readouterr().out)] == ["rec-1"]
