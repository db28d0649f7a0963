"""
Tests for api/routes_companies.py
"""
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from company_db.api import routes_companies
from company_db.main import app, cors_origins
from tests.fixtures.company_notes import InMemorySink, make_record, make_settings


@pytest.fixture
def sink():
    sink = InMemorySink()
    sink.upsert(make_record(id="rec-1", company_name="Acme Analytics", acv=20000.0))
    app.dependency_overrides[routes_companies.get_record_sink] = lambda: sink
    yield sink
    app.dependency_overrides.clear()


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(routes_companies.settings, "ENV", "dev")
    monkeypatch.setattr(routes_companies.settings, "API_AUTH_KEY", None)
    return TestClient(app)


class TestCompanyRoutes:
    def test_get_company(self, client, sink):
        resp = client.get("/api/companies/rec-1")
        assert resp.status_code == 200
        body = resp.json()
        assert body["company_name"] == "Acme Analytics"
        assert body["acv"] == 20000.0
        assert body["acv_2"] is None

    def test_unknown_company(self, client, sink):
        assert client.get("/api/companies/nope").status_code == 404

    def test_summary(self, client, sink):
        body = client.get("/api/companies/summary").json()
        assert body["total_companies"] == 1
        assert body["metrics"]["acv"] == 20000.0

    def test_needing_updates(self, client, sink):
        body = client.get("/api/companies/needing-updates").json()
        assert body[0]["id"] == "rec-1"
        assert "arr_run_rate" in body[0]["missing_fields"]

    def test_search_by_query_parameters(self, client, sink):
        sink.upsert(
            make_record(id="rec-2", company_name="Beta", acv=250000.0, acv_2=800.0,
                        location="Austin, TX", last_round_valuation=5e7)
        )
        assert [c["id"] for c in client.get("/api/companies").json()] == ["rec-1", "rec-2"]

        resp = client.get("/api/companies", params={"location": "austin", "has_valuation": "true"})
        assert resp.status_code == 200
        assert [c["id"] for c in resp.json()] == ["rec-2"]

        resp = client.get("/api/companies", params={"max_acv": 50000})
        assert [c["id"] for c in resp.json()] == ["rec-1"]

        resp = client.get("/api/companies", params={"name": "acme analytics"})
        assert [c["id"] for c in resp.json()] == ["rec-1"]

    def test_parse_enqueues_task(self, client):
        with patch.object(
            routes_companies.celery_app, "send_task", return_value=SimpleNamespace(id="task-1")
        ) as send_task:
            resp = client.post("/api/companies/parse", json={"document_id": " doc-1 "})

        assert resp.status_code == 202
        assert resp.json() == {"task_id": "task-1", "document_id": "doc-1", "status": "QUEUED"}
        assert send_task.call_args.kwargs["args"] == ["doc-1"]

    def test_parse_rejects_blank_document_id(self, client):
        resp = client.post("/api/companies/parse", json={"document_id": "   "})
        assert resp.status_code == 422


class TestApiKey:
    def test_key_required_when_configured(self, client, sink, monkeypatch):
        monkeypatch.setattr(routes_companies.settings, "API_AUTH_KEY", "secret")
        assert client.get("/api/companies/rec-1").status_code == 401
        resp = client.get("/api/companies/rec-1", headers={"X-API-Key": "secret"})
        assert resp.status_code == 200

    def test_missing_key_outside_dev(self, client, sink, monkeypatch):
        monkeypatch.setattr(routes_companies.settings, "ENV", "prod")
        assert client.get("/api/companies/rec-1").status_code == 401


class TestCorsOrigins:
    def test_prod_requires_frontend_origin(self):
        with pytest.raises(RuntimeError):
            cors_origins(make_settings(ENV="prod", FRONTEND_ORIGIN=None))

    def test_prod_uses_configured_origins(self):
        origins = cors_origins(make_settings(ENV="prod", FRONTEND_ORIGIN="https://a.io, https://b.io"))
        assert origins == ["https://a.io", "https://b.io"]

    def test_dev_defaults_to_wildcard(self):
        assert cors_origins(make_settings(ENV="dev", FRONTEND_ORIGIN=None)) == ["*"]

    def test_health(self, client):
        assert client.get("/healthz").json() == {"status": "ok"}
