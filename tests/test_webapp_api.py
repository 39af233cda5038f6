"""Tests for the FastAPI session surface."""

from __future__ import annotations

import importlib
import time

from fastapi.testclient import TestClient

from orchestrator.service import AnalysisOrchestrator
from storage.cache import ResultCache

webapp_module = importlib.import_module("webapp.app")


def _wait_for_status(client: TestClient, subject: str, wanted: set, timeout_sec: float = 3.0) -> dict:
    deadline = time.time() + timeout_sec
    while time.time() < deadline:
        session = client.get(f"/api/sessions/{subject}").json()["session"]
        if session["status"] in wanted:
            return session
        time.sleep(0.02)
    return client.get(f"/api/sessions/{subject}").json()["session"]


def _orchestrator(backend, settings) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(client=backend.client(), cache=ResultCache(), settings=settings)


def test_health():
    with TestClient(webapp_module.app) as client:
        payload = client.get("/api/health").json()
    assert payload["ok"] is True


def test_start_runs_session_to_completion(monkeypatch, make_backend, make_settings):
    backend = make_backend()
    orchestrator = _orchestrator(backend, make_settings())
    monkeypatch.setattr(webapp_module, "get_orchestrator", lambda: orchestrator)

    with TestClient(webapp_module.app) as client:
        started = client.post("/api/sessions/btc/start").json()
        assert started["started"] is True
        assert started["session"]["subject"] == "BTC"

        session = _wait_for_status(client, "BTC", {"completed", "error"})
        assert session["status"] == "completed"
        assert session["progress"] == 100
        assert session["result"]["summary"]["summary"] == "Bullish momentum"

        again = client.post("/api/sessions/BTC/start").json()
        assert again["started"] is True
        assert again["session"]["from_cache"] is True

        stream = client.get("/api/sessions/BTC/events")
        assert stream.status_code == 200
        assert "event: snapshot" in stream.text
        assert "event: stream_end" in stream.text

    assert backend.count("refresh=true") == 1


def test_cancel_and_reset(monkeypatch, make_backend, make_settings):
    backend = make_backend(summary_script=["processing"])
    orchestrator = _orchestrator(backend, make_settings(summary={"interval_s": 60.0, "max_attempts": 60}))
    monkeypatch.setattr(webapp_module, "get_orchestrator", lambda: orchestrator)

    with TestClient(webapp_module.app) as client:
        client.post("/api/sessions/ETH/start")
        session = _wait_for_status(client, "ETH", {"analyzing"})
        assert session["status"] == "analyzing"

        cancelled = client.post("/api/sessions/ETH/cancel").json()
        assert cancelled["cancelled"] is True
        assert cancelled["session"]["status"] == "cancelled"
        assert cancelled["session"]["error"] is None

        repeat = client.post("/api/sessions/ETH/cancel").json()
        assert repeat["cancelled"] is False

        reset = client.post("/api/sessions/ETH/reset").json()
        assert reset["session"]["status"] == "idle"
        assert reset["session"]["job_id"] is None

        idle_stream = client.get("/api/sessions/ETH/events")
        assert idle_stream.status_code == 200
        assert "event: stream_end" in idle_stream.text
        assert "\"status\": \"idle\"" in idle_stream.text


def test_invalid_and_unknown_subjects(monkeypatch, make_backend, make_settings):
    backend = make_backend()
    orchestrator = _orchestrator(backend, make_settings())
    monkeypatch.setattr(webapp_module, "get_orchestrator", lambda: orchestrator)

    with TestClient(webapp_module.app) as client:
        bad = client.post("/api/sessions/BTC-USD/start")
        assert bad.status_code == 400
        assert "alphanumeric" in bad.json()["detail"]

        assert client.get("/api/sessions/NOPE").status_code == 404
        assert client.post("/api/sessions/NOPE/cancel").status_code == 404
        assert client.post("/api/sessions/NOPE/reset").status_code == 404
        assert client.get("/api/sessions/NOPE/events").status_code == 404

    assert backend.requests == []
