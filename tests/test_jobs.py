"""Tests for the concrete job kinds."""

from __future__ import annotations

import json

import httpx
import pytest

from core import RemoteStatus
from jobs import AISummaryJob, CaesarResearchJob, DataCollectionJob, UCIEClient, normalize_remote_status, parse_research
from utils.exceptions import TriggerError, ValidationError


def _client(handler) -> UCIEClient:
    return UCIEClient("http://ucie.test", timeout_s=5.0, transport=httpx.MockTransport(handler))


def test_normalize_remote_status():
    assert normalize_remote_status("Completed") == RemoteStatus.COMPLETED
    assert normalize_remote_status("complete") == RemoteStatus.COMPLETED
    assert normalize_remote_status("error") == RemoteStatus.FAILED
    assert normalize_remote_status("researching") == RemoteStatus.PROCESSING
    assert normalize_remote_status(None) == RemoteStatus.PROCESSING


@pytest.mark.asyncio
async def test_collection_trigger_mints_distinct_ids_without_job_id():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"success": True})

    async with _client(handler) as client:
        job = DataCollectionJob(client)
        first = await job.trigger(" btc ", {})
        second = await job.trigger("BTC", {})

    assert first.job_id.startswith("collect_")
    assert first.job_id != second.job_id
    assert first.subject == "BTC"
    assert first.status_endpoint == "/api/ucie/preview-data/BTC/status"
    assert requests[0].url.params["refresh"] == "true"


@pytest.mark.asyncio
async def test_collection_trigger_uses_remote_job_id():
    async with _client(lambda request: httpx.Response(200, json={"jobId": "remote-7"})) as client:
        handle = await DataCollectionJob(client).trigger("ETH", {})
    assert handle.job_id == "remote-7"


@pytest.mark.asyncio
async def test_invalid_subject_never_reaches_network():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={})

    async with _client(handler) as client:
        with pytest.raises(ValidationError):
            await DataCollectionJob(client).trigger("", {})
        with pytest.raises(ValidationError):
            await AISummaryJob(client).trigger("BTC/USD", {})
    assert requests == []


def test_collection_interpret_completes_when_all_sources_available():
    job = DataCollectionJob(client=None)
    partial = job.interpret({"status": "collecting", "dataSources": [{"name": "a", "available": True}, {"name": "b"}]})
    assert partial.status == RemoteStatus.PROCESSING
    assert partial.collection.percentage == 50
    assert partial.stage.key == "collecting"

    done = job.interpret({"status": "collecting", "dataSources": [{"name": "b", "available": True}]})
    assert done.status == RemoteStatus.COMPLETED
    assert done.collection.percentage == 100
    assert len(done.data_sources) == 2


def test_collection_interpret_honours_remote_complete_and_failed():
    job = DataCollectionJob(client=None)
    assert job.interpret({"status": "complete", "dataSources": [{"name": "a"}]}).status == RemoteStatus.COMPLETED

    failing = DataCollectionJob(client=None)
    reading = failing.interpret({"status": "failed", "error": "upstream down", "dataSources": [{"name": "a", "available": True}]})
    assert reading.status == RemoteStatus.FAILED
    assert reading.error == "upstream down"


@pytest.mark.asyncio
async def test_summary_trigger_sends_collected_data():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True, "jobId": "42"})

    async with _client(handler) as client:
        handle = await AISummaryJob(client).trigger("sol", {"collected": {"marketData": {"price": 1}}})

    assert handle.job_id == "42"
    assert handle.status_endpoint == "/api/ucie/openai-summary-poll/42"
    assert bodies == [{"symbol": "SOL", "collectedData": {"marketData": {"price": 1}}}]


@pytest.mark.asyncio
async def test_summary_trigger_without_job_id_is_trigger_error():
    async with _client(lambda request: httpx.Response(200, json={"success": False, "error": "No collected data"})) as client:
        with pytest.raises(TriggerError, match="No collected data"):
            await AISummaryJob(client).trigger("BTC", {})


def test_summary_interpret_resolves_stage_by_key_or_index():
    job = AISummaryJob(client=None)
    assert job.interpret({"status": "processing", "stage": "sentiment"}).stage.percentage == 60
    assert job.interpret({"status": "processing", "stage": "4"}).stage.key == "summary"
    assert job.interpret({"status": "processing", "stage": "Processing sentiment..."}).stage is None


@pytest.mark.asyncio
async def test_research_trigger_clamps_compute_units_and_quotes_job_id():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True, "jobId": "a b"})

    async with _client(handler) as client:
        job = CaesarResearchJob(client, compute_units=50)
        handle = await job.trigger("BTC", {"collected": {"x": 1}})

    assert job.compute_units == 10
    assert bodies[0] == {"computeUnits": 10, "context": {"x": 1}}
    assert handle.status_endpoint == "/api/ucie/research/BTC?jobId=a%20b"


def test_parse_research_fills_defaults():
    research = parse_research({"content": None, "results": [{"title": "Doc", "url": "u", "score": "0.5"}]})
    assert research["technologyOverview"] == "No technology overview available"
    assert research["teamLeadership"] == "No team information available"
    assert research["riskFactors"] == []
    assert research["sources"] == [{"title": "Doc", "url": "u", "relevance": 0.5, "citationIndex": 0}]
    assert research["confidence"] == 0.0
    assert research["rawContent"] is None


def test_parse_research_prefers_structured_content():
    research = parse_research(
        {
            "content": "raw answer",
            "transformed_content": {"technologyOverview": "Proof of stake", "confidence": 85},
        }
    )
    assert research["technologyOverview"] == "Proof of stake"
    assert research["confidence"] == 85.0
    assert research["rawContent"] == "raw answer"


def test_collection_percentage_holds_when_more_sources_are_reported():
    job = DataCollectionJob(client=None)
    first = job.interpret({"status": "collecting", "dataSources": [{"name": "a", "available": True}, {"name": "b"}]})
    later = job.interpret(
        {"status": "collecting", "dataSources": [{"name": "a", "available": True}, {"name": "b"}, {"name": "c"}, {"name": "d"}]}
    )

    assert first.collection.percentage == 50
    assert later.collection.percentage == 50
    assert later.collection.total == 4
    assert later.status == RemoteStatus.PROCESSING


@pytest.mark.asyncio
async def test_summary_poll_endpoint_escapes_job_id():
    async with _client(lambda request: httpx.Response(200, json={"success": True, "jobId": "run/7 a"})) as client:
        handle = await AISummaryJob(client).trigger("BTC", {})

    assert handle.job_id == "run/7 a"
    assert handle.status_endpoint == "/api/ucie/openai-summary-poll/run%2F7%20a"
