"""Shared fixtures: virtual clock and a scripted UCIE backend."""

from __future__ import annotations

import asyncio
import json
from typing import Dict, List, Optional, Sequence

import httpx
import pytest

from config import CacheSettings, CollectionPollSettings, ResearchPollSettings, Settings, SummaryPollSettings
from jobs import UCIEClient
from orchestrator.service import AnalysisOrchestrator
from storage.cache import ResultCache


class VirtualClock:
    """Monotonic seconds source advanced only by ``sleep``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay
        await asyncio.sleep(0)


class FakeUCIEBackend:
    """Scripted stand-in for the UCIE HTTP API, served through ``httpx.MockTransport``.

    ``collection_script`` lists how many sources are available on each
    successive collection status query (the last value repeats).
    ``summary_script`` lists the remote status returned by each successive
    AI summary poll.
    """

    def __init__(
        self,
        *,
        sources: Sequence[str] = ("market", "sentiment", "technical", "news", "onchain"),
        collection_script: Optional[Sequence[int]] = None,
        summary_script: Sequence[str] = ("completed",),
        status_failures: int = 0,
        summary_start_status: int = 200,
    ) -> None:
        self.sources = list(sources)
        self.collection_script = list(collection_script or [len(self.sources)])
        self.summary_script = list(summary_script)
        self.status_failures = status_failures
        self.summary_start_status = summary_start_status
        self.requests: List[httpx.Request] = []
        self.summary_bodies: List[Dict] = []
        self.research_bodies: List[Dict] = []
        self.hold: Optional[asyncio.Event] = None
        self._collection_polls = 0
        self._summary_polls = 0
        self._summary_jobs = 0

    def count(self, fragment: str) -> int:
        return sum(1 for request in self.requests if fragment in str(request.url))

    @property
    def status_queries(self) -> int:
        return self.count("/status") + self.count("openai-summary-poll")

    def client(self) -> UCIEClient:
        return UCIEClient("http://ucie.test", timeout_s=5.0, transport=httpx.MockTransport(self))

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/status") or "openai-summary-poll" in path:
            if self.hold is not None:
                await self.hold.wait()

        if path.startswith("/api/ucie/preview-data/"):
            symbol = path.split("/")[4]
            if path.endswith("/status"):
                return self._collection_status()
            if request.url.params.get("refresh") == "true":
                return httpx.Response(200, json={"success": True, "message": "refresh started"})
            return httpx.Response(
                200,
                json={"success": True, "symbol": symbol, "data": {"marketData": {"price": 64000.5}}},
            )

        if path.startswith("/api/ucie/openai-summary-start/"):
            if self.summary_start_status >= 400:
                return httpx.Response(self.summary_start_status, json={"error": "OpenAI unavailable"})
            self.summary_bodies.append(json.loads(request.content or b"{}"))
            self._summary_jobs += 1
            return httpx.Response(200, json={"success": True, "jobId": f"summary-{self._summary_jobs}"})

        if path.startswith("/api/ucie/openai-summary-poll/"):
            return self._summary_status()

        if path.startswith("/api/ucie/research/"):
            if request.method == "POST":
                self.research_bodies.append(json.loads(request.content or b"{}"))
                return httpx.Response(200, json={"success": True, "jobId": "research-1"})
            return httpx.Response(
                200,
                json={
                    "status": "completed",
                    "result": {
                        "content": "Layer 1 settlement network.",
                        "transformed_content": json.dumps(
                            {"teamLeadership": "Open-source maintainers", "riskFactors": ["regulation"], "confidence": 72}
                        ),
                        "results": [{"title": "Whitepaper", "url": "https://example.org/wp", "score": 0.9, "citation_index": 1}],
                    },
                },
            )

        return httpx.Response(404, json={"error": "not found"})

    def _collection_status(self) -> httpx.Response:
        self._collection_polls += 1
        if self._collection_polls <= self.status_failures:
            return httpx.Response(503, json={"error": "database busy"})
        idx = min(self._collection_polls - self.status_failures - 1, len(self.collection_script) - 1)
        available = self.collection_script[idx]
        total = len(self.sources)
        data_sources = [
            {
                "name": name,
                "type": "market",
                "available": i < available,
                "cached": False,
                "quality": 90 if i < available else None,
            }
            for i, name in enumerate(self.sources)
        ]
        return httpx.Response(
            200,
            json={
                "status": "complete" if available >= total else "collecting",
                "dataSources": data_sources,
                "message": f"{available}/{total} sources",
            },
        )

    def _summary_status(self) -> httpx.Response:
        self._summary_polls += 1
        status = self.summary_script[min(self._summary_polls - 1, len(self.summary_script) - 1)]
        if status == "completed":
            return httpx.Response(
                200,
                json={"status": "completed", "result": json.dumps({"summary": "Bullish momentum", "confidence": 80})},
            )
        if status == "failed":
            return httpx.Response(200, json={"status": "failed", "error": "model overloaded"})
        return httpx.Response(200, json={"status": "processing", "stage": status if status != "processing" else None})


def build_settings(
    *,
    collection: Optional[Dict] = None,
    summary: Optional[Dict] = None,
    research: Optional[Dict] = None,
) -> Settings:
    return Settings(
        collection=CollectionPollSettings(**{"interval_s": 2.0, "max_attempts": 10, "initial_delay_s": 0.0, **(collection or {})}),
        summary=SummaryPollSettings(**{"interval_s": 5.0, "max_attempts": 36, "initial_delay_s": 0.0, **(summary or {})}),
        research=ResearchPollSettings(**{"interval_s": 60.0, "max_attempts": 10, "initial_delay_s": 0.0, **(research or {})}),
        cache=CacheSettings(),
    )


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def make_backend():
    return FakeUCIEBackend


@pytest.fixture
def make_settings():
    return build_settings


@pytest.fixture
def make_orchestrator(clock: VirtualClock):
    """Factory building an orchestrator wired to a fake backend and the virtual clock."""

    def _make(backend: FakeUCIEBackend, *, virtual: bool = True, cache: Optional[ResultCache] = None, **settings) -> AnalysisOrchestrator:
        return AnalysisOrchestrator(
            client=backend.client(),
            cache=cache or ResultCache(clock=clock),
            settings=build_settings(**settings),
            sleep=clock.sleep if virtual else None,
            clock=clock if virtual else None,
        )

    return _make
