"""Data collection job: fan-out fetch of market, sentiment, technical, news and on-chain data."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Dict, Mapping, Optional
from uuid import uuid4

from core import JobHandle, PollOptions, RemoteStatus, SessionStatus, StageTrack, StatusReading
from orchestrator.aggregator import PhaseAggregator, parse_sources

from .base import BaseJobKind, normalize_remote_status, require_subject
from .client import UCIEClient


logger = logging.getLogger(__name__)

COLLECTION_STAGES = StageTrack.of(
    ("initializing", "Initializing data collection", 0),
    ("collecting", "Collecting data sources", 10),
    ("analyzing", "Preparing collected data", 90),
    ("complete", "Data collection complete", 100),
)


def _new_collection_id() -> str:
    return f"collect_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}_{uuid4().hex[:8]}"


class DataCollectionJob(BaseJobKind):
    """Preview-data collection; completes when every source is available."""

    name = "data_collection"
    result_key = "collected"
    session_status = SessionStatus.COLLECTING
    stages = COLLECTION_STAGES

    def __init__(self, client: UCIEClient, options: Optional[PollOptions] = None) -> None:
        super().__init__(client, options)
        self._aggregator = PhaseAggregator()

    @property
    def aggregator(self) -> PhaseAggregator:
        return self._aggregator

    async def trigger(self, subject: str, context: Mapping[str, Any]) -> JobHandle:
        symbol = require_subject(subject)
        ack = await self._client.trigger(
            "GET",
            f"/api/ucie/preview-data/{symbol}",
            job_kind=self.name,
            params={"refresh": "true"},
        )
        self._aggregator.reset()
        # the collection endpoint only acknowledges; mint an id when none comes back
        job_id = str(ack.get("jobId") or ack.get("job_id") or "").strip() or _new_collection_id()
        logger.info("collection_triggered subject=%s job_id=%s", symbol, job_id)
        return JobHandle(
            job_id=job_id,
            kind=self.name,
            subject=symbol,
            status_endpoint=f"/api/ucie/preview-data/{symbol}/status",
            result_endpoint=f"/api/ucie/preview-data/{symbol}",
        )

    def interpret(self, payload: Mapping[str, Any]) -> StatusReading:
        sources = self._aggregator.merge(parse_sources(payload.get("dataSources") or []))
        collection = self._aggregator.progress()

        status = normalize_remote_status(payload.get("status"))
        if collection is not None and collection.percentage >= 100 and status != RemoteStatus.FAILED:
            status = RemoteStatus.COMPLETED

        stage = self.stages.resolve(payload.get("status"))
        if stage is None and collection is not None:
            stage = self.stages.resolve("collecting")

        error = payload.get("error")
        return StatusReading(
            status=status,
            stage=stage,
            message=str(payload.get("message") or "").strip(),
            error=str(error).strip() if error else None,
            data_sources=sources,
            collection=collection,
            payload=dict(payload),
        )

    async def fetch_result(self, handle: JobHandle, reading: StatusReading) -> Dict[str, Any]:
        return await self._client.fetch(handle.result_endpoint)
