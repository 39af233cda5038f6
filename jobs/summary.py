"""AI summary job started from collected data."""

from __future__ import annotations

import logging
from typing import Any, Mapping
from urllib.parse import quote

from core import JobHandle, SessionStatus, StageTrack
from utils.exceptions import TriggerError

from .base import BaseJobKind, require_subject


logger = logging.getLogger(__name__)

SUMMARY_STAGES = StageTrack.of(
    ("queued", "Starting analysis", 5),
    ("market_data", "Fetching market data", 20),
    ("technical", "Analyzing technical indicators", 40),
    ("sentiment", "Processing sentiment data", 60),
    ("summary", "Generating comprehensive summary", 80),
    ("finalizing", "Finalizing analysis", 95),
)


class AISummaryJob(BaseJobKind):
    """OpenAI summary job; polls ``openai-summary-poll`` until completed."""

    name = "ai_summary"
    result_key = "summary"
    session_status = SessionStatus.ANALYZING
    stages = SUMMARY_STAGES

    async def trigger(self, subject: str, context: Mapping[str, Any]) -> JobHandle:
        symbol = require_subject(subject)
        ack = await self._client.trigger(
            "POST",
            f"/api/ucie/openai-summary-start/{symbol}",
            job_kind=self.name,
            payload={"symbol": symbol, "collectedData": dict(context.get("collected") or {})},
        )
        job_id = str(ack.get("jobId") or "").strip()
        if ack.get("success") is False or not job_id:
            raise TriggerError(
                str(ack.get("error") or "Invalid response from start endpoint"),
                job_kind=self.name,
            )
        logger.info("summary_triggered subject=%s job_id=%s", symbol, job_id)
        endpoint = f"/api/ucie/openai-summary-poll/{quote(job_id, safe='')}"
        return JobHandle(
            job_id=job_id,
            kind=self.name,
            subject=symbol,
            status_endpoint=endpoint,
            result_endpoint=endpoint,
        )
