"""Caesar deep research job seeded with collected market context."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

from core import JobHandle, PollOptions, SessionStatus, StageTrack, StatusReading
from utils.exceptions import TriggerError

from .base import BaseJobKind, require_subject
from .client import UCIEClient, decode_result


logger = logging.getLogger(__name__)

RESEARCH_STAGES = StageTrack.of(
    ("queued", "Research queued", 10),
    ("pending", "Research pending", 20),
    ("researching", "Researching sources", 50),
    ("completed", "Research complete", 100),
)

_TEXT_DEFAULTS = {
    "technologyOverview": "No technology overview available",
    "teamLeadership": "No team information available",
    "partnerships": "No partnership information available",
    "marketPosition": "No market position data available",
    "recentDevelopments": "No recent developments available",
}


def parse_research(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Normalize a completed research payload into the panel-facing shape.

    ``transformed_content`` carries the structured JSON answer when the model
    followed the system prompt; otherwise the raw ``content`` is kept and the
    text fields fall back to placeholders.
    """
    structured: Dict[str, Any] = {}
    transformed = payload.get("transformed_content")
    if isinstance(transformed, dict):
        structured = dict(transformed)
    elif isinstance(transformed, str) and transformed.strip():
        try:
            loaded = json.loads(transformed)
            if isinstance(loaded, dict):
                structured = loaded
        except ValueError:
            logger.warning("research_transformed_content_not_json")

    sources: List[Dict[str, Any]] = []
    for item in list(payload.get("results") or payload.get("sources") or []):
        if not isinstance(item, Mapping):
            continue
        sources.append(
            {
                "title": str(item.get("title") or ""),
                "url": str(item.get("url") or ""),
                "relevance": float(item.get("score") or item.get("relevance") or 0.0),
                "citationIndex": int(item.get("citation_index") or item.get("citationIndex") or 0),
            }
        )

    raw_content = payload.get("content")
    research: Dict[str, Any] = {}
    for key, fallback in _TEXT_DEFAULTS.items():
        research[key] = structured.get(key) or payload.get(key) or fallback
    if not structured.get("technologyOverview") and not payload.get("technologyOverview") and raw_content:
        research["technologyOverview"] = raw_content
    research["riskFactors"] = list(structured.get("riskFactors") or payload.get("riskFactors") or [])
    research["sources"] = sources
    research["confidence"] = float(structured.get("confidence") or payload.get("confidence") or 0)
    research["rawContent"] = raw_content or None
    return research


class CaesarResearchJob(BaseJobKind):
    """Deep research job; slow, so it is opt-in per session."""

    name = "caesar_research"
    result_key = "research"
    session_status = SessionStatus.ANALYZING
    stages = RESEARCH_STAGES

    def __init__(self, client: UCIEClient, options: Optional[PollOptions] = None, *, compute_units: int = 5) -> None:
        super().__init__(client, options)
        self.compute_units = max(1, min(10, int(compute_units)))

    async def trigger(self, subject: str, context: Mapping[str, Any]) -> JobHandle:
        symbol = require_subject(subject)
        ack = await self._client.trigger(
            "POST",
            f"/api/ucie/research/{symbol}",
            job_kind=self.name,
            payload={"computeUnits": self.compute_units, "context": dict(context.get("collected") or {})},
        )
        job_id = str(ack.get("jobId") or "").strip()
        if ack.get("success") is False or not job_id:
            raise TriggerError(
                str(ack.get("error") or "Failed to initiate research"),
                job_kind=self.name,
            )
        logger.info("research_triggered subject=%s job_id=%s compute_units=%s", symbol, job_id, self.compute_units)
        endpoint = f"/api/ucie/research/{symbol}?jobId={quote(job_id, safe='')}"
        return JobHandle(
            job_id=job_id,
            kind=self.name,
            subject=symbol,
            status_endpoint=endpoint,
            result_endpoint=endpoint,
        )

    async def fetch_result(self, handle: JobHandle, reading: StatusReading) -> Dict[str, Any]:
        result = reading.payload.get("result")
        if result is None and reading.payload.get("content") is not None:
            return parse_research(reading.payload)
        return parse_research(decode_result(result))
