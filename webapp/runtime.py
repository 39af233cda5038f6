"""Shared runtime instances for web/CLI entrypoints."""

from __future__ import annotations

from typing import Optional

from config import get_settings
from orchestrator.service import AnalysisOrchestrator
from storage.cache import ResultCache


_ORCHESTRATOR: Optional[AnalysisOrchestrator] = None


def get_orchestrator() -> AnalysisOrchestrator:
    """Process-wide orchestrator with one result cache, created on first use."""
    global _ORCHESTRATOR
    if _ORCHESTRATOR is None:
        settings = get_settings()
        cache = ResultCache(ttl=settings.cache.ttl_s, max_size=settings.cache.max_size)
        _ORCHESTRATOR = AnalysisOrchestrator(cache=cache, settings=settings)
    return _ORCHESTRATOR


async def shutdown_orchestrator() -> None:
    global _ORCHESTRATOR
    if _ORCHESTRATOR is not None:
        await _ORCHESTRATOR.aclose()
        _ORCHESTRATOR = None
