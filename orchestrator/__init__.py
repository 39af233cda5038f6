"""Analysis orchestration primitives.

``orchestrator.service`` (the session manager) is imported explicitly by
callers; it depends on ``jobs``, which in turn builds on these primitives.
"""

from .aggregator import PhaseAggregator, aggregate, parse_sources
from .cancellation import CancellationToken
from .poller import Poller, poll_percentage
from .session import AnalysisSession, user_message

__all__ = [
    "AnalysisSession",
    "CancellationToken",
    "PhaseAggregator",
    "Poller",
    "aggregate",
    "parse_sources",
    "poll_percentage",
    "user_message",
]
