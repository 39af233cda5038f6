"""Core contracts and shared types for UCIE orchestration."""

from .contracts import (
    AnalysisResult,
    CacheEntry,
    CollectionProgress,
    DataSourceStatus,
    ErrorKind,
    JobHandle,
    PollOptions,
    PollOutcome,
    PollResult,
    PollState,
    PollUpdate,
    RemoteStatus,
    SessionSnapshot,
    SessionStatus,
    Stage,
    StageTrack,
    StatusReading,
    is_valid_subject,
    normalize_subject,
)

__all__ = [
    "AnalysisResult",
    "CacheEntry",
    "CollectionProgress",
    "DataSourceStatus",
    "ErrorKind",
    "JobHandle",
    "PollOptions",
    "PollOutcome",
    "PollResult",
    "PollState",
    "PollUpdate",
    "RemoteStatus",
    "SessionSnapshot",
    "SessionStatus",
    "Stage",
    "StageTrack",
    "StatusReading",
    "is_valid_subject",
    "normalize_subject",
]
