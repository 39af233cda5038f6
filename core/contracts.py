"""Canonical data contracts for UCIE analysis orchestration."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
import re
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator


_SUBJECT_RE = re.compile(r"^[A-Za-z0-9]{1,10}$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_valid_subject(value: Any) -> bool:
    return bool(_SUBJECT_RE.match(str(value or "").strip()))


def normalize_subject(value: Any) -> str:
    """Case-fold a subject identifier (ticker) into its canonical key."""
    return str(value or "").strip().upper()


class SessionStatus(str, Enum):
    """Analysis session lifecycle states."""

    IDLE = "idle"
    STARTING = "starting"
    COLLECTING = "collecting"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self in _ACTIVE_STATUSES


_TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.ERROR, SessionStatus.CANCELLED})
_ACTIVE_STATUSES = frozenset({SessionStatus.STARTING, SessionStatus.COLLECTING, SessionStatus.ANALYZING})


class RemoteStatus(str, Enum):
    """Normalized status reported by a remote job."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PollOutcome(str, Enum):
    """Terminal result kinds of one poll loop."""

    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class ErrorKind(str, Enum):
    """Internal failure taxonomy kept for logs and diagnostics."""

    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    TRIGGER = "trigger"
    TRANSIENT = "transient"
    REMOTE_FAILURE = "remote_failure"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    NETWORK = "network"


class Stage(BaseModel):
    """One named step of a remote job with its fixed progress weight."""

    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    percentage: int = Field(ge=0, le=100)


class StageTrack(BaseModel):
    """Ordered stage enumeration; weights must be non-decreasing."""

    model_config = ConfigDict(frozen=True)

    stages: List[Stage] = Field(default_factory=list)

    @field_validator("stages")
    @classmethod
    def _non_decreasing(cls, value: List[Stage]) -> List[Stage]:
        last = 0
        for stage in value:
            if stage.percentage < last:
                raise ValueError(f"stage weights must be non-decreasing: {stage.key}")
            last = stage.percentage
        return value

    @classmethod
    def of(cls, *items: Sequence[Any]) -> "StageTrack":
        return cls(stages=[Stage(key=key, label=label, percentage=pct) for key, label, pct in items])

    def resolve(self, marker: Any) -> Optional[Stage]:
        """Resolve a remote stage marker by exact key or by zero-based index."""
        if marker is None or isinstance(marker, bool):
            return None
        if isinstance(marker, int):
            if 0 <= marker < len(self.stages):
                return self.stages[marker]
            return None
        key = str(marker).strip().lower()
        if key.isdigit():
            return self.resolve(int(key))
        for stage in self.stages:
            if stage.key == key:
                return stage
        return None

    def index_of(self, stage: Optional[Stage]) -> int:
        if stage is None:
            return -1
        for idx, item in enumerate(self.stages):
            if item.key == stage.key:
                return idx
        return -1


class JobHandle(BaseModel):
    """Immutable pointer to one remote asynchronous job."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    kind: str
    subject: str
    status_endpoint: str
    result_endpoint: str
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("job_id", "kind", "subject", mode="before")
    @classmethod
    def _non_empty_text(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("value is required")
        return text


class PollOptions(BaseModel):
    """Interval and attempt budget for one poll loop."""

    interval_s: float = Field(default=5.0, ge=0.0)
    max_attempts: int = Field(default=36, ge=1)
    initial_delay_s: float = Field(default=0.0, ge=0.0)

    @property
    def max_wait_s(self) -> float:
        return self.initial_delay_s + self.interval_s * max(0, self.max_attempts - 1)


class PollState(BaseModel):
    """Mutable bookkeeping owned by exactly one poll loop."""

    attempts: int = 0
    max_attempts: int
    started_at: Optional[datetime] = None
    last_status: RemoteStatus = RemoteStatus.PROCESSING
    percentage: int = 0
    stage: Optional[Stage] = None


class DataSourceStatus(BaseModel):
    """Availability of one external data source during collection."""

    name: str
    type: str = ""
    available: bool = False
    cached: bool = False
    quality: Optional[float] = None
    timestamp: Optional[str] = None

    @field_validator("quality", mode="before")
    @classmethod
    def _clamp_quality(cls, value: Any) -> Optional[float]:
        if value is None or value == "":
            return None
        return max(0.0, min(100.0, float(value)))


class CollectionProgress(BaseModel):
    """Aggregated data-collection figure."""

    percentage: int = 0
    completed: int = 0
    total: int = 0


class StatusReading(BaseModel):
    """One parsed status payload, interpreted by a job kind."""

    status: RemoteStatus = RemoteStatus.PROCESSING
    stage: Optional[Stage] = None
    message: str = ""
    error: Optional[str] = None
    data_sources: List[DataSourceStatus] = Field(default_factory=list)
    collection: Optional[CollectionProgress] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


class PollUpdate(BaseModel):
    """Progress notification emitted for every parsed status payload."""

    handle: JobHandle
    attempt: int
    max_attempts: int
    percentage: int
    reading: StatusReading


class PollResult(BaseModel):
    """Terminal outcome of one poll loop."""

    outcome: PollOutcome
    attempts: int
    result: Any = None
    reason: Optional[str] = None
    last_reading: Optional[StatusReading] = None

    @property
    def ok(self) -> bool:
        return self.outcome == PollOutcome.COMPLETED


class AnalysisResult(BaseModel):
    """Final aggregated analysis handed to the rendering layer."""

    model_config = ConfigDict(frozen=True)

    subject: str
    collected: Dict[str, Any] = Field(default_factory=dict)
    summary: Dict[str, Any] = Field(default_factory=dict)
    research: Optional[Dict[str, Any]] = None
    completed_at: datetime = Field(default_factory=_utcnow)


class CacheEntry(BaseModel):
    """Cached value for one subject."""

    subject: str
    value: Any = None
    stored_at: float


class SessionSnapshot(BaseModel):
    """Observable session state consumed by rendering panels."""

    subject: str
    status: SessionStatus = SessionStatus.IDLE
    progress: int = 0
    stage: str = ""
    message: str = ""
    elapsed_time: int = 0
    phase: Optional[str] = None
    job_id: Optional[str] = None
    result: Optional[AnalysisResult] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    data_collection: CollectionProgress = Field(default_factory=CollectionProgress)
    data_sources: List[DataSourceStatus] = Field(default_factory=list)
    from_cache: bool = False
