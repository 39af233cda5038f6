"""Job kind abstraction: one ``{trigger, poll}`` interface with variants."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from core import (
    JobHandle,
    PollOptions,
    PollResult,
    RemoteStatus,
    SessionStatus,
    StageTrack,
    StatusReading,
    is_valid_subject,
    normalize_subject,
)
from orchestrator.cancellation import CancellationToken
from orchestrator.poller import Poller, ProgressFn, SleepFn
from utils.exceptions import ValidationError

from .client import UCIEClient, decode_result


_PROCESSING = {"queued", "pending", "processing", "running", "researching", "initializing", "collecting", "analyzing"}
_COMPLETED = {"completed", "complete", "done", "success", "succeeded"}
_FAILED = {"failed", "error", "cancelled", "canceled", "expired"}


def normalize_remote_status(value: Any) -> RemoteStatus:
    """Map a free-form remote status onto the three-valued remote status."""
    text = str(value or "").strip().lower()
    if text in _COMPLETED:
        return RemoteStatus.COMPLETED
    if text in _FAILED:
        return RemoteStatus.FAILED
    return RemoteStatus.PROCESSING


def require_subject(subject: Any) -> str:
    """Validate and normalize a subject before any network call."""
    if not is_valid_subject(subject):
        raise ValidationError(
            "Subject must be 1-10 alphanumeric characters",
            details={"subject": str(subject or "")[:32]},
        )
    return normalize_subject(subject)


class BaseJobKind:
    """Base job kind; subclasses bind routes, stages and result parsing."""

    name = "base"
    result_key = "base"
    session_status = SessionStatus.ANALYZING
    stages = StageTrack()

    def __init__(self, client: UCIEClient, options: Optional[PollOptions] = None) -> None:
        self._client = client
        self.options = options or PollOptions()

    async def trigger(self, subject: str, context: Mapping[str, Any]) -> JobHandle:
        raise NotImplementedError

    async def poll(
        self,
        handle: JobHandle,
        *,
        token: CancellationToken,
        on_progress: Optional[ProgressFn] = None,
        sleep: Optional[SleepFn] = None,
    ) -> PollResult:
        poller = Poller(self, self.options, sleep=sleep)
        return await poller.poll(handle, token=token, on_progress=on_progress)

    async def query_status(self, handle: JobHandle) -> Dict[str, Any]:
        return await self._client.get_status(handle.status_endpoint)

    def interpret(self, payload: Mapping[str, Any]) -> StatusReading:
        status = normalize_remote_status(payload.get("status"))
        stage = self.stages.resolve(payload.get("stage"))
        if stage is None:
            stage = self.stages.resolve(payload.get("status"))
        error = payload.get("error")
        return StatusReading(
            status=status,
            stage=stage,
            message=str(payload.get("message") or payload.get("progress") or "").strip(),
            error=str(error).strip() if error else None,
            payload=dict(payload),
        )

    async def fetch_result(self, handle: JobHandle, reading: StatusReading) -> Dict[str, Any]:
        return decode_result(reading.payload.get("result"))
