"""Analysis session state machine sequencing remote job phases."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence

from core import (
    AnalysisResult,
    CollectionProgress,
    DataSourceStatus,
    ErrorKind,
    JobHandle,
    PollOutcome,
    PollUpdate,
    SessionSnapshot,
    SessionStatus,
    normalize_subject,
)
from storage.cache import ResultCache
from utils.exceptions import PollTimeout, RemoteFailure, UCIEError

from .cancellation import CancellationToken
from .poller import SleepFn

if TYPE_CHECKING:
    from jobs.base import BaseJobKind


logger = logging.getLogger(__name__)

JobsFactory = Callable[[bool], Sequence["BaseJobKind"]]
Listener = Callable[[SessionSnapshot], None]

CANCELLED_MESSAGE = "Analysis cancelled"


def user_message(exc: Exception) -> str:
    """Human-readable text for the single UI-facing error state."""
    if isinstance(exc, PollTimeout):
        return (
            f"Analysis timed out after {exc.attempts} status checks. "
            "Please try again or reduce the analysis scope."
        )
    if isinstance(exc, UCIEError):
        return exc.message
    return f"Analysis failed: {exc}"


class AnalysisSession:
    """One subject's analysis lifecycle.

    ``start()`` checks the result cache, then runs the configured job kinds in
    order on the event loop. ``cancel()`` tears down the run and the elapsed
    ticker before returning, so nothing attributable to this session touches
    the network afterwards. ``reset()`` discards every handle so the next
    ``start()`` triggers brand-new jobs.
    """

    def __init__(
        self,
        subject: str,
        *,
        jobs_factory: JobsFactory,
        cache: ResultCache,
        include_research: bool = False,
        sleep: Optional[SleepFn] = None,
        clock: Optional[Callable[[], float]] = None,
        tick_interval_s: float = 1.0,
    ) -> None:
        self.subject = normalize_subject(subject)
        self.include_research = bool(include_research)
        self._jobs_factory = jobs_factory
        self._cache = cache
        self._sleep = sleep
        self._clock = clock or time.monotonic
        self._tick_interval_s = float(tick_interval_s)

        self._token = CancellationToken()
        self._run_task: Optional[asyncio.Task] = None
        self._ticker_task: Optional[asyncio.Task] = None
        self._listeners: List[Listener] = []
        self._clear()

    def _clear(self) -> None:
        self._status = SessionStatus.IDLE
        self._handles: List[JobHandle] = []
        self._phase: Optional[str] = None
        self._phase_index = 0
        self._phase_count = 1
        self._progress = 0
        self._stage = ""
        self._message = ""
        self._started_at: Optional[float] = None
        self._elapsed = 0
        self._result: Optional[AnalysisResult] = None
        self._error: Optional[str] = None
        self._error_kind: Optional[ErrorKind] = None
        self._collection = CollectionProgress()
        self._sources: List[DataSourceStatus] = []
        self._from_cache = False

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def result(self) -> Optional[AnalysisResult]:
        return self._result.model_copy(deep=True) if self._result is not None else None

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self._error_kind

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def elapsed_time(self) -> int:
        return self._elapsed

    @property
    def handles(self) -> List[JobHandle]:
        return list(self._handles)

    @property
    def job_id(self) -> Optional[str]:
        return self._handles[-1].job_id if self._handles else None

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            subject=self.subject,
            status=self._status,
            progress=self._progress,
            stage=self._stage,
            message=self._message,
            elapsed_time=self._elapsed,
            phase=self._phase,
            job_id=self.job_id,
            result=self.result if self._status == SessionStatus.COMPLETED else None,
            error=self._error if self._status == SessionStatus.ERROR else None,
            error_kind=self._error_kind,
            data_collection=self._collection.model_copy(),
            data_sources=[item.model_copy() for item in self._sources],
            from_cache=self._from_cache,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def start(self, *, include_research: Optional[bool] = None) -> bool:
        """Begin analysis.

        Ignored (returns False) while a run is active. From a terminal state
        the session is reset first, so a retry always creates new jobs.
        """
        if self._status.is_active:
            logger.info("start_ignored subject=%s status=%s", self.subject, self._status.value)
            return False
        if self._status.is_terminal:
            self.reset()
        if include_research is not None:
            self.include_research = bool(include_research)

        cached = self._cache.get(self.subject)
        if cached is not None:
            self._result = cached.value
            self._from_cache = True
            self._progress = 100
            self._message = "Loaded cached analysis"
            self._status = SessionStatus.COMPLETED
            logger.info("session_cache_hit subject=%s", self.subject)
            self._notify()
            return True

        loop = asyncio.get_running_loop()
        self._token = CancellationToken()
        self._started_at = self._clock()
        self._elapsed = 0
        self._status = SessionStatus.STARTING
        self._message = "Initializing..."
        logger.info("session_start subject=%s research=%s", self.subject, self.include_research)
        self._notify()

        self._run_task = loop.create_task(self._run(self._token), name=f"ucie-session-{self.subject}")
        self._ticker_task = loop.create_task(self._tick(self._token), name=f"ucie-ticker-{self.subject}")
        return True

    def cancel(self) -> bool:
        """Cancel an active session. Returns False when nothing was running."""
        if not self._status.is_active:
            return False
        self._token.cancel()
        self._teardown()
        self._error_kind = ErrorKind.CANCELLED
        self._finish(SessionStatus.CANCELLED, message=CANCELLED_MESSAGE)
        logger.info("session_cancelled subject=%s job_id=%s", self.subject, self.job_id)
        return True

    def reset(self) -> None:
        """Return to idle, discarding handles, result and error."""
        if self._status.is_active:
            self.cancel()
        self._teardown()
        self._clear()
        self._token = CancellationToken()
        self._run_task = None
        self._ticker_task = None
        self._notify()

    async def wait(self) -> SessionSnapshot:
        """Wait for the current run to settle and return the final snapshot."""
        task = self._run_task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self.snapshot()

    async def _run(self, token: CancellationToken) -> None:
        jobs = list(self._jobs_factory(self.include_research))
        self._phase_count = max(1, len(jobs))
        context: Dict[str, Any] = {}
        try:
            for index, job in enumerate(jobs):
                self._phase_index = index
                self._phase = job.name
                if self._status != SessionStatus.STARTING:
                    self._set_status(job.session_status)

                handle = await job.trigger(self.subject, context)
                if token.cancelled:
                    return
                self._handles.append(handle)
                self._set_status(job.session_status)

                outcome = await job.poll(handle, token=token, on_progress=self._on_progress, sleep=self._sleep)
                if outcome.outcome == PollOutcome.CANCELLED or token.cancelled:
                    return
                if outcome.outcome == PollOutcome.TIMED_OUT:
                    raise PollTimeout(
                        f"{job.name} timed out",
                        attempts=outcome.attempts,
                        job_id=handle.job_id,
                    )
                if outcome.outcome == PollOutcome.FAILED:
                    raise RemoteFailure(outcome.reason or "Analysis failed on server", details={"job_id": handle.job_id})
                context[job.result_key] = outcome.result

            result = AnalysisResult(
                subject=self.subject,
                collected=dict(context.get("collected") or {}),
                summary=dict(context.get("summary") or {}),
                research=context.get("research"),
            )
            # cache first so any read after this point sees the fresh value
            self._cache.put(self.subject, result)
            self._result = result
            self._progress = 100
            self._teardown_ticker()
            self._finish(SessionStatus.COMPLETED, message="Analysis complete!")
            logger.info("session_completed subject=%s elapsed=%ss", self.subject, self._elapsed)
        except asyncio.CancelledError:
            raise
        except UCIEError as exc:
            if token.cancelled:
                return
            self._fail(exc.kind, exc)
        except Exception as exc:
            if token.cancelled:
                return
            logger.exception("session_unexpected_error subject=%s", self.subject)
            self._fail(ErrorKind.NETWORK, exc)

    async def _tick(self, token: CancellationToken) -> None:
        while not token.cancelled and self._status.is_active:
            await asyncio.sleep(self._tick_interval_s)
            if token.cancelled or not self._status.is_active:
                return
            self._elapsed = self._measure_elapsed()
            self._notify()

    def _on_progress(self, update: PollUpdate) -> None:
        if self._token.cancelled or not self._status.is_active:
            return
        reading = update.reading
        overall = (self._phase_index * 100 + update.percentage) // self._phase_count
        self._progress = max(self._progress, min(100, overall))
        if reading.stage is not None:
            self._stage = reading.stage.label
        if reading.message:
            self._message = reading.message
        if reading.collection is not None:
            self._collection = reading.collection
        if reading.data_sources:
            self._sources = list(reading.data_sources)
        self._notify()

    def _set_status(self, status: SessionStatus) -> None:
        if self._status == status:
            return
        logger.info("session_transition subject=%s %s->%s", self.subject, self._status.value, status.value)
        self._status = status
        self._notify()

    def _fail(self, kind: ErrorKind, exc: Exception) -> None:
        self._teardown_ticker()
        self._error = user_message(exc)
        self._error_kind = kind
        logger.warning(
            "session_failed subject=%s kind=%s phase=%s job_id=%s error=%s",
            self.subject,
            kind.value,
            self._phase,
            self.job_id,
            exc,
        )
        self._finish(SessionStatus.ERROR, message=self._error)

    def _finish(self, status: SessionStatus, *, message: str) -> None:
        if self._started_at is not None:
            self._elapsed = self._measure_elapsed()
        self._status = status
        self._message = message
        self._notify()

    def _measure_elapsed(self) -> int:
        if self._started_at is None:
            return 0
        return max(self._elapsed, int(self._clock() - self._started_at))

    def _teardown(self) -> None:
        self._teardown_ticker()
        task = self._run_task
        if task is not None and not task.done():
            task.cancel()

    def _teardown_ticker(self) -> None:
        ticker = self._ticker_task
        if ticker is not None and not ticker.done() and ticker is not asyncio.current_task():
            ticker.cancel()

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("session_listener_failed subject=%s", self.subject)
