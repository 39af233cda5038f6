"""Attempt-bounded status polling for one remote job."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from core import (
    JobHandle,
    PollOptions,
    PollOutcome,
    PollResult,
    PollState,
    PollUpdate,
    RemoteStatus,
    Stage,
    StatusReading,
)
from utils.exceptions import RemoteFailure, TransientPollError

from .cancellation import CancellationToken

if TYPE_CHECKING:
    from jobs.base import BaseJobKind


logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]
ProgressFn = Callable[[PollUpdate], None]

# processing never reports more than this; 100 is reserved for completion
_PROCESSING_CAP = 99
_ATTEMPT_WEIGHT = 95


def poll_percentage(
    previous: int,
    attempts: int,
    max_attempts: int,
    stage: Optional[Stage] = None,
    remote_percentage: Optional[int] = None,
) -> int:
    """Non-decreasing progress estimate from attempt budget and remote stage."""
    candidates = [int(previous), (_ATTEMPT_WEIGHT * int(attempts)) // max(1, int(max_attempts))]
    if stage is not None:
        candidates.append(stage.percentage)
    if remote_percentage is not None:
        candidates.append(int(remote_percentage))
    return max(int(previous), min(_PROCESSING_CAP, max(candidates)))


class Poller:
    """Sequential status poller with cooperative cancellation.

    One query is issued at a time; a new query is never sent before the
    previous response has been processed. Transient query failures still use
    up an attempt so persistent network trouble ends in ``timed_out``.
    """

    def __init__(self, job: "BaseJobKind", options: PollOptions, *, sleep: Optional[SleepFn] = None) -> None:
        self._job = job
        self._options = options
        self._sleep = sleep

    async def poll(
        self,
        handle: JobHandle,
        *,
        token: CancellationToken,
        on_progress: Optional[ProgressFn] = None,
    ) -> PollResult:
        options = self._options
        state = PollState(max_attempts=options.max_attempts)
        last_reading: Optional[StatusReading] = None

        if options.initial_delay_s > 0 and await self._pause(options.initial_delay_s, token):
            return self._cancelled(handle, state, last_reading)

        while True:
            if token.cancelled:
                return self._cancelled(handle, state, last_reading)

            state.attempts += 1
            if state.started_at is None:
                state.started_at = datetime.now(timezone.utc)

            reading: Optional[StatusReading] = None
            try:
                payload = await self._job.query_status(handle)
            except TransientPollError as exc:
                logger.warning(
                    "poll_transient kind=%s job_id=%s attempt=%s/%s error=%s",
                    handle.kind,
                    handle.job_id,
                    state.attempts,
                    options.max_attempts,
                    exc,
                )
            else:
                if token.cancelled:
                    return self._cancelled(handle, state, last_reading)
                reading = self._job.interpret(payload)

            if reading is not None:
                last_reading = reading
                self._advance(state, reading)
                logger.debug(
                    "poll_status kind=%s job_id=%s attempt=%s/%s status=%s pct=%s",
                    handle.kind,
                    handle.job_id,
                    state.attempts,
                    options.max_attempts,
                    state.last_status.value,
                    state.percentage,
                )
                if on_progress is not None:
                    on_progress(
                        PollUpdate(
                            handle=handle,
                            attempt=state.attempts,
                            max_attempts=options.max_attempts,
                            percentage=state.percentage,
                            reading=reading,
                        )
                    )
                if token.cancelled:
                    return self._cancelled(handle, state, last_reading)

                if state.last_status == RemoteStatus.COMPLETED:
                    return await self._collect(handle, state, reading, token)
                if state.last_status == RemoteStatus.FAILED:
                    reason = reading.error or reading.message or None
                    logger.info("poll_failed kind=%s job_id=%s reason=%s", handle.kind, handle.job_id, reason)
                    return PollResult(
                        outcome=PollOutcome.FAILED,
                        attempts=state.attempts,
                        reason=reason,
                        last_reading=last_reading,
                    )

            if state.attempts >= options.max_attempts:
                logger.info(
                    "poll_timed_out kind=%s job_id=%s attempts=%s",
                    handle.kind,
                    handle.job_id,
                    state.attempts,
                )
                return PollResult(outcome=PollOutcome.TIMED_OUT, attempts=state.attempts, last_reading=last_reading)

            if await self._pause(options.interval_s, token):
                return self._cancelled(handle, state, last_reading)

    def _advance(self, state: PollState, reading: StatusReading) -> None:
        stages = self._job.stages
        if reading.stage is not None and stages.index_of(reading.stage) > stages.index_of(state.stage):
            state.stage = reading.stage
        if reading.status != RemoteStatus.PROCESSING:
            state.last_status = reading.status
        if state.last_status == RemoteStatus.COMPLETED:
            state.percentage = 100
            return
        remote_pct = reading.collection.percentage if reading.collection is not None else None
        state.percentage = poll_percentage(
            state.percentage,
            state.attempts,
            state.max_attempts,
            stage=state.stage,
            remote_percentage=remote_pct,
        )

    async def _collect(
        self,
        handle: JobHandle,
        state: PollState,
        reading: StatusReading,
        token: CancellationToken,
    ) -> PollResult:
        try:
            result = await self._job.fetch_result(handle, reading)
        except RemoteFailure as exc:
            logger.warning("poll_result_failed kind=%s job_id=%s error=%s", handle.kind, handle.job_id, exc)
            return PollResult(
                outcome=PollOutcome.FAILED,
                attempts=state.attempts,
                reason=exc.message,
                last_reading=reading,
            )
        if token.cancelled:
            return self._cancelled(handle, state, reading)
        return PollResult(outcome=PollOutcome.COMPLETED, attempts=state.attempts, result=result, last_reading=reading)

    async def _pause(self, delay: float, token: CancellationToken) -> bool:
        if self._sleep is None:
            return await token.sleep(delay)
        await self._sleep(delay)
        return token.cancelled

    @staticmethod
    def _cancelled(handle: JobHandle, state: PollState, reading: Optional[StatusReading]) -> PollResult:
        logger.info("poll_cancelled kind=%s job_id=%s attempts=%s", handle.kind, handle.job_id, state.attempts)
        return PollResult(outcome=PollOutcome.CANCELLED, attempts=state.attempts, last_reading=reading)
