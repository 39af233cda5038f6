"""Orchestrator service layer: one analysis session per subject."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence

from config import Settings, get_settings
from core import SessionSnapshot, normalize_subject
from jobs import AISummaryJob, BaseJobKind, CaesarResearchJob, DataCollectionJob, UCIEClient, require_subject
from storage.cache import ResultCache

from .poller import SleepFn
from .session import AnalysisSession


logger = logging.getLogger(__name__)


class AnalysisOrchestrator:
    """Creates and tracks analysis sessions, sharing one client and one cache.

    At most one session exists per subject, so a second ``start()`` for a
    subject that is already running is ignored instead of creating another
    remote job.
    """

    def __init__(
        self,
        *,
        client: Optional[UCIEClient] = None,
        cache: Optional[ResultCache] = None,
        settings: Optional[Settings] = None,
        sleep: Optional[SleepFn] = None,
        clock: Optional[Callable[[], float]] = None,
        jobs_factory: Optional[Callable[[bool], Sequence[BaseJobKind]]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self._cache = cache or ResultCache(
            ttl=self._settings.cache.ttl_s,
            max_size=self._settings.cache.max_size,
        )
        self._sleep = sleep
        self._clock = clock
        self._jobs_factory = jobs_factory or self.build_jobs
        self._sessions: Dict[str, AnalysisSession] = {}
        self._active_subject: Optional[str] = None

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def client(self) -> UCIEClient:
        if self._client is None:
            self._client = UCIEClient(
                self._settings.api.base_url,
                timeout_s=self._settings.api.request_timeout,
            )
        return self._client

    @property
    def active_subject(self) -> Optional[str]:
        return self._active_subject

    def build_jobs(self, include_research: bool = False) -> List[BaseJobKind]:
        """Fresh job kinds for one run, in execution order."""
        client = self.client
        jobs: List[BaseJobKind] = [
            DataCollectionJob(client, self._settings.collection.to_options()),
            AISummaryJob(client, self._settings.summary.to_options()),
        ]
        if include_research:
            jobs.append(
                CaesarResearchJob(
                    client,
                    self._settings.research.to_options(),
                    compute_units=self._settings.research.compute_units,
                )
            )
        return jobs

    def session(self, subject: str) -> AnalysisSession:
        """Return the session for ``subject``, creating it when missing."""
        key = require_subject(subject)
        session = self._sessions.get(key)
        if session is None:
            session = AnalysisSession(
                key,
                jobs_factory=self._jobs_factory,
                cache=self._cache,
                sleep=self._sleep,
                clock=self._clock,
            )
            self._sessions[key] = session
        return session

    def get_session(self, subject: str) -> Optional[AnalysisSession]:
        return self._sessions.get(normalize_subject(subject))

    def open(self, subject: str) -> AnalysisSession:
        """Switch the active subject, tearing down the previous subject's session first."""
        key = require_subject(subject)
        previous = self._active_subject
        if previous and previous != key:
            old = self._sessions.pop(previous, None)
            if old is not None and old.cancel():
                logger.info("session_switched from=%s to=%s", previous, key)
        self._active_subject = key
        return self.session(key)

    def start(self, subject: str, *, include_research: bool = False) -> SessionSnapshot:
        session = self.session(subject)
        session.start(include_research=include_research)
        return session.snapshot()

    def status(self, subject: str) -> Optional[SessionSnapshot]:
        session = self.get_session(subject)
        return session.snapshot() if session else None

    def cancel(self, subject: str) -> bool:
        session = self.get_session(subject)
        if session is None:
            return False
        return session.cancel()

    def reset(self, subject: str) -> Optional[SessionSnapshot]:
        session = self.get_session(subject)
        if session is None:
            return None
        session.reset()
        return session.snapshot()

    def list_sessions(self) -> List[SessionSnapshot]:
        return [item.snapshot() for item in self._sessions.values()]

    async def aclose(self) -> None:
        for session in list(self._sessions.values()):
            session.cancel()
        self._sessions.clear()
        self._active_subject = None
        if self._client is not None:
            await self._client.aclose()
