"""Cooperative cancellation token shared by one session's poll loops."""

from __future__ import annotations

import asyncio
from typing import Optional


class CancellationToken:
    """One-shot cancellation flag checked at every suspension point."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "cancellation requested") -> bool:
        """Set the flag. Returns False when it was already set."""
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        return True

    async def sleep(self, delay: float) -> bool:
        """Sleep up to ``delay`` seconds. Returns True when woken by cancellation."""
        if delay <= 0:
            await asyncio.sleep(0)
            return self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return self.cancelled
        return True
