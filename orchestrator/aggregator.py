"""Data-collection progress aggregation across independent sources."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from core import CollectionProgress, DataSourceStatus
from utils.exceptions import ConfigurationError


def aggregate(sources: Sequence[DataSourceStatus]) -> CollectionProgress:
    """Fold source statuses into ``{percentage, completed, total}``.

    Quality is advisory: an available source counts as complete even when its
    quality score is missing. Rounds half up, so 1 of 8 sources reads as 13%.
    """
    total = len(sources)
    if total == 0:
        raise ConfigurationError("cannot aggregate an empty data source list")
    completed = sum(1 for source in sources if source.available)
    percentage = (200 * completed + total) // (2 * total)
    return CollectionProgress(percentage=percentage, completed=completed, total=total)


def parse_sources(raw: Iterable[Any]) -> List[DataSourceStatus]:
    """Parse a remote ``dataSources`` array, skipping entries without a name."""
    parsed: List[DataSourceStatus] = []
    for item in list(raw or []):
        if isinstance(item, DataSourceStatus):
            parsed.append(item)
            continue
        if not isinstance(item, Mapping):
            continue
        name = str(item.get("name") or "").strip()
        if not name:
            continue
        parsed.append(
            DataSourceStatus(
                name=name,
                type=str(item.get("type") or "").strip(),
                available=bool(item.get("available")),
                cached=bool(item.get("cached")),
                quality=item.get("quality"),
                timestamp=item.get("timestamp"),
            )
        )
    return parsed


class PhaseAggregator:
    """Per-session checklist that only ever moves sources toward available.

    Remote snapshots may arrive with sources missing or momentarily reported
    unavailable again; merged state keeps every source seen and latches
    ``available`` so the exposed percentage never decreases.
    """

    def __init__(self, expected: Optional[Sequence[DataSourceStatus]] = None) -> None:
        self._sources: Dict[str, DataSourceStatus] = {}
        self._peak = 0
        for source in list(expected or []):
            self._sources[source.name] = source.model_copy()

    def merge(self, snapshot: Sequence[DataSourceStatus]) -> List[DataSourceStatus]:
        for incoming in snapshot:
            current = self._sources.get(incoming.name)
            if current is None:
                self._sources[incoming.name] = self._admit(incoming)
                continue
            if current.available:
                continue
            if incoming.available:
                self._sources[incoming.name] = current.model_copy(
                    update={
                        "type": current.type or incoming.type,
                        "available": True,
                        "cached": incoming.cached,
                        "quality": incoming.quality,
                        "timestamp": incoming.timestamp,
                    }
                )
        return self.sources

    @property
    def sources(self) -> List[DataSourceStatus]:
        return [item.model_copy() for item in self._sources.values()]

    def progress(self) -> Optional[CollectionProgress]:
        """Current figure, or None while no source is known yet.

        A source first reported mid-session grows ``total``; the percentage
        holds at its previous peak until the checklist catches up.
        """
        if not self._sources:
            return None
        current = aggregate(list(self._sources.values()))
        self._peak = max(self._peak, current.percentage)
        return current.model_copy(update={"percentage": self._peak})

    def reset(self) -> None:
        self._sources.clear()
        self._peak = 0

    @staticmethod
    def _admit(source: DataSourceStatus) -> DataSourceStatus:
        if source.available:
            return source.model_copy()
        # quality is only meaningful once the source is available
        return source.model_copy(update={"quality": None})
