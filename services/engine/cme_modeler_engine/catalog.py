from __future__ import annotations

import logging
import threading
from typing import Iterable

from .errors import EventNotFoundError
from .models import CatalogSummary, CmeEvent, CmeFilter
from .utils import stable_hash

logger = logging.getLogger(__name__)


def matches_filter(event: CmeEvent, cme_filter: CmeFilter | str) -> bool:
    cme_filter = CmeFilter(cme_filter)
    if cme_filter == CmeFilter.earthDirected:
        return event.isEarthDirected
    if cme_filter == CmeFilter.notEarthDirected:
        return not event.isEarthDirected
    return True


class CmeCatalog:
    """In-memory CME records for the lifetime of the process, newest first."""

    def __init__(self, events: Iterable[CmeEvent] | None = None):
        self._lock = threading.Lock()
        self._events: dict[str, CmeEvent] = {}
        self._version = 0
        if events is not None:
            self.replace(events)

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def _ordered(self) -> list[CmeEvent]:
        return sorted(self._events.values(), key=lambda item: (item.startTime, item.id), reverse=True)

    def replace(self, events: Iterable[CmeEvent]) -> int:
        fresh = {event.id: event for event in events}
        with self._lock:
            self._events = fresh
            self._version += 1
            version = self._version
        logger.info("Catalog replaced with %d events (version %d)", len(fresh), version)
        return version

    def upsert(self, event: CmeEvent) -> int:
        with self._lock:
            self._events[event.id] = event
            self._version += 1
            return self._version

    def get(self, event_id: str) -> CmeEvent:
        with self._lock:
            event = self._events.get(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    def list(self, cme_filter: CmeFilter | str = CmeFilter.all) -> list[CmeEvent]:
        with self._lock:
            ordered = self._ordered()
        return [event for event in ordered if matches_filter(event, cme_filter)]

    def clear(self) -> int:
        with self._lock:
            self._events = {}
            self._version += 1
            return self._version

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def summary(self, cme_filter: CmeFilter | str = CmeFilter.all) -> CatalogSummary:
        with self._lock:
            version = self._version
            ordered = self._ordered()
        events = [event for event in ordered if matches_filter(event, cme_filter)]
        return CatalogSummary(
            version=version,
            catalogHash=stable_hash([event.model_dump(mode="json") for event in ordered]),
            count=len(events),
            events=events,
        )
