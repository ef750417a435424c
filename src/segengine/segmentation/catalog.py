"""
In-memory segment catalog.

Readers work on an immutable snapshot; writers build a new snapshot and
swap it in under a lock, so a reader never observes a half-applied
mutation.
"""

import threading
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

import structlog

from segengine.segmentation.models import Segment

logger = structlog.get_logger()


class SegmentCatalog:
    """Id-keyed collection of segment definitions in insertion order."""

    def __init__(self, segments: Iterable[Segment] = ()) -> None:
        self._lock = threading.Lock()
        self._snapshot: Mapping[str, Segment] = MappingProxyType({s.id: s for s in segments})
        self._log = logger.bind(component="segment_catalog")

    def snapshot(self) -> Mapping[str, Segment]:
        """The current read-only view."""
        return self._snapshot

    def get(self, segment_id: str) -> Segment | None:
        return self._snapshot.get(segment_id)

    def all(self) -> list[Segment]:
        return list(self._snapshot.values())

    def ids(self) -> list[str]:
        return list(self._snapshot.keys())

    def replace_all(self, segments: Iterable[Segment]) -> None:
        """Swap in a complete new catalog."""
        fresh = MappingProxyType({s.id: s for s in segments})
        with self._lock:
            self._snapshot = fresh
        self._log.debug("catalog_replaced", segment_count=len(fresh))

    def put(self, segment: Segment) -> None:
        """Insert or replace one segment."""
        with self._lock:
            updated = dict(self._snapshot)
            updated[segment.id] = segment
            self._snapshot = MappingProxyType(updated)

    def remove(self, segment_id: str) -> bool:
        """Remove one segment. Returns False if it was not present."""
        with self._lock:
            if segment_id not in self._snapshot:
                return False
            updated = dict(self._snapshot)
            del updated[segment_id]
            self._snapshot = MappingProxyType(updated)
            return True

    def clear(self) -> None:
        self.replace_all(())

    def __len__(self) -> int:
        return len(self._snapshot)

    def __contains__(self, segment_id: object) -> bool:
        return segment_id in self._snapshot

    def __iter__(self) -> Iterator[Segment]:
        return iter(list(self._snapshot.values()))
