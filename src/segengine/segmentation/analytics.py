"""
Segment size and overlap.

Both read stored membership (the ``segments`` array column on the users
table) directly; they do not re-evaluate segment rules. Overlap
materializes every requested segment's member set in memory and compares
every unordered pair, so it is intended for a handful of segments at a
time.
"""

from collections.abc import Sequence

import structlog

from segengine.core.config import EngineConfig
from segengine.persistence.client import Filter, PersistenceClient
from segengine.persistence.guard import guarded
from segengine.segmentation.cache import MembershipCache

logger = structlog.get_logger()


def overlap_key(segment_a: str, segment_b: str) -> str:
    return f"{segment_a}-{segment_b}"


class SegmentAnalytics:
    """Answers segment size and overlap questions from stored membership."""

    def __init__(
        self,
        persistence: PersistenceClient,
        *,
        config: EngineConfig | None = None,
        size_cache: MembershipCache[str, int] | None = None,
    ) -> None:
        self._persistence = persistence
        self._config = config or EngineConfig()
        self._size_cache = size_cache
        self._log = logger.bind(component="segment_analytics")

    @property
    def table(self) -> str:
        return self._config.users_table

    def _member_filter(self, segment_id: str) -> Filter:
        return Filter.contains("segments", segment_id)

    async def get_segment_size(self, segment_id: str) -> int:
        """Number of users whose stored membership includes ``segment_id``."""
        if self._size_cache is not None:
            cached = self._size_cache.get(segment_id)
            if cached is not None:
                return cached
            generation = self._size_cache.generation

        size = await guarded(
            "count",
            self.table,
            lambda: self._persistence.count(self.table, filters=[self._member_filter(segment_id)]),
            timeout=self._config.persistence_timeout_seconds,
        )

        if self._size_cache is not None:
            self._size_cache.put(segment_id, size, generation=generation)
        return size

    async def get_segment_members(self, segment_id: str) -> set[str]:
        """Ids of users whose stored membership includes ``segment_id``."""
        rows = await guarded(
            "select",
            self.table,
            lambda: self._persistence.select(
                self.table,
                filters=[self._member_filter(segment_id)],
                columns=["id"],
            ),
            timeout=self._config.persistence_timeout_seconds,
        )
        return {str(row["id"]) for row in rows if row.get("id") is not None}

    async def get_segment_overlap(self, segment_ids: Sequence[str]) -> dict[str, int]:
        """
        Intersection sizes for every unordered pair of ``segment_ids``.

        Keys are ``"<first>-<second>"`` in request order.
        """
        members: dict[str, set[str]] = {}
        for segment_id in segment_ids:
            if segment_id not in members:
                members[segment_id] = await self.get_segment_members(segment_id)

        overlap: dict[str, int] = {}
        for i, first in enumerate(segment_ids):
            for second in segment_ids[i + 1 :]:
                overlap[overlap_key(first, second)] = len(members[first] & members[second])

        self._log.debug(
            "overlap_computed",
            segment_count=len(segment_ids),
            pair_count=len(overlap),
        )
        return overlap
