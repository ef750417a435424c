"""
Topic definitions for the message bus.

Topics use a hierarchical dot-separated naming convention, e.g.
``segment.created`` or ``service.segmentation_engine.started``.

Wildcards are supported:
  * - matches any single segment
  # - matches zero or more segments
"""

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class Topic:
    """A message bus topic with hierarchical structure."""

    path: str

    WILDCARD_SINGLE: ClassVar[str] = "*"
    WILDCARD_MULTI: ClassVar[str] = "#"

    @property
    def parts(self) -> list[str]:
        """Split topic into its dot-separated parts."""
        return self.path.split(".")

    @property
    def category(self) -> str:
        """Get the top-level category."""
        return self.parts[0] if self.parts else ""

    def matches(self, pattern: str) -> bool:
        """
        Check if this topic matches a pattern.

        ``*`` consumes exactly one part, ``#`` consumes zero or more.
        """
        parts = self.parts
        # Positions in ``parts`` reachable after consuming the pattern so far
        positions = {0}
        for token in pattern.split("."):
            if token == self.WILDCARD_MULTI:
                positions = set(range(min(positions), len(parts) + 1))
            else:
                positions = {
                    i + 1
                    for i in positions
                    if i < len(parts) and token in (self.WILDCARD_SINGLE, parts[i])
                }
            if not positions:
                return False
        return len(parts) in positions

    def __str__(self) -> str:
        return self.path


class ServiceTopics:
    """Service lifecycle topics."""

    ALL = Topic("service.#")

    @staticmethod
    def started(name: str) -> Topic:
        return Topic(f"service.{name}.started")

    @staticmethod
    def stopped(name: str) -> Topic:
        return Topic(f"service.{name}.stopped")


class SegmentTopics:
    """Segment catalog topics."""

    CREATED = Topic("segment.created")
    UPDATED = Topic("segment.updated")
    DELETED = Topic("segment.deleted")

    CATALOG_LOADED = Topic("segment.catalog.loaded")
    CATALOG_LOAD_FAILED = Topic("segment.catalog.load_failed")
    CACHE_CLEARED = Topic("segment.cache.cleared")

    ALL = Topic("segment.#")
