"""
SegmentationEngine: the service the API layer calls into.

Owns the catalog, both caches, the store, the evaluator and the
reporting components, wired to one injected persistence client. The
API layer is expected to have authenticated, tenant-scoped and
rate-limited the request before calling any of these operations.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from segengine.bus.topics import SegmentTopics
from segengine.core.config import EngineConfig
from segengine.core.service import Service, ServiceMetadata
from segengine.persistence.client import PersistenceClient
from segengine.segmentation.analytics import SegmentAnalytics
from segengine.segmentation.builder import SegmentBuilder
from segengine.segmentation.cache import Clock, MembershipCache, utc_now
from segengine.segmentation.catalog import SegmentCatalog
from segengine.segmentation.evaluator import SegmentEvaluator
from segengine.segmentation.models import (
    Segment,
    SegmentDefinition,
    SegmentResults,
    UserContext,
)
from segengine.segmentation.performance import PerformanceAnalyzer
from segengine.segmentation.presets import common_segments
from segengine.segmentation.store import SegmentStore

if TYPE_CHECKING:
    from segengine.bus.message_bus import MessageBus

logger = structlog.get_logger()

Context = UserContext | Mapping[str, Any]


@dataclass
class EngineStats:
    """Point-in-time engine statistics."""

    segment_count: int
    evaluation_count: int
    membership_cache_size: int
    membership_cache_hits: int
    membership_cache_misses: int
    size_cache_size: int


class SegmentationEngine(Service):
    """
    Segment membership, catalog management and segment reporting.

    Lifecycle:
    1. load(): read the full segment catalog from persistence
    2. evaluate_* / is_in_segment: synchronous, cache-backed membership
    3. create/update/delete: write-through mutations, caches cleared
    4. close(): drop caches and the catalog
    """

    def __init__(
        self,
        persistence: PersistenceClient,
        config: EngineConfig | None = None,
        *,
        message_bus: "MessageBus | None" = None,
        clock: Clock = utc_now,
    ) -> None:
        metadata = ServiceMetadata(
            name="segmentation_engine",
            display_name="Segmentation Engine",
            description="Evaluates audience segments and reports experiment performance by segment",
            tags=frozenset(["segmentation", "experiments", "audience"]),
            published_topics=frozenset(
                str(t)
                for t in (
                    SegmentTopics.CREATED,
                    SegmentTopics.UPDATED,
                    SegmentTopics.DELETED,
                    SegmentTopics.CATALOG_LOADED,
                    SegmentTopics.CATALOG_LOAD_FAILED,
                    SegmentTopics.CACHE_CLEARED,
                )
            ),
        )
        super().__init__(metadata, message_bus)

        self._config = config or EngineConfig()
        self._persistence = persistence

        ttl = self._config.cache_ttl_seconds
        self._membership_cache: MembershipCache[str, frozenset[str]] = MembershipCache(
            "membership", ttl_seconds=ttl, clock=clock
        )
        self._size_cache: MembershipCache[str, int] = MembershipCache(
            "segment_size", ttl_seconds=ttl, clock=clock
        )

        self._catalog = SegmentCatalog()
        self._store = SegmentStore(
            persistence,
            self._catalog,
            [self._membership_cache, self._size_cache],
            config=self._config,
            events=self,
        )
        self._evaluator = SegmentEvaluator(
            self._catalog,
            self._membership_cache if self._config.cache_results else None,
        )
        self._analytics = SegmentAnalytics(
            persistence,
            config=self._config,
            size_cache=self._size_cache if self._config.cache_results else None,
        )
        self._performance = PerformanceAnalyzer(persistence, self._catalog, config=self._config)

    # --- Properties ---

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def catalog(self) -> SegmentCatalog:
        return self._catalog

    @property
    def store(self) -> SegmentStore:
        return self._store

    @property
    def evaluator(self) -> SegmentEvaluator:
        return self._evaluator

    @property
    def membership_cache(self) -> MembershipCache[str, frozenset[str]]:
        return self._membership_cache

    # --- Lifecycle hooks ---

    async def on_load(self) -> None:
        await self._store.load()

    async def on_close(self) -> None:
        self._membership_cache.clear()
        self._size_cache.clear()
        self._catalog.clear()

    async def reload(self) -> int:
        """Re-read the full catalog from persistence."""
        return await self._store.load()

    # --- Membership ---

    def evaluate_user_segments(self, context: Context) -> frozenset[str]:
        """Ids of every segment the context belongs to."""
        return self._evaluator.evaluate_user_segments(context)

    def is_in_segment(self, segment_id: str, context: Context) -> bool:
        """Whether the context belongs to one segment. Unknown ids are false."""
        return self._evaluator.is_in_segment(segment_id, context)

    def evaluate_segment(self, segment: Segment | SegmentDefinition, context: Context) -> bool:
        """Evaluate an arbitrary (possibly unsaved) segment definition."""
        return self._evaluator.evaluate_segment(segment, context)

    # --- Catalog ---

    def get_segment(self, segment_id: str) -> Segment | None:
        return self._catalog.get(segment_id)

    def list_segments(self) -> list[Segment]:
        return self._catalog.all()

    def create_segment_builder(self) -> SegmentBuilder:
        return SegmentBuilder()

    async def create_segment(
        self, definition: SegmentDefinition | Mapping[str, Any], *, segment_id: str | None = None
    ) -> Segment:
        return await self._store.create_segment(definition, segment_id=segment_id)

    async def update_segment(self, segment_id: str, updates: Mapping[str, Any]) -> Segment:
        return await self._store.update_segment(segment_id, updates)

    async def delete_segment(self, segment_id: str) -> None:
        await self._store.delete_segment(segment_id)

    async def install_common_segments(self) -> list[Segment]:
        """Persist the predefined segments that are not in the catalog yet."""
        installed: list[Segment] = []
        for preset in common_segments():
            if preset.id in self._catalog:
                continue
            installed.append(
                await self._store.create_segment(preset.definition(), segment_id=preset.id)
            )
        self._log.info("common_segments_installed", count=len(installed))
        return installed

    # --- Reporting ---

    async def get_segment_size(self, segment_id: str) -> int:
        return await self._analytics.get_segment_size(segment_id)

    async def get_segment_overlap(self, segment_ids: Sequence[str]) -> dict[str, int]:
        return await self._analytics.get_segment_overlap(segment_ids)

    async def analyze_segment_performance(
        self, experiment_id: str, segment_id: str
    ) -> SegmentResults:
        return await self._performance.analyze_segment_performance(experiment_id, segment_id)

    def get_stats(self) -> EngineStats:
        cache_stats = self._membership_cache.stats
        return EngineStats(
            segment_count=len(self._catalog),
            evaluation_count=self._evaluator.evaluation_count,
            membership_cache_size=len(self._membership_cache),
            membership_cache_hits=cache_stats.hits,
            membership_cache_misses=cache_stats.misses,
            size_cache_size=len(self._size_cache),
        )
