"""
Segment store: the single source of truth for segment definitions.

Loads the catalog from persistence, writes create/update/delete through
to persistence, keeps the in-memory catalog in step, and invalidates
every dependent cache on each mutation.
"""

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

import structlog
from ulid import ULID

from segengine.bus.topics import SegmentTopics
from segengine.core.config import EngineConfig
from segengine.core.exceptions import CatalogLoadError, SegmentNotFoundError, ValidationError
from segengine.persistence.client import Filter, PersistenceClient
from segengine.persistence.guard import guarded
from segengine.segmentation.cache import MembershipCache
from segengine.segmentation.catalog import SegmentCatalog
from segengine.segmentation.models import (
    Segment,
    SegmentCondition,
    SegmentDefinition,
    parse_match_operator,
)

if TYPE_CHECKING:
    from segengine.core.service import Service

logger = structlog.get_logger()

_UPDATABLE_FIELDS = frozenset(["name", "conditions", "operator"])


def generate_segment_id() -> str:
    return f"seg_{ULID()}"


class SegmentStore:
    """Persists segments and owns the catalog they are evaluated from."""

    def __init__(
        self,
        persistence: PersistenceClient,
        catalog: SegmentCatalog,
        caches: Sequence[MembershipCache[Any, Any]] = (),
        *,
        config: EngineConfig | None = None,
        events: "Service | None" = None,
    ) -> None:
        self._persistence = persistence
        self._catalog = catalog
        self._caches = list(caches)
        self._config = config or EngineConfig()
        self._events = events
        self._log = logger.bind(component="segment_store")

    @property
    def catalog(self) -> SegmentCatalog:
        return self._catalog

    @property
    def table(self) -> str:
        return self._config.segments_table

    async def load(self) -> int:
        """
        Replace the catalog with the full contents of the segments table.

        Rows that do not parse are logged and skipped. A failed read
        leaves the catalog empty and is logged rather than raised, unless
        ``fail_on_load_error`` is configured.
        """
        try:
            rows = await guarded(
                "select",
                self.table,
                lambda: self._persistence.select(self.table),
                timeout=self._config.persistence_timeout_seconds,
            )
        except Exception as e:
            self._catalog.clear()
            await self._invalidate("load_failed")
            self._log.exception("catalog_load_failed", table=self.table)
            await self._emit(str(SegmentTopics.CATALOG_LOAD_FAILED), {"error": str(e)})
            if self._config.fail_on_load_error:
                raise CatalogLoadError(f"Failed to load segments: {e}") from e
            return 0

        segments = [s for s in (self._parse_row(row) for row in rows) if s is not None]

        self._catalog.replace_all(segments)
        await self._invalidate("load")
        self._log.info(
            "catalog_loaded",
            segment_count=len(segments),
            skipped=len(rows) - len(segments),
        )
        await self._emit(str(SegmentTopics.CATALOG_LOADED), {"segment_count": len(segments)})
        return len(segments)

    async def create_segment(
        self,
        definition: SegmentDefinition | Mapping[str, Any],
        *,
        segment_id: str | None = None,
    ) -> Segment:
        """Persist a new segment and add it to the catalog."""
        if not isinstance(definition, SegmentDefinition):
            try:
                definition = SegmentDefinition.model_validate(definition)
            except ValueError as e:
                raise ValidationError("definition", str(e)) from e

        row = {"id": segment_id or generate_segment_id(), **definition.to_row()}
        stored = await guarded(
            "insert",
            self.table,
            lambda: self._persistence.insert(self.table, row),
            timeout=self._config.persistence_timeout_seconds,
        )
        segment = Segment.from_row(stored)

        self._catalog.put(segment)
        await self._invalidate("create")
        self._log.info("segment_created", segment_id=segment.id, name=segment.name)
        await self._emit(str(SegmentTopics.CREATED), {"segment_id": segment.id, "name": segment.name})
        return segment

    async def update_segment(self, segment_id: str, updates: Mapping[str, Any]) -> Segment:
        """Apply a partial update (name, conditions, operator) to a segment."""
        values = self._update_values(updates)
        stored = await guarded(
            "update",
            self.table,
            lambda: self._persistence.update(
                self.table, values, filters=[Filter.eq("id", segment_id)]
            ),
            timeout=self._config.persistence_timeout_seconds,
        )
        if not stored:
            raise SegmentNotFoundError(segment_id)
        segment = Segment.from_row(stored[0])

        self._catalog.put(segment)
        await self._invalidate("update")
        self._log.info("segment_updated", segment_id=segment.id, fields=sorted(values))
        await self._emit(str(SegmentTopics.UPDATED), {"segment_id": segment.id, "fields": sorted(values)})
        return segment

    async def delete_segment(self, segment_id: str) -> None:
        """Delete a segment from persistence and the catalog."""
        removed = await guarded(
            "delete",
            self.table,
            lambda: self._persistence.delete(self.table, filters=[Filter.eq("id", segment_id)]),
            timeout=self._config.persistence_timeout_seconds,
        )

        self._catalog.remove(segment_id)
        await self._invalidate("delete")
        self._log.info("segment_deleted", segment_id=segment_id, rows_removed=removed)
        await self._emit(str(SegmentTopics.DELETED), {"segment_id": segment_id})

    def _parse_row(self, row: Mapping[str, Any]) -> Segment | None:
        try:
            return Segment.from_row(row)
        except (KeyError, TypeError, ValueError) as e:
            self._log.warning("segment_row_invalid", segment_id=row.get("id"), error=str(e))
            return None

    def _update_values(self, updates: Mapping[str, Any]) -> dict[str, Any]:
        unknown = set(updates) - _UPDATABLE_FIELDS
        if unknown:
            self._log.debug("update_fields_ignored", fields=sorted(unknown))

        values: dict[str, Any] = {}
        if "name" in updates:
            values["name"] = str(updates["name"])
        if "conditions" in updates:
            try:
                values["conditions"] = [
                    SegmentCondition.model_validate(c).to_row() for c in updates["conditions"] or ()
                ]
            except ValueError as e:
                raise ValidationError("conditions", str(e)) from e
        if "operator" in updates:
            try:
                values["operator"] = parse_match_operator(updates["operator"]).value
            except ValueError as e:
                raise ValidationError("operator", str(e)) from e
        return values

    async def _invalidate(self, reason: str) -> None:
        removed = sum(cache.clear() for cache in self._caches)
        await self._emit(str(SegmentTopics.CACHE_CLEARED), {"reason": reason, "removed": removed})

    async def _emit(self, topic: str, payload: Any) -> None:
        if self._events is not None:
            await self._events.emit_event(topic, payload)
