"""
Experiment performance broken down by segment.

Exposure and conversion events carry the segment ids the context
belonged to when the event was recorded (``context.segments``). Reports
are built from those tags, so historical results stay stable when segment
rules change later.
"""

import structlog

from segengine.core.config import EngineConfig
from segengine.core.exceptions import SegmentNotFoundError
from segengine.persistence.client import Filter, PersistenceClient
from segengine.persistence.guard import guarded
from segengine.segmentation.catalog import SegmentCatalog
from segengine.segmentation.models import (
    ConversionEvent,
    Experiment,
    ExposureEvent,
    MetricResult,
    SegmentResults,
    VariantResult,
)

logger = structlog.get_logger()


def conversion_rate(conversions: int, exposures: int) -> float:
    return conversions / exposures if exposures > 0 else 0.0


class PerformanceAnalyzer:
    """Joins segment-tagged experiment events into per-variant statistics."""

    def __init__(
        self,
        persistence: PersistenceClient,
        catalog: SegmentCatalog,
        *,
        config: EngineConfig | None = None,
    ) -> None:
        self._persistence = persistence
        self._catalog = catalog
        self._config = config or EngineConfig()
        self._log = logger.bind(component="performance_analyzer")

    async def fetch_exposures(self, experiment_id: str, segment_id: str) -> list[ExposureEvent]:
        rows = await self._select_events(self._config.exposures_table, experiment_id, segment_id)
        return [ExposureEvent.model_validate(row) for row in rows]

    async def fetch_conversions(self, experiment_id: str, segment_id: str) -> list[ConversionEvent]:
        rows = await self._select_events(self._config.conversions_table, experiment_id, segment_id)
        return [ConversionEvent.model_validate(row) for row in rows]

    async def fetch_experiment(self, experiment_id: str) -> Experiment | None:
        table = self._config.experiments_table
        rows = await guarded(
            "select",
            table,
            lambda: self._persistence.select(table, filters=[Filter.eq("id", experiment_id)]),
            timeout=self._config.persistence_timeout_seconds,
        )
        if not rows:
            return None
        return Experiment.model_validate({"id": experiment_id, **rows[0]})

    async def _select_events(self, table: str, experiment_id: str, segment_id: str) -> list[dict]:
        filters = [
            Filter.eq("experiment_id", experiment_id),
            Filter.contains("context.segments", segment_id),
        ]
        return await guarded(
            "select",
            table,
            lambda: self._persistence.select(table, filters=filters),
            timeout=self._config.persistence_timeout_seconds,
        )

    async def analyze_segment_performance(
        self, experiment_id: str, segment_id: str
    ) -> SegmentResults:
        """Per-variant exposures, conversions and conversion rates within a segment."""
        segment = self._catalog.get(segment_id)
        if segment is None:
            raise SegmentNotFoundError(segment_id)

        exposures = await self.fetch_exposures(experiment_id, segment_id)
        conversions = await self.fetch_conversions(experiment_id, segment_id)
        experiment = await self.fetch_experiment(experiment_id)

        results = self.aggregate(
            exposures,
            conversions,
            variant_names=experiment.variant_names if experiment else {},
        )

        self._log.info(
            "segment_performance_analyzed",
            experiment_id=experiment_id,
            segment_id=segment_id,
            exposures=len(exposures),
            conversions=len(conversions),
            variants=len(results),
        )

        return SegmentResults(
            segment_id=segment_id,
            segment_name=segment.name,
            exposures=len(exposures),
            variants=results,
        )

    @staticmethod
    def aggregate(
        exposures: list[ExposureEvent],
        conversions: list[ConversionEvent],
        *,
        variant_names: dict[str, str],
    ) -> list[VariantResult]:
        """Count events per variant and derive per-metric conversion rates."""
        by_variant: dict[str, VariantResult] = {}

        def ensure(variant_id: str) -> VariantResult:
            if variant_id not in by_variant:
                by_variant[variant_id] = VariantResult(
                    variant_id=variant_id,
                    variant_name=variant_names.get(variant_id, variant_id),
                )
            return by_variant[variant_id]

        for exposure in exposures:
            ensure(exposure.variant_id).exposures += 1

        for conversion in conversions:
            result = ensure(conversion.variant_id)
            result.conversions[conversion.metric_id] = (
                result.conversions.get(conversion.metric_id, 0) + 1
            )

        for result in by_variant.values():
            result.metrics = {
                metric_id: MetricResult(
                    value=count,
                    conversions=count,
                    conversion_rate=conversion_rate(count, result.exposures),
                )
                for metric_id, count in result.conversions.items()
            }

        return list(by_variant.values())
