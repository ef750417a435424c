"""Segment evaluation, catalog management and segment reporting."""

from segengine.segmentation.analytics import SegmentAnalytics
from segengine.segmentation.builder import SegmentBuilder
from segengine.segmentation.cache import MembershipCache
from segengine.segmentation.catalog import SegmentCatalog
from segengine.segmentation.conditions import ConditionEvaluator
from segengine.segmentation.engine import SegmentationEngine
from segengine.segmentation.evaluator import SegmentEvaluator
from segengine.segmentation.models import (
    ConversionEvent,
    Experiment,
    ExposureEvent,
    MatchOperator,
    MetricResult,
    Operator,
    Segment,
    SegmentCondition,
    SegmentDefinition,
    SegmentResults,
    UserContext,
    Variant,
    VariantResult,
)
from segengine.segmentation.performance import PerformanceAnalyzer
from segengine.segmentation.presets import common_segments
from segengine.segmentation.store import SegmentStore

__all__ = [
    "ConditionEvaluator",
    "ConversionEvent",
    "Experiment",
    "ExposureEvent",
    "MatchOperator",
    "MembershipCache",
    "MetricResult",
    "Operator",
    "PerformanceAnalyzer",
    "Segment",
    "SegmentAnalytics",
    "SegmentBuilder",
    "SegmentCatalog",
    "SegmentCondition",
    "SegmentDefinition",
    "SegmentEvaluator",
    "SegmentResults",
    "SegmentStore",
    "SegmentationEngine",
    "UserContext",
    "Variant",
    "VariantResult",
    "common_segments",
]
