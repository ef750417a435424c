"""
segengine

Audience segmentation and experiment-performance analysis.

- Segments: named AND/OR combinations of field predicates over a context
- Membership: cached evaluation of a context against the segment catalog
- Reporting: segment size, pairwise overlap, per-variant experiment results
"""

__version__ = "0.1.0"

from segengine.core.config import EngineConfig
from segengine.core.exceptions import SegEngineError, SegmentNotFoundError, ValidationError
from segengine.persistence.client import InMemoryPersistence, PersistenceClient
from segengine.segmentation.builder import SegmentBuilder
from segengine.segmentation.engine import SegmentationEngine
from segengine.segmentation.models import (
    MatchOperator,
    Operator,
    Segment,
    SegmentCondition,
    SegmentResults,
    UserContext,
)

__all__ = [
    "__version__",
    "EngineConfig",
    "InMemoryPersistence",
    "MatchOperator",
    "Operator",
    "PersistenceClient",
    "SegEngineError",
    "Segment",
    "SegmentBuilder",
    "SegmentCondition",
    "SegmentNotFoundError",
    "SegmentResults",
    "SegmentationEngine",
    "UserContext",
    "ValidationError",
]
