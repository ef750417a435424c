"""
Segment membership evaluation.

Combines a segment's conditions with AND/OR semantics and answers the
two membership questions the rest of the platform asks: is this context
in a given segment, and which segments is this context in.
"""

import json
from collections.abc import Mapping
from typing import Any

import structlog

from segengine.segmentation.cache import MembershipCache
from segengine.segmentation.catalog import SegmentCatalog
from segengine.segmentation.conditions import ConditionEvaluator, context_mapping
from segengine.segmentation.models import MatchOperator, Segment, SegmentDefinition, UserContext

logger = structlog.get_logger()


def membership_cache_key(context: UserContext | Mapping[str, Any]) -> str | None:
    """
    Cache key for a context: its user/session id plus its attributes.

    Returns None when the context carries neither a user id nor a
    session id; such contexts are evaluated on every call.
    """
    if isinstance(context, UserContext):
        identity = context.identity
        attributes: Any = context.attributes
    else:
        identity = context.get("userId") or context.get("sessionId")
        attributes = context.get("attributes") or {}

    if not identity:
        return None

    serialized = json.dumps(attributes, sort_keys=True, default=str, separators=(",", ":"))
    return f"{identity}-{serialized}"


class SegmentEvaluator:
    """Evaluates segments from a catalog, memoizing full-catalog results."""

    def __init__(
        self,
        catalog: SegmentCatalog,
        cache: MembershipCache[str, frozenset[str]] | None = None,
        *,
        condition_evaluator: ConditionEvaluator | None = None,
    ) -> None:
        self._catalog = catalog
        self._cache = cache
        self._conditions = condition_evaluator or ConditionEvaluator()
        self._evaluation_count = 0
        self._log = logger.bind(component="segment_evaluator")

    @property
    def evaluation_count(self) -> int:
        """Number of full-catalog evaluations actually performed."""
        return self._evaluation_count

    @property
    def cache(self) -> MembershipCache[str, frozenset[str]] | None:
        return self._cache

    def evaluate_segment(
        self,
        segment: Segment | SegmentDefinition,
        context: UserContext | Mapping[str, Any],
    ) -> bool:
        """Return whether ``context`` belongs to ``segment``."""
        if not segment.conditions:
            return True

        mapping = context_mapping(context)
        results = [self._conditions.evaluate(c, mapping) for c in segment.conditions]

        if segment.operator == MatchOperator.AND:
            return all(results)
        return any(results)

    def is_in_segment(self, segment_id: str, context: UserContext | Mapping[str, Any]) -> bool:
        """Membership in one catalog segment. Unknown ids are never matched."""
        segment = self._catalog.get(segment_id)
        if segment is None:
            return False
        return self.evaluate_segment(segment, context)

    def evaluate_user_segments(self, context: UserContext | Mapping[str, Any]) -> frozenset[str]:
        """Ids of every catalog segment ``context`` belongs to."""
        key = membership_cache_key(context) if self._cache is not None else None

        if self._cache is not None and key is not None:
            cached = self._cache.get(key)
            if cached is not None:
                return cached
            generation = self._cache.generation
        else:
            if self._cache is not None:
                self._log.debug("uncacheable_context")
            generation = None

        mapping = context_mapping(context)
        matched = frozenset(
            segment.id
            for segment in self._catalog.snapshot().values()
            if self.evaluate_segment(segment, mapping)
        )
        self._evaluation_count += 1

        if self._cache is not None and key is not None:
            self._cache.put(key, matched, generation=generation)

        return matched
