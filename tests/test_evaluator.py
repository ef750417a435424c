"""Tests for segment membership evaluation."""

import pytest

from segengine.segmentation.cache import MembershipCache
from segengine.segmentation.catalog import SegmentCatalog
from segengine.segmentation.evaluator import SegmentEvaluator, membership_cache_key
from segengine.segmentation.models import (
    MatchOperator,
    Operator,
    Segment,
    SegmentCondition,
    SegmentDefinition,
    UserContext,
)
from segengine.segmentation.presets import common_segments


def make_segment(
    segment_id: str,
    *conditions: tuple[str, Operator, object],
    operator: MatchOperator = MatchOperator.AND,
) -> Segment:
    return Segment(
        id=segment_id,
        name=segment_id.replace("_", " ").title(),
        conditions=tuple(SegmentCondition(field=f, operator=o, value=v) for f, o, v in conditions),
        operator=operator,
    )


@pytest.fixture
def catalog() -> SegmentCatalog:
    return SegmentCatalog(
        [
            make_segment("mobile", ("device.type", Operator.EQUALS, "mobile")),
            make_segment(
                "premium_de",
                ("attributes.plan", Operator.EQUALS, "premium"),
                ("geo.country", Operator.EQUALS, "DE"),
            ),
            make_segment(
                "engaged",
                ("attributes.visitCount", Operator.GT, 10),
                ("attributes.plan", Operator.EQUALS, "premium"),
                operator=MatchOperator.OR,
            ),
        ]
    )


class TestEvaluateSegment:
    """AND/OR combination of conditions."""

    def test_and_requires_all(self, catalog) -> None:
        """Test AND needs every condition."""
        evaluator = SegmentEvaluator(catalog)
        segment = catalog.get("premium_de")

        both = UserContext(user_id="u", attributes={"plan": "premium"}, geo={"country": "DE"})
        one = UserContext(user_id="u", attributes={"plan": "premium"}, geo={"country": "FR"})

        assert evaluator.evaluate_segment(segment, both)
        assert not evaluator.evaluate_segment(segment, one)

    def test_or_requires_any(self, catalog) -> None:
        """Test OR needs any condition."""
        evaluator = SegmentEvaluator(catalog)
        segment = catalog.get("engaged")

        assert evaluator.evaluate_segment(segment, UserContext(attributes={"visitCount": 11}))
        assert evaluator.evaluate_segment(segment, UserContext(attributes={"plan": "premium"}))
        assert not evaluator.evaluate_segment(segment, UserContext(attributes={"visitCount": 2}))

    @pytest.mark.parametrize("operator", [MatchOperator.AND, MatchOperator.OR])
    def test_empty_conditions_always_match(self, catalog, operator) -> None:
        """Test a segment without conditions matches everyone."""
        evaluator = SegmentEvaluator(catalog)
        definition = SegmentDefinition(name="Everyone", operator=operator)
        assert evaluator.evaluate_segment(definition, UserContext())

    def test_unknown_operator_in_and_segment(self, catalog) -> None:
        """Test an unknown operator fails an AND segment."""
        evaluator = SegmentEvaluator(catalog)
        definition = SegmentDefinition(
            name="Future",
            conditions=(
                SegmentCondition(field="device.type", operator="equals", value="mobile"),
                SegmentCondition(field="device.type", operator="regex", value="mob.*"),
            ),
        )
        assert not evaluator.evaluate_segment(definition, {"device": {"type": "mobile"}})

    def test_high_value_preset(self, catalog) -> None:
        """Test the high value preset."""
        evaluator = SegmentEvaluator(catalog)
        high_value = next(s for s in common_segments() if s.id == "high_value_users")

        assert evaluator.evaluate_segment(
            high_value, UserContext(attributes={"totalSpent": 150, "purchaseCount": 1})
        )
        assert evaluator.evaluate_segment(
            high_value, UserContext(attributes={"totalSpent": 10, "purchaseCount": 3})
        )
        assert not evaluator.evaluate_segment(
            high_value, UserContext(attributes={"totalSpent": 10, "purchaseCount": 1})
        )
        assert not evaluator.evaluate_segment(high_value, UserContext())


class TestMembership:
    """Membership queries against the catalog."""

    def test_is_in_segment(self, catalog) -> None:
        """Test membership in a single segment."""
        evaluator = SegmentEvaluator(catalog)
        context = UserContext(user_id="u", device={"type": "mobile"})
        assert evaluator.is_in_segment("mobile", context)
        assert not evaluator.is_in_segment("premium_de", context)

    def test_unknown_segment_is_false(self, catalog) -> None:
        """Test an unknown segment id is never matched."""
        evaluator = SegmentEvaluator(catalog)
        assert not evaluator.is_in_segment("does_not_exist", UserContext(user_id="u"))

    def test_evaluate_user_segments(self, catalog) -> None:
        """Test evaluating every catalog segment."""
        evaluator = SegmentEvaluator(catalog)
        context = UserContext(
            user_id="u",
            attributes={"plan": "premium"},
            device={"type": "mobile"},
            geo={"country": "DE"},
        )
        assert evaluator.evaluate_user_segments(context) == {"mobile", "premium_de", "engaged"}

    def test_result_is_subset_of_catalog(self, catalog) -> None:
        """Test results only contain catalog ids."""
        evaluator = SegmentEvaluator(catalog)
        result = evaluator.evaluate_user_segments(UserContext(device={"type": "mobile"}))
        assert result <= set(catalog.ids())

    def test_mobile_user_matches_mobile_preset(self) -> None:
        """Test a mobile context against the presets."""
        evaluator = SegmentEvaluator(SegmentCatalog(common_segments()))
        context = UserContext(
            user_id="u",
            device={"type": "mobile", "browser": "Chrome Mobile"},
            geo={"country": "FR"},
        )
        segments = evaluator.evaluate_user_segments(context)
        assert "mobile_users" in segments
        assert "desktop_users" not in segments
        assert "eu_users" in segments
        assert "chrome_users" in segments


class TestCaching:
    """Membership result caching."""

    def test_cache_key(self) -> None:
        """Test the cache key ignores attribute order."""
        a = UserContext(user_id="u", attributes={"b": 1, "a": 2})
        b = UserContext(user_id="u", attributes={"a": 2, "b": 1})
        assert membership_cache_key(a) == membership_cache_key(b)
        assert membership_cache_key(a).startswith("u-")

    def test_session_id_fallback(self) -> None:
        """Test the cache key falls back to the session id."""
        assert membership_cache_key(UserContext(session_id="s")).startswith("s-")
        assert membership_cache_key(UserContext()) is None

    def test_repeat_evaluation_hits_cache(self, catalog) -> None:
        """Test a repeat evaluation hits the cache."""
        cache: MembershipCache[str, frozenset[str]] = MembershipCache("membership")
        evaluator = SegmentEvaluator(catalog, cache)
        context = UserContext(user_id="u", device={"type": "mobile"})

        first = evaluator.evaluate_user_segments(context)
        second = evaluator.evaluate_user_segments(context)

        assert first == second
        assert evaluator.evaluation_count == 1
        assert cache.stats.hits == 1

    def test_anonymous_context_is_not_cached(self, catalog) -> None:
        """Test contexts without an id are not cached."""
        cache: MembershipCache[str, frozenset[str]] = MembershipCache("membership")
        evaluator = SegmentEvaluator(catalog, cache)
        context = UserContext(device={"type": "mobile"})

        evaluator.evaluate_user_segments(context)
        evaluator.evaluate_user_segments(context)

        assert evaluator.evaluation_count == 2
        assert len(cache) == 0

    def test_clear_forces_reevaluation(self, catalog) -> None:
        """Test clearing the cache forces re-evaluation."""
        cache: MembershipCache[str, frozenset[str]] = MembershipCache("membership")
        evaluator = SegmentEvaluator(catalog, cache)
        context = UserContext(user_id="u", device={"type": "mobile"})

        assert evaluator.evaluate_user_segments(context) == {"mobile"}

        catalog.put(make_segment("everyone"))
        cache.clear()

        assert evaluator.evaluate_user_segments(context) == {"mobile", "everyone"}
        assert evaluator.evaluation_count == 2

    def test_no_cache(self, catalog) -> None:
        """Test evaluation without a cache."""
        evaluator = SegmentEvaluator(catalog)
        context = UserContext(user_id="u")
        evaluator.evaluate_user_segments(context)
        evaluator.evaluate_user_segments(context)
        assert evaluator.evaluation_count == 2
