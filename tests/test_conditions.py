"""Tests for leaf condition evaluation."""

from datetime import UTC, datetime, timedelta

import pytest

from segengine.segmentation.conditions import ConditionEvaluator
from segengine.segmentation.models import Operator, SegmentCondition, UserContext


def cond(field: str, operator: Operator | str, value: object) -> SegmentCondition:
    return SegmentCondition(field=field, operator=operator, value=value)


@pytest.fixture
def evaluator() -> ConditionEvaluator:
    return ConditionEvaluator()


@pytest.fixture
def context() -> UserContext:
    return UserContext(
        user_id="user-1",
        attributes={
            "plan": "premium",
            "totalSpent": 150,
            "tags": ["beta", "vip"],
            "nickname": None,
            "firstVisit": datetime(2024, 6, 1, tzinfo=UTC),
            "address": {"city": "Berlin"},
        },
        device={"type": "mobile", "browser": "Mobile Safari"},
        geo={"country": "DE"},
    )


class TestEquality:
    """equals and not_equals."""

    def test_equals(self, evaluator, context) -> None:
        """Test equals on text."""
        assert evaluator.evaluate(cond("attributes.plan", Operator.EQUALS, "premium"), context)
        assert not evaluator.evaluate(cond("attributes.plan", Operator.EQUALS, "free"), context)

    def test_equals_composite(self, evaluator, context) -> None:
        """Test equals on maps and lists."""
        assert evaluator.evaluate(
            cond("attributes.address", Operator.EQUALS, {"city": "Berlin"}), context
        )
        assert evaluator.evaluate(
            cond("attributes.tags", Operator.EQUALS, ["beta", "vip"]), context
        )

    def test_equals_absent_and_null(self, evaluator, context) -> None:
        """Test equals treats absent and null alike."""
        assert evaluator.evaluate(cond("attributes.missing", Operator.EQUALS, None), context)
        assert evaluator.evaluate(cond("attributes.nickname", Operator.EQUALS, None), context)
        assert not evaluator.evaluate(cond("attributes.missing", Operator.EQUALS, "x"), context)

    def test_equals_date_as_text(self, evaluator, context) -> None:
        """Test a date equals a stored ISO-8601 condition value."""
        assert evaluator.evaluate(
            cond("attributes.firstVisit", Operator.EQUALS, "2024-06-01T00:00:00+00:00"), context
        )
        assert evaluator.evaluate(
            cond("attributes.firstVisit", Operator.NOT_EQUALS, "2024-06-02T00:00:00+00:00"),
            context,
        )

    @pytest.mark.parametrize(
        "field,value",
        [
            ("attributes.plan", "premium"),
            ("attributes.plan", "free"),
            ("attributes.missing", None),
            ("attributes.missing", "x"),
            ("attributes.nickname", None),
            ("utm.source", "google"),
        ],
    )
    def test_not_equals_is_negation(self, evaluator, context, field, value) -> None:
        """Test not_equals always negates equals."""
        equals = evaluator.evaluate(cond(field, Operator.EQUALS, value), context)
        not_equals = evaluator.evaluate(cond(field, Operator.NOT_EQUALS, value), context)
        assert equals is not not_equals


class TestContains:
    """contains on lists and text."""

    def test_list_membership(self, evaluator, context) -> None:
        """Test contains on a list checks elements."""
        assert evaluator.evaluate(cond("attributes.tags", Operator.CONTAINS, "vip"), context)
        assert not evaluator.evaluate(cond("attributes.tags", Operator.CONTAINS, "vi"), context)

    def test_case_insensitive_substring(self, evaluator, context) -> None:
        """Test contains on text ignores case."""
        assert evaluator.evaluate(cond("device.browser", Operator.CONTAINS, "safari"), context)
        assert not evaluator.evaluate(cond("device.browser", Operator.CONTAINS, "Chrome"), context)

    def test_number_as_text(self, evaluator, context) -> None:
        """Test contains renders numbers as text."""
        assert evaluator.evaluate(cond("attributes.totalSpent", Operator.CONTAINS, "15"), context)

    def test_absent_is_false(self, evaluator, context) -> None:
        """Test contains on absent or null is false."""
        assert not evaluator.evaluate(cond("attributes.missing", Operator.CONTAINS, "x"), context)
        assert not evaluator.evaluate(cond("attributes.nickname", Operator.CONTAINS, "n"), context)


class TestOrdering:
    """gt, lt, gte and lte."""

    def test_numeric(self, evaluator, context) -> None:
        """Test numeric ordering, including numeric text."""
        assert evaluator.evaluate(cond("attributes.totalSpent", Operator.GT, 100), context)
        assert evaluator.evaluate(cond("attributes.totalSpent", Operator.GTE, 150), context)
        assert evaluator.evaluate(cond("attributes.totalSpent", Operator.LTE, "150"), context)
        assert not evaluator.evaluate(cond("attributes.totalSpent", Operator.LT, 150), context)

    def test_text(self, evaluator, context) -> None:
        """Test text ordering."""
        assert evaluator.evaluate(cond("attributes.plan", Operator.GT, "basic"), context)
        assert evaluator.evaluate(cond("attributes.plan", Operator.LT, "zeta"), context)

    def test_mixed_case_text(self, evaluator) -> None:
        """Test text ordering compares letters before case."""
        context = UserContext(attributes={"name": "apple"})
        assert evaluator.evaluate(cond("attributes.name", Operator.LT, "Banana"), context)
        assert not evaluator.evaluate(cond("attributes.name", Operator.GT, "Banana"), context)
        assert evaluator.evaluate(cond("attributes.name", Operator.GT, "Aardvark"), context)

    def test_instants(self, evaluator, context) -> None:
        """Test date ordering against dates and ISO text."""
        cutoff = datetime(2024, 5, 1, tzinfo=UTC)
        assert evaluator.evaluate(cond("attributes.firstVisit", Operator.GTE, cutoff), context)
        assert evaluator.evaluate(
            cond("attributes.firstVisit", Operator.GTE, cutoff.isoformat()), context
        )
        assert not evaluator.evaluate(
            cond("attributes.firstVisit", Operator.GT, cutoff + timedelta(days=60)), context
        )

    @pytest.mark.parametrize("operator", [Operator.GT, Operator.LT, Operator.GTE, Operator.LTE])
    def test_absent_never_matches(self, evaluator, context, operator) -> None:
        """Test ordering against absent or null never matches."""
        assert not evaluator.evaluate(cond("attributes.missing", operator, 0), context)
        assert not evaluator.evaluate(cond("attributes.nickname", operator, 0), context)


class TestMembership:
    """in and not_in."""

    def test_in(self, evaluator, context) -> None:
        """Test in."""
        assert evaluator.evaluate(cond("geo.country", Operator.IN, ["DE", "FR"]), context)
        assert not evaluator.evaluate(cond("geo.country", Operator.IN, ["US"]), context)

    def test_not_in(self, evaluator, context) -> None:
        """Test not_in."""
        assert evaluator.evaluate(cond("geo.country", Operator.NOT_IN, ["US"]), context)
        assert not evaluator.evaluate(cond("geo.country", Operator.NOT_IN, ["DE"]), context)

    def test_non_list_value(self, evaluator, context) -> None:
        """Test in with a non-list value."""
        assert not evaluator.evaluate(cond("geo.country", Operator.IN, "DE"), context)
        assert evaluator.evaluate(cond("geo.country", Operator.NOT_IN, "DE"), context)


class TestOperatorParsing:
    """Operator coercion and unknown operators."""

    def test_string_operator_is_coerced(self) -> None:
        """Test operator strings become operators."""
        assert cond("a", "gte", 1).operator is Operator.GTE

    def test_unknown_operator_is_false(self, evaluator, context) -> None:
        """Test an unknown operator never matches."""
        condition = cond("attributes.plan", "matches", "prem.*")
        assert condition.operator == "matches"
        assert not evaluator.evaluate(condition, context)

    def test_plain_mapping_context(self, evaluator) -> None:
        """Test evaluating against a plain mapping."""
        assert evaluator.evaluate(
            cond("device.type", Operator.EQUALS, "mobile"), {"device": {"type": "mobile"}}
        )
