"""Tests for the fluent segment builder."""

import pytest

from segengine.core.exceptions import ValidationError
from segengine.segmentation.builder import SegmentBuilder
from segengine.segmentation.catalog import SegmentCatalog
from segengine.segmentation.evaluator import SegmentEvaluator
from segengine.segmentation.models import (
    MatchOperator,
    Operator,
    SegmentCondition,
    SegmentDefinition,
    UserContext,
)


class TestSegmentBuilder:
    """SegmentBuilder tests."""

    def test_build(self) -> None:
        """Test building a simple AND definition."""
        definition = (
            SegmentBuilder()
            .with_name("Premium Mobile")
            .where_equals("attributes.plan", "premium")
            .where_equals("device.type", "mobile")
            .build()
        )
        assert definition.name == "Premium Mobile"
        assert definition.operator == MatchOperator.AND
        assert [c.field for c in definition.conditions] == ["attributes.plan", "device.type"]

    def test_all_helpers(self) -> None:
        """Test each helper adds its operator in order."""
        definition = (
            SegmentBuilder()
            .with_name("Everything")
            .where_equals("a", 1)
            .where_not_equals("b", 2)
            .where_contains("c", "x")
            .where_greater_than("d", 1)
            .where_less_than("e", 1)
            .where_greater_or_equal("f", 1)
            .where_less_or_equal("g", 1)
            .where_in("h", ("x", "y"))
            .where_not_in("i", ["z"])
            .build()
        )
        assert [c.operator for c in definition.conditions] == list(Operator)
        assert definition.conditions[7].value == ["x", "y"]

    def test_operator_case_insensitive(self) -> None:
        """Test the match operator is parsed case-insensitively."""
        definition = SegmentBuilder().with_name("n").with_operator("or").where_equals("a", 1).build()
        assert definition.operator == MatchOperator.OR

    def test_invalid_operator(self) -> None:
        """Test an unknown match operator is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            SegmentBuilder().with_operator("XOR")
        assert exc_info.value.field == "operator"

    @pytest.mark.parametrize("name", ["", "   "])
    def test_name_required(self, name) -> None:
        """Test building without a name fails."""
        with pytest.raises(ValidationError) as exc_info:
            SegmentBuilder().with_name(name).where_equals("a", 1).build()
        assert exc_info.value.field == "name"

    def test_conditions_required(self) -> None:
        """Test building without conditions fails."""
        with pytest.raises(ValidationError) as exc_info:
            SegmentBuilder().with_name("Empty").build()
        assert exc_info.value.field == "conditions"

    def test_built_equals_direct_definition(self) -> None:
        """Test a built definition behaves like one constructed directly."""
        built = (
            SegmentBuilder()
            .with_name("High Value")
            .with_operator(MatchOperator.OR)
            .where_greater_or_equal("attributes.totalSpent", 100)
            .where_greater_or_equal("attributes.purchaseCount", 3)
            .build()
        )
        direct = SegmentDefinition(
            name="High Value",
            operator=MatchOperator.OR,
            conditions=(
                SegmentCondition(field="attributes.totalSpent", operator=Operator.GTE, value=100),
                SegmentCondition(field="attributes.purchaseCount", operator=Operator.GTE, value=3),
            ),
        )
        assert built == direct

        evaluator = SegmentEvaluator(SegmentCatalog())
        for attributes in ({"totalSpent": 150}, {"purchaseCount": 5}, {"totalSpent": 1}, {}):
            context = UserContext(attributes=attributes)
            assert evaluator.evaluate_segment(built, context) == evaluator.evaluate_segment(
                direct, context
            )
