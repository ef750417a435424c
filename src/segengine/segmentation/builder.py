"""Fluent construction of segment definitions."""

from collections.abc import Iterable
from typing import Any, Self

from segengine.core.exceptions import ValidationError
from segengine.segmentation.models import (
    MatchOperator,
    Operator,
    SegmentCondition,
    SegmentDefinition,
    parse_match_operator,
)


class SegmentBuilder:
    """
    Accumulates conditions and produces a validated :class:`SegmentDefinition`.

    Example::

        definition = (
            SegmentBuilder()
            .with_name("High Value Users")
            .with_operator("OR")
            .where_greater_or_equal("attributes.totalSpent", 100)
            .where_greater_or_equal("attributes.purchaseCount", 3)
            .build()
        )
    """

    def __init__(self) -> None:
        self._name = ""
        self._operator = MatchOperator.AND
        self._conditions: list[SegmentCondition] = []

    def with_name(self, name: str) -> Self:
        self._name = name
        return self

    def with_operator(self, operator: MatchOperator | str) -> Self:
        try:
            self._operator = parse_match_operator(operator)
        except ValueError as e:
            raise ValidationError("operator", f"expected AND or OR, got {operator!r}") from e
        return self

    def where(self, field: str, operator: Operator | str, value: Any) -> Self:
        self._conditions.append(SegmentCondition(field=field, operator=operator, value=value))
        return self

    def where_equals(self, field: str, value: Any) -> Self:
        return self.where(field, Operator.EQUALS, value)

    def where_not_equals(self, field: str, value: Any) -> Self:
        return self.where(field, Operator.NOT_EQUALS, value)

    def where_contains(self, field: str, value: Any) -> Self:
        return self.where(field, Operator.CONTAINS, value)

    def where_greater_than(self, field: str, value: Any) -> Self:
        return self.where(field, Operator.GT, value)

    def where_less_than(self, field: str, value: Any) -> Self:
        return self.where(field, Operator.LT, value)

    def where_greater_or_equal(self, field: str, value: Any) -> Self:
        return self.where(field, Operator.GTE, value)

    def where_less_or_equal(self, field: str, value: Any) -> Self:
        return self.where(field, Operator.LTE, value)

    def where_in(self, field: str, values: Iterable[Any]) -> Self:
        return self.where(field, Operator.IN, list(values))

    def where_not_in(self, field: str, values: Iterable[Any]) -> Self:
        return self.where(field, Operator.NOT_IN, list(values))

    def build(self) -> SegmentDefinition:
        """Validate and return the definition."""
        if not self._name or not self._name.strip():
            raise ValidationError("name", "Segment name is required")
        if not self._conditions:
            raise ValidationError("conditions", "At least one condition is required")

        return SegmentDefinition(
            name=self._name,
            conditions=tuple(self._conditions),
            operator=self._operator,
        )
