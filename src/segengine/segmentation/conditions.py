"""
Condition evaluation.

A condition is a single predicate (field, operator, value). The field is
resolved against the context; the operator decides how the resolved
value is tested. Evaluation never raises: anything that cannot be
decided is a non-match.
"""

from collections.abc import Callable, Mapping
from typing import Any

import structlog

from segengine.core.values import compare, deep_equal, is_nullish, resolve, to_text
from segengine.segmentation.models import Operator, SegmentCondition, UserContext

logger = structlog.get_logger()


def context_mapping(context: UserContext | Mapping[str, Any]) -> Mapping[str, Any]:
    """Normalize a context to the mapping condition paths resolve against."""
    if isinstance(context, UserContext):
        return context.as_mapping()
    return context


class ConditionEvaluator:
    """Evaluates leaf conditions against a context."""

    def __init__(self) -> None:
        self._log = logger.bind(component="condition_evaluator")

    def evaluate(
        self,
        condition: SegmentCondition,
        context: UserContext | Mapping[str, Any],
    ) -> bool:
        """Return whether ``context`` satisfies ``condition``."""
        actual = resolve(context_mapping(context), condition.field)
        expected = condition.value

        match condition.operator:
            case Operator.EQUALS:
                return deep_equal(actual, expected)
            case Operator.NOT_EQUALS:
                return not deep_equal(actual, expected)
            case Operator.CONTAINS:
                return self._contains(actual, expected)
            case Operator.GT:
                return self._ordered(actual, expected, lambda c: c > 0)
            case Operator.LT:
                return self._ordered(actual, expected, lambda c: c < 0)
            case Operator.GTE:
                return self._ordered(actual, expected, lambda c: c >= 0)
            case Operator.LTE:
                return self._ordered(actual, expected, lambda c: c <= 0)
            case Operator.IN:
                return self._is_in(actual, expected)
            case Operator.NOT_IN:
                return not self._is_in(actual, expected)
            case _:
                self._log.debug(
                    "unknown_operator",
                    operator=str(condition.operator),
                    field=condition.field,
                )
                return False

    @staticmethod
    def _contains(actual: Any, expected: Any) -> bool:
        if is_nullish(actual) or is_nullish(expected):
            return False
        if isinstance(actual, list | tuple):
            return any(deep_equal(item, expected) for item in actual)
        return to_text(expected).lower() in to_text(actual).lower()

    @staticmethod
    def _ordered(actual: Any, expected: Any, accept: Callable[[float], bool]) -> bool:
        # Absent or null on either side cannot be ordered
        result = compare(actual, expected)
        if result is None:
            return False
        return bool(accept(result))

    @staticmethod
    def _is_in(actual: Any, expected: Any) -> bool:
        if not isinstance(expected, list | tuple):
            return False
        return any(deep_equal(actual, item) for item in expected)
