"""
Data model for segments, contexts, experiments and results.

Segments and events are persisted as plain rows; the ``from_row`` /
``to_row`` helpers translate between rows and models. Result models
serialize with camelCase aliases for the API layer.
"""

import json
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Operator(str, Enum):
    """Leaf predicate operators."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    IN = "in"
    NOT_IN = "not_in"


class MatchOperator(str, Enum):
    """How a segment combines its conditions."""

    AND = "AND"
    OR = "OR"


def _coerce_operator(value: Any) -> Any:
    if isinstance(value, str) and not isinstance(value, Operator):
        try:
            return Operator(value)
        except ValueError:
            return value
    return value


class SegmentCondition(BaseModel):
    """
    One leaf predicate: ``field`` resolved against the context, tested
    with ``operator`` against ``value``.

    Operators that are not part of :class:`Operator` (e.g. from rows
    written by a newer client) are kept verbatim and evaluate to false.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    field: str
    operator: Operator | str
    value: Any = None

    @field_validator("operator", mode="before")
    @classmethod
    def _known_operator(cls, value: Any) -> Any:
        return _coerce_operator(value)

    def to_row(self) -> dict[str, Any]:
        operator = self.operator.value if isinstance(self.operator, Operator) else self.operator
        return {
            "field": self.field,
            "operator": operator,
            "value": _jsonable(self.value),
        }


def _jsonable(value: Any) -> Any:
    """Shape a condition value the way a JSON column stores it."""
    if isinstance(value, tuple | list):
        return [_jsonable(v) for v in value]
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def parse_match_operator(value: Any) -> MatchOperator:
    """Parse ``AND`` / ``OR`` case-insensitively. Raises ValueError otherwise."""
    if isinstance(value, MatchOperator):
        return value
    return MatchOperator(str(value).upper())


def _coerce_match_operator(value: Any) -> Any:
    if value is None:
        return MatchOperator.AND
    if isinstance(value, str):
        return parse_match_operator(value)
    return value


class SegmentDefinition(BaseModel):
    """A segment without an id, as produced by the builder."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    conditions: tuple[SegmentCondition, ...] = Field(default_factory=tuple)
    operator: MatchOperator = MatchOperator.AND

    @field_validator("operator", mode="before")
    @classmethod
    def _normalize_operator(cls, value: Any) -> Any:
        return _coerce_match_operator(value)

    def to_row(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "conditions": [c.to_row() for c in self.conditions],
            "operator": self.operator.value,
        }


class Segment(SegmentDefinition):
    """A named, rule-defined audience."""

    id: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Segment":
        conditions = row.get("conditions") or ()
        if isinstance(conditions, str):
            conditions = json.loads(conditions)
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            conditions=tuple(conditions),
            operator=row.get("operator"),
        )

    def to_row(self) -> dict[str, Any]:
        return {"id": self.id, **super().to_row()}

    def definition(self) -> SegmentDefinition:
        return SegmentDefinition(name=self.name, conditions=self.conditions, operator=self.operator)


class UserContext(BaseModel):
    """
    The attribute bag describing the user or session being segmented.

    Condition fields are resolved against :meth:`as_mapping`, so paths use
    the camelCase top-level names (``userId``, ``attributes.plan``,
    ``device.type``, ``utm.source``).
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    user_id: str | None = None
    session_id: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)
    device: dict[str, Any] | None = None
    geo: dict[str, Any] | None = None
    utm: dict[str, Any] | None = None
    referrer: str | None = None

    @property
    def identity(self) -> str | None:
        """The user id, falling back to the session id."""
        return self.user_id or self.session_id

    def as_mapping(self) -> dict[str, Any]:
        """Context as a nested mapping; unset optional parts are omitted."""
        mapping: dict[str, Any] = {"attributes": self.attributes}
        for name, key in (
            ("user_id", "userId"),
            ("session_id", "sessionId"),
            ("device", "device"),
            ("geo", "geo"),
            ("utm", "utm"),
            ("referrer", "referrer"),
        ):
            value = getattr(self, name)
            if value is not None:
                mapping[key] = value
        return mapping


class Variant(BaseModel):
    """One treatment arm of an experiment."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str


class Experiment(BaseModel):
    """Experiment metadata needed for reporting."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    variants: tuple[Variant, ...] = Field(default_factory=tuple)

    @field_validator("variants", mode="before")
    @classmethod
    def _default_variants(cls, value: Any) -> Any:
        if isinstance(value, str):
            return json.loads(value)
        return () if value is None else value

    @property
    def variant_names(self) -> dict[str, str]:
        return {v.id: v.name for v in self.variants}


class ExposureEvent(BaseModel):
    """A record that a variant was shown to a context."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    experiment_id: str
    variant_id: str
    context: dict[str, Any] = Field(default_factory=dict)

    @field_validator("context", mode="before")
    @classmethod
    def _default_context(cls, value: Any) -> Any:
        if isinstance(value, str):
            return json.loads(value)
        return {} if value is None else value

    @property
    def segments(self) -> list[str]:
        """Segment ids tagged on the event when it was recorded."""
        return list(self.context.get("segments") or [])


class ConversionEvent(ExposureEvent):
    """A record that an exposed context achieved a metric."""

    metric_id: str


class _ResultModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class MetricResult(_ResultModel):
    """Conversion statistics for one metric of one variant."""

    value: float
    conversions: int
    conversion_rate: float


class VariantResult(_ResultModel):
    """Exposure and conversion counts for one variant."""

    variant_id: str
    variant_name: str
    exposures: int = 0
    conversions: dict[str, int] = Field(default_factory=dict)
    metrics: dict[str, MetricResult] = Field(default_factory=dict)


class SegmentResults(_ResultModel):
    """Per-variant performance of an experiment within one segment."""

    segment_id: str
    segment_name: str
    exposures: int
    variants: list[VariantResult] = Field(default_factory=list)

    def variant(self, variant_id: str) -> VariantResult | None:
        for result in self.variants:
            if result.variant_id == variant_id:
                return result
        return None
