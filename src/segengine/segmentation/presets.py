"""Predefined segments covering device, geography, behaviour and traffic source."""

from datetime import UTC, datetime, timedelta

from segengine.segmentation.models import MatchOperator, Operator, Segment, SegmentCondition

EU_COUNTRIES = ("DE", "FR", "IT", "ES", "NL", "BE", "PL", "SE", "DK", "FI")
PAID_MEDIUMS = ("cpc", "cpm", "ppc")
SOCIAL_SOURCES = ("facebook", "twitter", "instagram", "linkedin")

NEW_USER_WINDOW = timedelta(days=7)


def _segment(
    segment_id: str,
    name: str,
    *conditions: tuple[str, Operator, object],
    operator: MatchOperator = MatchOperator.AND,
) -> Segment:
    return Segment(
        id=segment_id,
        name=name,
        conditions=tuple(SegmentCondition(field=f, operator=o, value=v) for f, o, v in conditions),
        operator=operator,
    )


def common_segments(now: datetime | None = None) -> list[Segment]:
    """
    The standard segment set.

    ``new_users`` is anchored at ``now`` (default: the current time) and
    matches contexts whose ``attributes.firstVisit`` falls within the last
    seven days.
    """
    now = now or datetime.now(UTC)
    return [
        # Device
        _segment("mobile_users", "Mobile Users", ("device.type", Operator.EQUALS, "mobile")),
        _segment("desktop_users", "Desktop Users", ("device.type", Operator.EQUALS, "desktop")),
        # Geography
        _segment("us_users", "US Users", ("geo.country", Operator.EQUALS, "US")),
        _segment("eu_users", "EU Users", ("geo.country", Operator.IN, list(EU_COUNTRIES))),
        # Behaviour
        _segment(
            "new_users",
            "New Users",
            ("attributes.firstVisit", Operator.GTE, now - NEW_USER_WINDOW),
        ),
        _segment("returning_users", "Returning Users", ("attributes.visitCount", Operator.GT, 1)),
        _segment(
            "high_value_users",
            "High Value Users",
            ("attributes.totalSpent", Operator.GTE, 100),
            ("attributes.purchaseCount", Operator.GTE, 3),
            operator=MatchOperator.OR,
        ),
        # Traffic source
        _segment("organic_traffic", "Organic Traffic", ("utm.medium", Operator.EQUALS, "organic")),
        _segment("paid_traffic", "Paid Traffic", ("utm.medium", Operator.IN, list(PAID_MEDIUMS))),
        _segment(
            "social_traffic", "Social Traffic", ("utm.source", Operator.IN, list(SOCIAL_SOURCES))
        ),
        # Browser
        _segment("chrome_users", "Chrome Users", ("device.browser", Operator.CONTAINS, "Chrome")),
        _segment("safari_users", "Safari Users", ("device.browser", Operator.CONTAINS, "Safari")),
    ]
