"""
Context value model and path resolution.

Context data arrives as plain nested Python structures (dicts, lists,
scalars, datetimes). This module tags those values with a closed set of
kinds and provides the primitives the condition evaluator is built on:
path resolution, deep equality, numeric coercion, text coercion and
ordering.
"""

import json
import math
import re
import unicodedata
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from enum import Enum, auto
from typing import Any, Final

_PATH_TOKEN = re.compile(r"[^.\[\]]+")
_INDEX_TOKEN = re.compile(r"^\d+$")


class ValueType(Enum):
    """Kinds of values found in a context."""

    ABSENT = auto()  # Path did not resolve
    NULL = auto()
    BOOL = auto()
    NUMBER = auto()
    TEXT = auto()
    INSTANT = auto()
    LIST = auto()
    MAP = auto()


class _Absent:
    """Marker for a path that does not resolve. Distinct from ``None``."""

    _instance: "_Absent | None" = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT: Final = _Absent()


def value_type(value: Any) -> ValueType:
    """Classify a raw value."""
    if value is ABSENT:
        return ValueType.ABSENT
    if value is None:
        return ValueType.NULL
    if isinstance(value, bool):
        return ValueType.BOOL
    if isinstance(value, (int, float)):
        return ValueType.NUMBER
    if isinstance(value, str):
        return ValueType.TEXT
    if isinstance(value, datetime):
        return ValueType.INSTANT
    if isinstance(value, Mapping):
        return ValueType.MAP
    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        return ValueType.LIST
    return ValueType.TEXT


def is_nullish(value: Any) -> bool:
    """True for ``None`` and ``ABSENT``."""
    return value is None or value is ABSENT


def tokenize_path(path: str) -> list[str]:
    """Split ``a.b[0].c`` into ``["a", "b", "0", "c"]``."""
    return _PATH_TOKEN.findall(path)


def resolve(root: Any, path: str) -> Any:
    """
    Walk ``path`` through ``root``.

    Returns the located value (which may be ``None``) or ``ABSENT`` when
    the path leaves the structure: a missing key, a non-numeric or
    out-of-range list index, or a scalar reached before the last token.
    """
    current = root
    for key in tokenize_path(path):
        kind = value_type(current)
        if kind == ValueType.LIST:
            if not _INDEX_TOKEN.match(key):
                return ABSENT
            index = int(key)
            if index >= len(current):
                return ABSENT
            current = current[index]
        elif kind == ValueType.MAP:
            if key not in current:
                return ABSENT
            current = current[key]
        else:
            return ABSENT
    return current


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def parse_instant(value: Any) -> datetime | None:
    """Return ``value`` as an aware datetime, parsing ISO-8601 text."""
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return as_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def deep_equal(a: Any, b: Any) -> bool:
    """
    Structural equality over context values.

    Null-ish values equal only null-ish values. Instants compare by
    timestamp, and ISO-8601 text on the other side of an instant is
    parsed first. Lists and maps compare element-wise. Otherwise kinds
    must match, so ``True`` is not equal to ``1`` and ``"1"`` is not
    equal to ``1``.
    """
    if is_nullish(a) or is_nullish(b):
        return is_nullish(a) and is_nullish(b)

    if isinstance(a, datetime) or isinstance(b, datetime):
        instant_a, instant_b = parse_instant(a), parse_instant(b)
        if instant_a is None or instant_b is None:
            return False
        return instant_a.timestamp() == instant_b.timestamp()

    kind_a, kind_b = value_type(a), value_type(b)
    if kind_a != kind_b:
        return False

    match kind_a:
        case ValueType.LIST:
            return len(a) == len(b) and all(deep_equal(x, y) for x, y in zip(a, b))
        case ValueType.MAP:
            if set(a.keys()) != set(b.keys()):
                return False
            return all(deep_equal(a[k], b[k]) for k in a)
        case _:
            return a == b


def to_number(value: Any) -> float | None:
    """Coerce to a number, or ``None`` if the value is not numeric."""
    match value_type(value):
        case ValueType.BOOL:
            return 1.0 if value else 0.0
        case ValueType.NUMBER:
            number = float(value)
            return None if math.isnan(number) else number
        case ValueType.INSTANT:
            return as_utc(value).timestamp() * 1000
        case ValueType.TEXT:
            text = str(value).strip()
            if not text:
                return None
            try:
                number = float(text)
            except ValueError:
                return None
            return None if math.isnan(number) else number
        case _:
            return None


def to_text(value: Any) -> str:
    """Render a value as text for substring and lexicographic checks."""
    match value_type(value):
        case ValueType.ABSENT:
            return ""
        case ValueType.NULL:
            return "null"
        case ValueType.BOOL:
            return "true" if value else "false"
        case ValueType.NUMBER:
            if isinstance(value, float) and value.is_integer():
                return str(int(value))
            return str(value)
        case ValueType.INSTANT:
            return as_utc(value).isoformat()
        case ValueType.LIST:
            return ",".join(to_text(item) for item in value)
        case ValueType.MAP:
            return json.dumps(value, default=str, sort_keys=True)
        case _:
            return str(value)


def collation_key(text: str) -> tuple[str, str, str]:
    """
    Multi-level sort key for text, in the manner of a Unicode collator.

    Base letters decide first (case and accents ignored), then accents,
    then case with lowercase ahead of uppercase. ``"apple" < "Banana"``
    and ``"resume" < "résumé" < "Résumé"``.
    """
    decomposed = unicodedata.normalize("NFKD", text)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()
    return base, decomposed.casefold(), decomposed.swapcase()


def compare(a: Any, b: Any) -> float | None:
    """
    Order two values.

    Returns a negative, zero or positive number, or ``None`` when the
    values cannot be ordered (either side null-ish). Instants compare by
    timestamp, numeric values numerically, everything else by
    collation of their text (see :func:`collation_key`).
    """
    if is_nullish(a) or is_nullish(b):
        return None

    if isinstance(a, datetime) or isinstance(b, datetime):
        instant_a, instant_b = parse_instant(a), parse_instant(b)
        if instant_a is not None and instant_b is not None:
            return instant_a.timestamp() - instant_b.timestamp()

    num_a, num_b = to_number(a), to_number(b)
    if num_a is not None and num_b is not None:
        if num_a == num_b:
            return 0
        return -1 if num_a < num_b else 1

    key_a, key_b = collation_key(to_text(a)), collation_key(to_text(b))
    if key_a == key_b:
        return 0
    return -1 if key_a < key_b else 1
