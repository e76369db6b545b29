"""
Comparable values and the operator dispatch table.

Response data arrives as arbitrary decoded JSON. Every actual value is wrapped
in a ``ComparableValue`` tagged with its kind so each operator can branch on
the kind explicitly instead of duck-typing. Coercions follow the loose rules
users expect from browser tooling: ``200`` equals ``"200"``, ``True`` prints
as ``"true"`` and a missing value is distinct from ``null``.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from stressbench.models import RuleOperator


class _Undefined:
    """Marker for a value that is absent (as opposed to JSON null)."""

    _instance: Optional["_Undefined"] = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()


class ValueKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    BOOL = "bool"
    NULL = "null"
    LIST = "list"
    MAP = "map"
    UNDEFINED = "undefined"


def _number_to_text(value: float | int) -> str:
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def to_text(value: Any) -> str:
    """Coerce a raw value to text the way a browser's String() would."""
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _number_to_text(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ",".join(
            "" if item is None or item is UNDEFINED else to_text(item) for item in value
        )
    if isinstance(value, dict):
        return compact_json(value)
    return str(value)


def to_number(value: Any) -> float:
    """Coerce a raw value to a float; unparseable values become NaN."""
    if value is UNDEFINED:
        return math.nan
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return 0.0
        try:
            return float(stripped)
        except ValueError:
            return math.nan
    if isinstance(value, (list, tuple)):
        if len(value) == 0:
            return 0.0
        if len(value) == 1:
            return to_number(value[0])
    return math.nan


def compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def strict_equal(a: Any, b: Any) -> bool:
    """Equality that does not conflate booleans with numbers."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    if type(a) is not type(b):
        return False
    return a == b


@dataclass(frozen=True)
class ComparableValue:
    """An actual value tagged with its kind."""

    kind: ValueKind
    value: Any

    @classmethod
    def of(cls, value: Any) -> "ComparableValue":
        if value is UNDEFINED:
            return cls(ValueKind.UNDEFINED, UNDEFINED)
        if value is None:
            return cls(ValueKind.NULL, None)
        if isinstance(value, bool):
            return cls(ValueKind.BOOL, value)
        if isinstance(value, (int, float)):
            return cls(ValueKind.NUMBER, value)
        if isinstance(value, str):
            return cls(ValueKind.TEXT, value)
        if isinstance(value, (list, tuple)):
            return cls(ValueKind.LIST, list(value))
        if isinstance(value, dict):
            return cls(ValueKind.MAP, value)
        return cls(ValueKind.TEXT, str(value))

    @property
    def is_missing(self) -> bool:
        return self.kind in (ValueKind.NULL, ValueKind.UNDEFINED)

    def as_text(self) -> str:
        return to_text(self.value)

    def as_number(self) -> float:
        return to_number(self.value)

    def contains(self, expected: Any) -> Optional[bool]:
        """
        Containment test; None when containment is meaningless (undefined).

        Lists use strict membership, maps a substring test over their compact
        JSON form, and every primitive is stringified before the substring test.
        """
        if self.kind == ValueKind.UNDEFINED:
            return None
        if self.kind == ValueKind.LIST:
            return any(strict_equal(item, expected) for item in self.value)
        if self.kind == ValueKind.MAP:
            return to_text(expected) in compact_json(self.value)
        return to_text(expected) in self.as_text()


OperatorFn = Callable[[ComparableValue, Any], bool]


def _equals(actual: ComparableValue, expected: Any) -> bool:
    return actual.as_text() == to_text(expected)


def _not_equals(actual: ComparableValue, expected: Any) -> bool:
    return actual.as_text() != to_text(expected)


def _contains(actual: ComparableValue, expected: Any) -> bool:
    return actual.contains(expected) is True


def _not_contains(actual: ComparableValue, expected: Any) -> bool:
    return actual.contains(expected) is False


def _greater_than(actual: ComparableValue, expected: Any) -> bool:
    return actual.as_number() > to_number(expected)


def _less_than(actual: ComparableValue, expected: Any) -> bool:
    return actual.as_number() < to_number(expected)


def _greater_than_or_equal(actual: ComparableValue, expected: Any) -> bool:
    return actual.as_number() >= to_number(expected)


def _less_than_or_equal(actual: ComparableValue, expected: Any) -> bool:
    return actual.as_number() <= to_number(expected)


def _exists(actual: ComparableValue, expected: Any) -> bool:
    return not actual.is_missing


def _not_exists(actual: ComparableValue, expected: Any) -> bool:
    return actual.is_missing


def _regex(actual: ComparableValue, expected: Any) -> bool:
    if actual.kind != ValueKind.TEXT:
        return False
    return re.search(to_text(expected), actual.value, re.IGNORECASE) is not None


# jsonPath and custom need the whole response, so the engine handles them.
OPERATORS: dict[str, OperatorFn] = {
    RuleOperator.EQUALS.value: _equals,
    RuleOperator.NOT_EQUALS.value: _not_equals,
    RuleOperator.CONTAINS.value: _contains,
    RuleOperator.NOT_CONTAINS.value: _not_contains,
    RuleOperator.GREATER_THAN.value: _greater_than,
    RuleOperator.LESS_THAN.value: _less_than,
    RuleOperator.GREATER_THAN_OR_EQUAL.value: _greater_than_or_equal,
    RuleOperator.LESS_THAN_OR_EQUAL.value: _less_than_or_equal,
    RuleOperator.EXISTS.value: _exists,
    RuleOperator.NOT_EXISTS.value: _not_exists,
    RuleOperator.REGEX.value: _regex,
}


def apply_operator(operator: str, actual: Any, expected: Any) -> bool:
    """
    Apply a comparison operator to a raw actual value.

    Raises:
        KeyError: If the operator is not table-dispatched
    """
    fn = OPERATORS[RuleOperator(operator).value]
    return fn(ComparableValue.of(actual), expected)
