"""Exact-match criteria evaluation for search.

Criteria are a mapping of dotted property paths to expected values, like
``{"name.last": "Prodromou", "age": 43}``. All pairs must match.

Equality is loose but deterministic:

- numbers (int and float, not bool) compare numerically
- strings compare as strings
- bools only equal bools
- ``None`` equals a missing property
- lists compare element by element and mappings key by key (same keys),
  with these same rules applied inside them
- anything else across kinds is unequal, so ``43`` never matches ``"43"``
"""

from collections.abc import Mapping
from numbers import Number
from typing import Any


class _Missing:
    """Marker for a property path that does not resolve."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def deep_property(value: Any, path: str) -> Any:
    """Resolve a dotted path through nested mappings.

    Returns `MISSING` when a segment is absent or an intermediate value is
    not a mapping.
    """
    current = value
    for segment in path.split("."):
        if not isinstance(current, Mapping) or segment not in current:
            return MISSING
        current = current[segment]
    return current


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def loose_equals(actual: Any, expected: Any) -> bool:
    """Compare a resolved property with an expected criteria value."""
    if actual is MISSING or actual is None:
        return expected is None or expected is MISSING
    if expected is None or expected is MISSING:
        return False

    if isinstance(actual, bool) or isinstance(expected, bool):
        return (
            isinstance(actual, bool)
            and isinstance(expected, bool)
            and actual == expected
        )
    if _is_number(actual) and _is_number(expected):
        return actual == expected
    if isinstance(actual, str) and isinstance(expected, str):
        return actual == expected
    if isinstance(actual, list | tuple) and isinstance(expected, list | tuple):
        return len(actual) == len(expected) and all(
            loose_equals(a, e) for a, e in zip(actual, expected)
        )
    if isinstance(actual, Mapping) and isinstance(expected, Mapping):
        return actual.keys() == expected.keys() and all(
            loose_equals(actual[k], expected[k]) for k in actual
        )

    return False


def matches_criteria(value: Any, criteria: Mapping[str, Any]) -> bool:
    """Check whether a decoded value matches every criteria pair."""
    for path, expected in criteria.items():
        if not loose_equals(deep_property(value, path), expected):
            return False
    return True
