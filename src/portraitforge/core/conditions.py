"""Comparison helpers shared by the parser, variable processor and theme registry.

A condition is a ``variable operator value`` triple.  The same operators are
used by ``{{#if}}`` blocks, variable dependencies and conditional prompt
modifiers, so they live here rather than in any one component.
"""

import re
from typing import Any

from .models import ConditionalRule

FALSY_STRINGS = frozenset({"false", "0", "no", "off", ""})

OPERATORS: tuple[str, ...] = (
    "equals",
    "not_equals",
    "contains",
    "in",
    "not_in",
    "greater_than",
    "less_than",
)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_INTEGER = re.compile(r"-?\d+")


def normalize_style_id(name: str) -> str:
    """Derive a registry id from a human-readable style name.

    Lowercases, collapses runs of non-alphanumerics into single hyphens and
    strips leading/trailing hyphens.

    Examples:
        >>> normalize_style_id("Classic & Timeless Wedding")
        'classic-timeless-wedding'
    """
    return _NON_ALNUM.sub("-", (name or "").lower()).strip("-")


def truthy(value: Any) -> bool:
    """Coerce a context value to a boolean.

    Strings such as ``"false"``, ``"0"``, ``"no"`` and ``"off"`` are false.
    """
    if isinstance(value, str):
        return value.strip().lower() not in FALSY_STRINGS
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) > 0
    return bool(value)


def is_empty(value: Any) -> bool:
    """Return True for ``None``, empty strings and empty collections."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def _as_list(value: Any) -> list:
    if isinstance(value, (list, tuple, set)):
        return list(value)
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [value]


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


def _equals(actual: Any, expected: Any) -> bool:
    if isinstance(expected, bool):
        return truthy(actual) == expected
    if actual == expected:
        return True
    return str(actual) == str(expected)


def compare(actual: Any, operator: str, expected: Any) -> bool:
    """Compare ``actual`` against ``expected`` with the named operator.

    Args:
        actual: Current value of the variable (may be None)
        operator: One of ``OPERATORS``
        expected: Comparison value; ``in``/``not_in`` accept a list or a
            comma-separated string

    Returns:
        True if the comparison holds

    Raises:
        ValueError: If the operator is unknown
    """
    if operator == "equals":
        return _equals(actual, expected)
    if operator == "not_equals":
        return not _equals(actual, expected)
    if operator == "contains":
        if actual is None:
            return False
        if isinstance(actual, (list, tuple, set)):
            return any(_equals(item, expected) for item in actual)
        return str(expected) in str(actual)
    if operator in ("in", "not_in"):
        members = _as_list(expected)
        found = any(_equals(actual, member) for member in members)
        return found if operator == "in" else not found
    if operator in ("greater_than", "less_than"):
        left, right = _to_number(actual), _to_number(expected)
        if left is None or right is None:
            return False
        return left > right if operator == "greater_than" else left < right
    raise ValueError(f"Unknown condition operator: {operator}")


def evaluate_condition(rule: ConditionalRule, variables: dict[str, Any]) -> bool:
    """Evaluate a conditional rule against resolved variables."""
    return compare(variables.get(rule.variable), rule.operator, rule.value)


def coerce_literal(raw: str) -> Any:
    """Convert a literal written in template text into a Python value.

    Quoted strings lose their quotes, ``true``/``false`` become booleans and
    integers become ints; everything else stays a string.
    """
    raw = raw.strip()
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in ("'", '"'):
        return raw[1:-1]
    lowered = raw.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if _INTEGER.fullmatch(raw):
        return int(raw)
    return raw


def parse_condition(expression: str) -> ConditionalRule:
    """Parse ``variable [operator value]`` into a ConditionalRule.

    A bare variable name means "is truthy". ``in``/``not_in`` values are
    comma-separated lists.

    Raises:
        ValueError: If the expression is empty or malformed
    """
    parts = expression.split(None, 2)
    if not parts:
        raise ValueError("Empty condition")

    variable = parts[0]
    if not _IDENTIFIER.match(variable):
        raise ValueError(f"Invalid condition variable '{variable}'")
    if len(parts) == 1:
        return ConditionalRule(variable=variable, operator="equals", value=True)

    operator = parts[1]
    if operator not in OPERATORS:
        raise ValueError(f"Unknown condition operator '{operator}'")

    raw_value = parts[2] if len(parts) == 3 else ""
    if operator in ("in", "not_in"):
        value: Any = [coerce_literal(item) for item in raw_value.split(",") if item.strip()]
    else:
        value = coerce_literal(raw_value)
    return ConditionalRule(variable=variable, operator=operator, value=value)
