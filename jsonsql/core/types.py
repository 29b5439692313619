"""Value typing for jsonsql.

Record values are the plain Python objects produced by the ``json`` module.
This module classifies them and implements the type-aware equality and
ordering rules shared by WHERE, JOIN and ORDER BY.
"""

import json
from enum import Enum
from typing import Any

from jsonsql.core.errors import TypeMismatchError


class ValueType(Enum):
    """JSON value types known to the engine."""

    STRING = "STRING"
    NUMBER = "NUMBER"
    BOOLEAN = "BOOLEAN"
    NULL = "NULL"

    # Nested JSON carried through records untouched
    OBJECT = "OBJECT"
    ARRAY = "ARRAY"

    def __str__(self) -> str:
        return self.value

    def is_scalar(self) -> bool:
        """Check if type is a JSON scalar (including NULL)."""
        return self not in (ValueType.OBJECT, ValueType.ARRAY)

    def is_orderable(self) -> bool:
        """Check if values of this type have a defined sort order."""
        return self in (ValueType.STRING, ValueType.NUMBER, ValueType.BOOLEAN)


def value_type(value: Any) -> ValueType:
    """Classify a value.

    ``bool`` must be tested before numbers: in Python ``True`` is an ``int``.

    Args:
        value: Value taken from a record or a literal

    Returns:
        The ValueType of the value
    """
    if value is None:
        return ValueType.NULL
    if isinstance(value, bool):
        return ValueType.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueType.NUMBER
    if isinstance(value, str):
        return ValueType.STRING
    if isinstance(value, dict):
        return ValueType.OBJECT
    if isinstance(value, (list, tuple)):
        return ValueType.ARRAY
    # Anything else (Decimal, date, ...) behaves like its text form
    return ValueType.STRING


def values_equal(left: Any, right: Any) -> bool:
    """Type-aware equality.

    Null is never equal to anything, including Null. Values of different
    types are never equal.
    """
    left_type = value_type(left)
    right_type = value_type(right)

    if left_type == ValueType.NULL or right_type == ValueType.NULL:
        return False
    if left_type != right_type:
        return False
    if left_type == ValueType.STRING:
        return str(left) == str(right)
    return left == right


def compare_values(left: Any, right: Any) -> int:
    """Compare two non-null values of the same orderable type.

    Numbers compare numerically, strings lexically and booleans with
    ``False < True``.

    Returns:
        -1, 0 or 1

    Raises:
        TypeMismatchError: If the types differ or are not orderable
    """
    left_type = value_type(left)
    right_type = value_type(right)

    if left_type != right_type:
        raise TypeMismatchError(
            f"Cannot compare {left_type} value {left!r} with {right_type} value {right!r}"
        )
    if not left_type.is_orderable():
        raise TypeMismatchError(f"{left_type} values cannot be ordered")

    if left_type == ValueType.STRING:
        left, right = str(left), str(right)

    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def hash_key(value: Any) -> tuple | None:
    """Build a hashable key that respects :func:`values_equal`.

    The type tag keeps ``True`` and ``1`` apart. Nested values are keyed by
    their canonical JSON text.

    Returns:
        Hashable key, or None for Null (which never matches)
    """
    vtype = value_type(value)

    if vtype == ValueType.NULL:
        return None
    if vtype == ValueType.STRING:
        return (vtype, str(value))
    if not vtype.is_scalar():
        return (vtype, json.dumps(value, sort_keys=True, default=str))
    return (vtype, value)
