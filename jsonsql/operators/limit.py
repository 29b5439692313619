"""
Limit operator - implements TOP / LIMIT

Yields only the first N records, then stops.
"""

from collections.abc import Iterable, Iterator
from itertools import islice
from typing import Any

from jsonsql.core.errors import InvalidLimitError
from jsonsql.core.record import Record
from jsonsql.operators.base import Operator


def check_limit(value: Any) -> int:
    """
    Validate a LIMIT/TOP value

    Raises:
        InvalidLimitError: If value is not a non-negative integer
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidLimitError(f"LIMIT must be an integer, got {value!r}")
    if value < 0:
        raise InvalidLimitError(f"LIMIT must be non-negative, got {value}")
    return value


class Limit(Operator):
    """
    Limit operator - restricts number of records

    Stops pulling from its child as soon as enough records were yielded,
    so placed directly over a lazy Filter it ends the scan early.
    """

    def __init__(self, child: Iterable[Record], limit: int):
        """
        Initialize limit operator

        Args:
            child: Child operator or record sequence
            limit: Maximum number of records to yield
        """
        super().__init__(child)
        self.limit = check_limit(limit)

    def __iter__(self) -> Iterator[Record]:
        yield from islice(self.child, self.limit)

    def __repr__(self) -> str:
        return f"Limit({self.limit})"


def limit(records: Iterable[Record], n: int) -> list[Record]:
    """First n records, or all of them if there are fewer"""
    return list(Limit(records, n))
