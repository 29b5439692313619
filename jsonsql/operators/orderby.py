"""
OrderBy Operator

Stable multi-key sort with type-aware comparison.
"""

from collections.abc import Callable, Collection, Iterable, Iterator, Sequence
from functools import cmp_to_key
from typing import Any

from jsonsql.core.errors import TypeMismatchError
from jsonsql.core.record import Record, Scope
from jsonsql.core.types import compare_values
from jsonsql.operators.base import Operator
from jsonsql.operators.project import ProjectedRecord
from jsonsql.sql.ast_nodes import OrderKey, SortDirection


def _source_of(record: Record) -> Record:
    if isinstance(record, ProjectedRecord) and record.source is not None:
        return record.source
    return record


def compare_keys(left: Sequence[Any], right: Sequence[Any], order_keys: Sequence[OrderKey]) -> int:
    """
    Compare two lists of sort key values

    Null sorts before any non-null value whatever the direction; the
    direction only flips the order of non-null values.

    Raises:
        TypeMismatchError: Two non-null values of different types
    """
    for left_value, right_value, key in zip(left, right, order_keys):
        if left_value is None and right_value is None:
            continue
        if left_value is None:
            return -1
        if right_value is None:
            return 1

        try:
            result = compare_values(left_value, right_value)
        except TypeMismatchError as e:
            raise TypeMismatchError(f"ORDER BY {key.field}: {e}") from e

        if result:
            return -result if key.direction == SortDirection.DESC else result
    return 0


class OrderByOperator(Operator):
    """
    ORDER BY operator

    Sorts all input records by the order keys. Keys are read from the
    record the row was projected from, so they may name fields the SELECT
    list dropped; a key that only exists as an output name (a SELECT alias)
    is read from the projected record.

    Note: This operator materializes all records in memory (not lazy).
    """

    def __init__(
        self,
        child: Iterable[Record],
        order_keys: Sequence[OrderKey],
        scope: Scope,
        output_names: Collection[str] = (),
    ):
        """
        Initialize OrderBy operator

        Args:
            child: Child operator or record sequence
            order_keys: Sort keys, most significant first
            scope: Field resolution scope for the pre-projection records
            output_names: Keys produced by the SELECT list
        """
        super().__init__(child)
        self.order_keys = list(order_keys)
        self.scope = scope
        self.output_names = set(output_names)
        self._readers = [self._key_reader(key.field) for key in self.order_keys]

    def _known_in_source(self, ref: str) -> bool:
        head, _, rest = ref.partition(".")
        if rest and self.scope.is_bound(head):
            return True
        # A field several joined tables share is left to the output name
        return len(self.scope.owners(head)) == 1

    def _key_reader(self, ref: str) -> Callable[[Record], Any]:
        if ref in self.output_names and not self._known_in_source(ref):
            return lambda record: record.get(ref)
        return lambda record: self.scope.resolve(_source_of(record), ref)

    def __iter__(self) -> Iterator[Record]:
        """
        Execute ORDER BY sorting

        Yields:
            Records in sorted order; ties keep their input order
        """
        decorated = [([read(record) for read in self._readers], record) for record in self.child]

        def compare(left, right) -> int:
            return compare_keys(left[0], right[0], self.order_keys)

        # sorted() is stable
        for _, record in sorted(decorated, key=cmp_to_key(compare)):
            yield record

    def __repr__(self) -> str:
        order_spec = ", ".join(repr(key) for key in self.order_keys)
        return f"OrderBy({order_spec})"


def sort(records: Iterable[Record], order_keys: Sequence[OrderKey], scope: Scope | None = None) -> list[Record]:
    """
    Sort records by ORDER BY keys

    Args:
        records: Records to sort
        order_keys: Sort keys, most significant first
        scope: Field resolution scope; derived from the records when omitted

    Returns:
        New list in sorted order
    """
    records = list(records)
    output_names: set[str] = set()

    if scope is None:
        scope = Scope.from_records([_source_of(record) for record in records])
        for record in records:
            if isinstance(record, ProjectedRecord):
                output_names.update(record.keys())

    return list(OrderByOperator(records, order_keys, scope, output_names))
