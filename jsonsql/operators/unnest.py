"""
Unnest Operator

Expands an array field into one row per element, like a lateral join
between each input record and its own array.
"""

from collections.abc import Iterable, Iterator
from typing import Any

from jsonsql.core.record import Record, Scope
from jsonsql.operators.base import Operator
from jsonsql.sql.ast_nodes import UnnestSpec


class UnnestOperator(Operator):
    """
    UNNEST operator

    For every input record, reads the array field and yields the record
    merged with ``alias.column = element`` once per element, in array order.
    A record whose field is missing, null, an empty array or not an array
    at all yields nothing.
    """

    def __init__(self, child: Iterable[Record], spec: UnnestSpec, scope: Scope):
        """
        Initialize Unnest operator

        Args:
            child: FROM scan or the output of a previous UNNEST
            spec: UNNEST clause being executed
            scope: Field resolution over everything bound before this UNNEST
        """
        super().__init__(child)
        self.spec = spec
        self.scope = scope

    def __iter__(self) -> Iterator[Record]:
        for record in self.child:
            for element in self.elements(record):
                yield record.merge(Record({self.spec.column: element}, alias=self.spec.alias))

    def elements(self, record: Record) -> list[Any]:
        value = self.scope.resolve(record, self.spec.array_field)
        return value if isinstance(value, list) else []

    def __repr__(self) -> str:
        return f"Unnest({self.spec.array_field} AS {self.spec.alias}.{self.spec.column})"


def unnest(records: Iterable[Record], spec: UnnestSpec, scope: Scope | None = None) -> list[Record]:
    """
    Expand an array field of each record

    Args:
        records: Input records
        spec: UNNEST clause
        scope: Field resolution scope; derived from the records when omitted

    Returns:
        Composite records, one per array element
    """
    records = list(records)
    if scope is None:
        scope = Scope.from_records(records)
    return list(UnnestOperator(records, spec, scope))
