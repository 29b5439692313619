"""
Scan operator - reads records from a table binding

This is a leaf operator (has no child).
"""

from collections.abc import Iterator

from jsonsql.core.record import Record, TableBinding
from jsonsql.operators.base import Operator


class Scan(Operator):
    """
    Scan operator - wrapper around a TableBinding

    Yields the binding's rows as Records tagged with the table alias.
    """

    def __init__(self, binding: TableBinding):
        super().__init__(child=None)
        self.binding = binding

    def __iter__(self) -> Iterator[Record]:
        yield from self.binding.records()

    def __repr__(self) -> str:
        if self.binding.table_name and self.binding.table_name != self.binding.alias:
            return f"Scan({self.binding.table_name} AS {self.binding.alias})"
        return f"Scan({self.binding.alias})"
