"""
Join Operator

Implements hash-based equi-join for INNER and LEFT joins.

Hash Join Algorithm:
1. Build Phase: Scan right table and build hash table on join key
2. Probe Phase: Scan left records and probe hash table for matches
3. Output composite records with alias-qualified fields from both sides

The build phase always finishes before the first probe, so a LIMIT applied
further up the pipeline can never under-count matches.
"""

from collections.abc import Iterable, Iterator
from typing import Any

from jsonsql.core.errors import UnsupportedJoinPredicateError
from jsonsql.core.record import Record, Scope, TableBinding
from jsonsql.core.types import hash_key
from jsonsql.operators.base import Operator
from jsonsql.operators.scan import Scan
from jsonsql.sql.ast_nodes import Comparison, ConditionNode, FieldRef, JoinKind, JoinSpec


_LEFT_SIDE = object()


def join_keys(on: ConditionNode, joined_alias: str, scope: Scope) -> tuple[str, str]:
    """
    Split a JOIN predicate into (left field, right field)

    The predicate may be written in either order. The side that belongs to
    the joined table is the right-hand key.

    Raises:
        UnsupportedJoinPredicateError: Predicate is not a single field equality
            between the joined table and a table already in the query
    """
    if not (
        isinstance(on, Comparison)
        and on.operator == "="
        and isinstance(on.left, FieldRef)
        and isinstance(on.right, FieldRef)
    ):
        raise UnsupportedJoinPredicateError(
            f"JOIN {joined_alias} ON {on!r}: only a single field equality "
            f"(left.field = right.field) is supported"
        )

    first = scope.locate(on.left.name, "JOIN").alias
    second = scope.locate(on.right.name, "JOIN").alias

    if first is None and second is None:
        return on.left.name, on.right.name

    # A field no row carries belongs to whichever side is missing
    if first is None:
        first = joined_alias if second != joined_alias else _LEFT_SIDE
    if second is None:
        second = joined_alias if first != joined_alias else _LEFT_SIDE

    if second == joined_alias and first != joined_alias:
        return on.left.name, on.right.name
    if first == joined_alias and second != joined_alias:
        return on.right.name, on.left.name

    raise UnsupportedJoinPredicateError(
        f"JOIN {joined_alias} ON {on!r}: the condition must compare a field of "
        f"'{joined_alias}' with a field of a table joined before it"
    )


class HashJoinOperator(Operator):
    """
    Hash Join operator for equi-joins

    Supports:
    - INNER JOIN: Only left records with at least one match
    - LEFT JOIN: Every left record; unmatched ones get Null for all right fields

    Note: This operator materializes the right table in memory.
    """

    def __init__(self, left: Iterable[Record], right: Scan, spec: JoinSpec, scope: Scope):
        """
        Initialize Hash Join operator

        Args:
            left: Left input (a Scan or the output of a previous join)
            right: Scan over the joined table
            spec: JOIN clause being executed
            scope: Field resolution over every table bound so far
        """
        super().__init__(left)
        self.left = left
        self.right = right
        self.spec = spec
        self.scope = scope
        self.left_key, self.right_key = join_keys(spec.on, spec.joined_alias, scope)

    def __iter__(self) -> Iterator[Record]:
        """
        Execute hash join

        Yields:
            Composite records with fields from both sides
        """
        hash_table = self._build_hash_table()
        null_right = self._null_right_record()

        for left_record in self.left:
            key = hash_key(self.scope.resolve(left_record, self.left_key))
            matches = hash_table.get(key) if key is not None else None

            if matches:
                for right_record in matches:
                    yield left_record.merge(right_record)
            elif self.spec.kind == JoinKind.LEFT:
                yield left_record.merge(null_right)

    def _build_hash_table(self) -> dict[Any, list[Record]]:
        """
        Build hash table from right table

        Returns:
            Hash table mapping join key values to lists of matching records
        """
        hash_table: dict[Any, list[Record]] = {}

        for record in self.right:
            key = hash_key(self.scope.resolve(record, self.right_key))

            # NULL join keys can never match
            if key is None:
                continue

            hash_table.setdefault(key, []).append(record)

        return hash_table

    def _null_right_record(self) -> Record:
        alias = self.spec.joined_alias
        return Record((f"{alias}.{name}", None) for name in self.right.binding.field_names())

    def children(self) -> list[Operator]:
        children = super().children()
        children.append(self.right)
        return children

    def __repr__(self) -> str:
        return f"HashJoin({self.spec.kind}, {self.left_key} = {self.right_key})"


def join(
    left_records: Iterable[Record],
    right_records: Iterable[Any],
    spec: JoinSpec,
    scope: Scope | None = None,
) -> list[Record]:
    """
    Join two record sequences

    Args:
        left_records: Records from the FROM table or a previous join
        right_records: Rows of the joined table
        spec: JOIN clause
        scope: Field resolution scope; derived from the inputs when omitted

    Returns:
        Composite records in left-input order
    """
    left = list(left_records)
    right = TableBinding(spec.joined_alias, right_records)

    if scope is None:
        scope = Scope.from_records(left).extended(right)

    return list(HashJoinOperator(left, Scan(right), spec, scope))
