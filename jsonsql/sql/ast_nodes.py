"""
Query plan node definitions

These dataclasses are the structured form of a parsed query. The parser
produces them and the executor consumes them; the executor never sees raw
SQL text.

Condition trees are a closed set of frozen variants (Comparison, And, Or,
Not, IsNull, InList, Like) whose leaves are FieldRef or Literal operands.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


COMPARISON_OPERATORS = ("=", "!=", ">", "<", ">=", "<=")


class JoinKind(Enum):
    INNER = "INNER"
    LEFT = "LEFT"

    def __str__(self) -> str:
        return self.value


class SortDirection(Enum):
    ASC = "ASC"
    DESC = "DESC"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class FieldRef:
    """Reference to a record field: name, alias.name or alias.name.nested"""

    name: str

    def __repr__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Literal:
    """A literal JSON scalar"""

    value: Any

    def __repr__(self) -> str:
        if self.value is None:
            return "NULL"
        if isinstance(self.value, bool):
            return "TRUE" if self.value else "FALSE"
        if isinstance(self.value, str):
            return "'" + self.value.replace("'", "''") + "'"
        return repr(self.value)


Operand = Union[FieldRef, Literal]


@dataclass(frozen=True)
class Comparison:
    """left operator right, operator in = != > < >= <="""

    left: Operand
    operator: str
    right: Operand

    def __repr__(self) -> str:
        return f"{self.left!r} {self.operator} {self.right!r}"


@dataclass(frozen=True)
class And:
    children: tuple

    def __repr__(self) -> str:
        return "(" + " AND ".join(repr(c) for c in self.children) + ")"


@dataclass(frozen=True)
class Or:
    children: tuple

    def __repr__(self) -> str:
        return "(" + " OR ".join(repr(c) for c in self.children) + ")"


@dataclass(frozen=True)
class Not:
    child: "ConditionNode"

    def __repr__(self) -> str:
        return f"NOT {self.child!r}"


@dataclass(frozen=True)
class IsNull:
    """operand IS NULL / operand IS NOT NULL"""

    operand: Operand
    negated: bool = False

    def __repr__(self) -> str:
        return f"{self.operand!r} IS {'NOT ' if self.negated else ''}NULL"


@dataclass(frozen=True)
class InList:
    """operand IN (v1, v2, ...) / operand NOT IN (...)"""

    operand: Operand
    values: tuple
    negated: bool = False

    def __repr__(self) -> str:
        values = ", ".join(repr(Literal(v)) for v in self.values)
        return f"{self.operand!r} {'NOT ' if self.negated else ''}IN ({values})"


@dataclass(frozen=True)
class Like:
    """operand LIKE 'pattern' with % and _ wildcards (ILIKE when case_insensitive)"""

    operand: Operand
    pattern: str
    case_insensitive: bool = False
    negated: bool = False

    def __repr__(self) -> str:
        keyword = "ILIKE" if self.case_insensitive else "LIKE"
        return f"{self.operand!r} {'NOT ' if self.negated else ''}{keyword} {Literal(self.pattern)!r}"


ConditionNode = Union[Comparison, And, Or, Not, IsNull, InList, Like]


@dataclass
class TableRef:
    """
    A table in FROM or JOIN

    Examples:
        orders          -> name='orders', alias=None
        orders o        -> name='orders', alias='o'
        'data/x.json' x -> name='data/x.json', alias='x'
    """

    name: str
    alias: str | None = None

    @property
    def effective_alias(self) -> str:
        """Name the query uses to refer to this table"""
        return self.alias if self.alias else self.name

    def __repr__(self) -> str:
        return f"{self.name} {self.alias}" if self.alias else self.name


@dataclass
class JoinSpec:
    """
    One JOIN clause

    Examples:
        INNER JOIN products p ON o.productId = p.id
        LEFT JOIN customers c ON o.customerId = c.id
    """

    table: TableRef
    kind: JoinKind
    on: ConditionNode

    @property
    def joined_alias(self) -> str:
        return self.table.effective_alias

    def __repr__(self) -> str:
        return f"{self.kind} JOIN {self.table!r} ON {self.on!r}"


@dataclass
class UnnestSpec:
    """
    One UNNEST table function in the FROM list

    Each element of the array becomes one row of the alias, held in a
    single column ("value" unless named).

    Examples:
        UNNEST(tags) AS t(tag)          -> array_field='tags', alias='t', column='tag'
        UNNEST(p.reviews) AS r          -> column='value'
    """

    array_field: str
    alias: str
    column: str = "value"

    def __repr__(self) -> str:
        return f"UNNEST({self.array_field}) AS {self.alias}({self.column})"


@dataclass
class SelectItem:
    """
    One entry of the SELECT list

    Examples:
        *               -> source_field='*'
        o.*             -> source_field='o.*'
        p.name          -> output name 'name'
        p.name AS label -> output name 'label'
    """

    source_field: str
    output_alias: str | None = None

    @property
    def is_wildcard(self) -> bool:
        return self.source_field == "*" or self.source_field.endswith(".*")

    @property
    def wildcard_alias(self) -> str | None:
        """Alias of a qualified wildcard (o.* -> 'o'), None for a bare *"""
        if self.source_field.endswith(".*"):
            return self.source_field[:-2]
        return None

    @property
    def output_name(self) -> str:
        """Alias if given, else the trailing component of the field name"""
        if self.output_alias:
            return self.output_alias
        return self.source_field.rsplit(".", 1)[-1]

    def __repr__(self) -> str:
        if self.output_alias:
            return f"{self.source_field} AS {self.output_alias}"
        return self.source_field


@dataclass
class OrderKey:
    """One ORDER BY key, e.g. price DESC"""

    field: str
    direction: SortDirection = SortDirection.ASC

    def __repr__(self) -> str:
        return f"{self.field} {self.direction}"


@dataclass
class QueryPlan:
    """
    Structured form of a complete query

    Examples:
        SELECT * FROM products WHERE price > 20
        SELECT name, tag FROM products, UNNEST(tags) AS t(tag)
        SELECT TOP 5 o.qty, p.name FROM orders o
            LEFT JOIN products p ON o.productId = p.id
            ORDER BY p.name ASC, o.qty DESC
    """

    from_table: TableRef
    joins: list[JoinSpec] = field(default_factory=list)
    where: ConditionNode | None = None
    select: list[SelectItem] = field(default_factory=lambda: [SelectItem("*")])
    order_by: list[OrderKey] = field(default_factory=list)
    limit: int | None = None
    unnests: list[UnnestSpec] = field(default_factory=list)

    @property
    def from_alias(self) -> str:
        return self.from_table.effective_alias

    def tables(self) -> list[TableRef]:
        """All tables in clause order: FROM first, then each JOIN (UNNEST reads no table)"""
        return [self.from_table] + [join.table for join in self.joins]

    def __repr__(self) -> str:
        parts = [f"SELECT {', '.join(repr(item) for item in self.select)}"]
        sources = [repr(self.from_table)] + [repr(unnest) for unnest in self.unnests]
        parts.append(f"FROM {', '.join(sources)}")
        for join in self.joins:
            parts.append(repr(join))
        if self.where is not None:
            parts.append(f"WHERE {self.where!r}")
        if self.order_by:
            parts.append(f"ORDER BY {', '.join(repr(key) for key in self.order_by)}")
        if self.limit is not None:
            parts.append(f"LIMIT {self.limit}")
        return " ".join(parts)
