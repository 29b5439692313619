"""
Query Executor - runs a QueryPlan against bound tables

Takes a parsed QueryPlan plus one resolved record sequence per table alias
and drives the pipeline stage by stage:

    BindTables -> ApplyJoins -> ApplyWhere -> ApplySelect
        -> ApplyOrderBy -> ApplyLimit -> Done

ApplyJoins expands every UNNEST before running the JOINs, so a JOIN
condition may use an unnested column.

Each stage wraps the previous stage's output in an operator and, during
execution, materializes it before the next stage starts. Any failure moves
the run to the Error state and propagates; nothing is returned for a failed
query.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from jsonsql.core.errors import AmbiguousFieldError, QueryError, UnboundAliasError
from jsonsql.core.record import Record, Scope, TableBinding
from jsonsql.operators.base import Operator
from jsonsql.operators.filter import Filter, check_condition
from jsonsql.operators.join import HashJoinOperator, join_keys
from jsonsql.operators.limit import Limit, check_limit
from jsonsql.operators.orderby import OrderByOperator
from jsonsql.operators.project import Project, output_names
from jsonsql.operators.scan import Scan
from jsonsql.operators.unnest import UnnestOperator
from jsonsql.sql.ast_nodes import QueryPlan

Bindings = Union[Mapping[str, Union[TableBinding, Sequence[Mapping[str, Any]]]], Iterable[TableBinding]]


class ExecutionState(Enum):
    BIND_TABLES = "BindTables"
    APPLY_JOINS = "ApplyJoins"
    APPLY_WHERE = "ApplyWhere"
    APPLY_SELECT = "ApplySelect"
    APPLY_ORDER_BY = "ApplyOrderBy"
    APPLY_LIMIT = "ApplyLimit"
    DONE = "Done"
    ERROR = "Error"

    def __str__(self) -> str:
        return self.value


@dataclass
class ExecutionContext:
    """
    Everything one query invocation owns

    A context is created per call and discarded afterwards; the executor
    itself keeps no state between queries.
    """

    plan: QueryPlan
    bindings: dict[str, TableBinding]
    materialize: bool = True
    state: ExecutionState = ExecutionState.BIND_TABLES
    visited: list[ExecutionState] = field(default_factory=list)
    scope: Scope | None = None
    aliases: list[str] = field(default_factory=list)
    records: Any = None
    limit_applied: bool = False

    @property
    def result(self) -> list[Record]:
        if self.state != ExecutionState.DONE:
            raise QueryError(f"Query has not completed (state: {self.state})")
        return self.records


def index_bindings(bindings: Bindings) -> dict[str, TableBinding]:
    """
    Normalize bindings to a dict of alias -> TableBinding

    Accepts TableBinding objects, or a mapping from alias to either a
    TableBinding or a plain sequence of rows.
    """
    indexed: dict[str, TableBinding] = {}

    if isinstance(bindings, Mapping):
        for alias, value in bindings.items():
            if isinstance(value, TableBinding):
                if value.alias != alias:
                    value = TableBinding(alias, value.rows, value.table_name)
                indexed[alias] = value
            else:
                indexed[alias] = TableBinding(alias, value)
    else:
        for binding in bindings:
            indexed[binding.alias] = binding

    return indexed


class QueryExecutor:
    """
    Query executor - runs the stage pipeline for a QueryPlan

    The executor is responsible for:
    1. Checking the plan against the bound tables before anything runs
    2. Building one operator per stage (Volcano model)
    3. Materializing each stage's output in order

    Operator tree, bottom-up:
        Limit
          OrderBy
            Project
              Filter (with an early Limit when there is no ORDER BY)
                HashJoin ...
                  Unnest ...
                    Scan
    """

    def execute(self, plan: QueryPlan, bindings: Bindings) -> list[Record]:
        """
        Execute a plan and return the full result

        Args:
            plan: Parsed query
            bindings: Resolved rows for every alias in the plan

        Returns:
            Output records in final order

        Raises:
            QueryError: On any structural problem; no partial output
        """
        context = ExecutionContext(plan, index_bindings(bindings))
        self.run(context)
        return context.result

    def run(self, context: ExecutionContext) -> None:
        """Drive a context through every stage, leaving it in Done or Error"""
        steps = [
            (ExecutionState.BIND_TABLES, self._bind_tables),
            (ExecutionState.APPLY_JOINS, self._apply_joins),
            (ExecutionState.APPLY_WHERE, self._apply_where),
            (ExecutionState.APPLY_SELECT, self._apply_select),
            (ExecutionState.APPLY_ORDER_BY, self._apply_order_by),
            (ExecutionState.APPLY_LIMIT, self._apply_limit),
        ]

        try:
            for state, step in steps:
                context.state = state
                context.visited.append(state)
                step(context)
        except Exception:
            context.state = ExecutionState.ERROR
            context.records = None
            raise

        context.state = ExecutionState.DONE
        context.visited.append(ExecutionState.DONE)

    def explain(self, plan: QueryPlan, bindings: Bindings | None = None) -> str:
        """
        Explain query execution plan

        Builds the operator tree without pulling any records.

        Example output:
            Query Plan:
            ========================================
            Limit(10)
              OrderBy(price DESC)
                Project(name, price)
                  Filter(price > 20)
                    Scan(products)
        """
        if bindings is None:
            bindings = [TableBinding(table.effective_alias, [], table.name) for table in plan.tables()]

        context = ExecutionContext(plan, index_bindings(bindings), materialize=False)
        self.run(context)

        output = ["Query Plan:", "=" * 40]
        output.extend(context.records.explain())
        return "\n".join(output)

    def _advance(self, context: ExecutionContext, operator: Operator) -> None:
        context.records = list(operator) if context.materialize else operator

    def _bind_tables(self, context: ExecutionContext) -> None:
        plan = context.plan
        aliases: list[str] = []

        for position, table in enumerate(plan.tables()):
            alias = table.effective_alias
            if alias in aliases:
                raise QueryError(f"Table alias '{alias}' is used more than once")
            if alias not in context.bindings:
                raise UnboundAliasError(alias, "FROM" if position == 0 else "JOIN")
            aliases.append(alias)

        # Bound in clause order: FROM, each UNNEST, each JOIN
        scope = Scope([context.bindings[plan.from_alias]])
        for spec in plan.unnests:
            if spec.alias in aliases or scope.is_bound(spec.alias):
                raise QueryError(f"Table alias '{spec.alias}' is used more than once")
            scope.locate(spec.array_field, "UNNEST")
            scope = scope.with_fields(spec.alias, [spec.column])
        for alias in aliases[1:]:
            scope = scope.extended(context.bindings[alias])

        context.scope = scope
        context.aliases = list(scope.aliases)
        self._validate(context)

        # The FROM scan stays lazy so a LIMIT without ORDER BY can stop it early
        context.records = Scan(context.bindings[plan.from_alias])

    def _join_scope(self, context: ExecutionContext, position: int) -> Scope:
        """Scope of everything bound up to and including the given JOIN"""
        bound = 1 + len(context.plan.unnests) + position + 1
        return context.scope.subset(context.aliases[:bound])

    def _unnest_scope(self, context: ExecutionContext, position: int) -> Scope:
        """Scope of everything bound before the given UNNEST"""
        return context.scope.subset(context.aliases[: position + 1])

    def _validate(self, context: ExecutionContext) -> None:
        """Reject a plan whose clauses cannot run against these tables"""
        plan = context.plan
        scope = context.scope

        for position, spec in enumerate(plan.joins):
            join_keys(spec.on, spec.joined_alias, self._join_scope(context, position))

        if plan.where is not None:
            check_condition(plan.where, scope, "WHERE")

        for item in plan.select:
            if item.is_wildcard:
                alias = item.wildcard_alias
                if alias is not None and not scope.is_bound(alias):
                    raise UnboundAliasError(alias, "SELECT")
            else:
                scope.locate(item.source_field, "SELECT")

        names = set(output_names(plan.select))
        for key in plan.order_by:
            try:
                scope.locate(key.field, "ORDER BY")
            except (UnboundAliasError, AmbiguousFieldError):
                if key.field not in names:
                    raise

        if plan.limit is not None:
            check_limit(plan.limit)

    def _apply_joins(self, context: ExecutionContext) -> None:
        for position, spec in enumerate(context.plan.unnests):
            self._advance(context, UnnestOperator(context.records, spec, self._unnest_scope(context, position)))

        for position, spec in enumerate(context.plan.joins):
            join_scope = self._join_scope(context, position)
            right = Scan(context.bindings[spec.joined_alias])
            self._advance(context, HashJoinOperator(context.records, right, spec, join_scope))

    def _apply_where(self, context: ExecutionContext) -> None:
        plan = context.plan
        records = context.records

        if plan.where is not None:
            records = Filter(records, plan.where, context.scope)

        # Without ORDER BY the first N matches are the answer: stop scanning there
        if not plan.order_by and plan.limit is not None:
            records = Limit(records, plan.limit)
            context.limit_applied = True

        if isinstance(records, Operator) and records is not context.records:
            self._advance(context, records)

    def _apply_select(self, context: ExecutionContext) -> None:
        self._advance(context, Project(context.records, context.plan.select, context.scope))

    def _apply_order_by(self, context: ExecutionContext) -> None:
        plan = context.plan
        if plan.order_by:
            names = [name for name in output_names(plan.select) if name is not None]
            self._advance(context, OrderByOperator(context.records, plan.order_by, context.scope, names))

    def _apply_limit(self, context: ExecutionContext) -> None:
        plan = context.plan
        if plan.limit is not None and not context.limit_applied:
            self._advance(context, Limit(context.records, plan.limit))
        elif context.materialize:
            context.records = list(context.records)
