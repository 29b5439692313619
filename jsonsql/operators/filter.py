"""
Filter operator - implements WHERE clause

Evaluates a condition tree against each record and only yields records for
which it holds. Evaluation is total: missing fields are Null and ordering
comparisons between mismatched types are false, so heterogeneous records
never abort a query here.
"""

import operator
import re
from collections.abc import Iterable, Iterator
from typing import Any

from jsonsql.core.errors import TypeMismatchError, UnsupportedOperatorError
from jsonsql.core.record import Record, Scope
from jsonsql.core.types import compare_values, values_equal
from jsonsql.operators.base import Operator
from jsonsql.sql.ast_nodes import (
    COMPARISON_OPERATORS,
    And,
    Comparison,
    ConditionNode,
    FieldRef,
    InList,
    IsNull,
    Like,
    Literal,
    Not,
    Operand,
    Or,
)

_ORDERING = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}


def compare(left: Any, op: str, right: Any) -> bool:
    """
    Apply a comparison operator with the engine's typing rules

    - any Null operand: false
    - = : same type and equal
    - != : different type, or same type and not equal
    - ordering: numbers numerically, strings lexically, false < true;
      mismatched types are false

    Raises:
        UnsupportedOperatorError: If op is not a comparison operator
    """
    if op not in COMPARISON_OPERATORS:
        raise UnsupportedOperatorError(f"Unsupported comparison operator: {op}")

    if left is None or right is None:
        return False

    if op == "=":
        return values_equal(left, right)
    if op == "!=":
        return not values_equal(left, right)

    try:
        return _ORDERING[op](compare_values(left, right), 0)
    except TypeMismatchError:
        return False


def like_to_regex(pattern: str) -> str:
    """Translate a LIKE pattern (% and _ wildcards) into a regex"""
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return "".join(parts)


def _operand_value(operand: Operand, record: Record, scope: Scope) -> Any:
    if isinstance(operand, Literal):
        return operand.value
    return scope.resolve(record, operand.name)


def evaluate(node: ConditionNode, record: Record, scope: Scope | None = None) -> bool:
    """
    Evaluate a condition tree against a record

    Args:
        node: Condition to evaluate
        record: Simple or composite record
        scope: Field resolution scope; derived from the record when omitted

    Returns:
        True if the condition holds
    """
    if scope is None:
        scope = Scope.from_record(record)

    if isinstance(node, Comparison):
        left = _operand_value(node.left, record, scope)
        right = _operand_value(node.right, record, scope)
        return compare(left, node.operator, right)

    if isinstance(node, And):
        # all()/any() stop at the first deciding child
        return all(evaluate(child, record, scope) for child in node.children)

    if isinstance(node, Or):
        return any(evaluate(child, record, scope) for child in node.children)

    if isinstance(node, Not):
        return not evaluate(node.child, record, scope)

    if isinstance(node, IsNull):
        value = _operand_value(node.operand, record, scope)
        return (value is not None) if node.negated else (value is None)

    if isinstance(node, InList):
        value = _operand_value(node.operand, record, scope)
        if value is None:
            return False
        found = any(values_equal(value, candidate) for candidate in node.values)
        return not found if node.negated else found

    if isinstance(node, Like):
        value = _operand_value(node.operand, record, scope)
        if not isinstance(value, str):
            return False
        flags = re.DOTALL | (re.IGNORECASE if node.case_insensitive else 0)
        matched = re.fullmatch(like_to_regex(node.pattern), value, flags) is not None
        return not matched if node.negated else matched

    raise UnsupportedOperatorError(f"Unsupported condition: {type(node).__name__}")


def field_refs(node: ConditionNode) -> Iterator[str]:
    """Yield every field name referenced by a condition tree"""
    if isinstance(node, Comparison):
        for operand in (node.left, node.right):
            if isinstance(operand, FieldRef):
                yield operand.name
    elif isinstance(node, (And, Or)):
        for child in node.children:
            yield from field_refs(child)
    elif isinstance(node, Not):
        yield from field_refs(node.child)
    elif isinstance(node, (IsNull, InList, Like)):
        if isinstance(node.operand, FieldRef):
            yield node.operand.name


def check_condition(node: ConditionNode, scope: Scope, clause: str = "WHERE") -> None:
    """
    Validate a condition tree before execution

    Raises:
        UnsupportedOperatorError: Unknown node type or comparison operator
        UnboundAliasError: A field names an unknown table alias
        AmbiguousFieldError: An unqualified field exists in several tables
    """
    if isinstance(node, Comparison):
        if node.operator not in COMPARISON_OPERATORS:
            raise UnsupportedOperatorError(f"Unsupported comparison operator in {clause}: {node.operator}")
    elif isinstance(node, (And, Or)):
        for child in node.children:
            check_condition(child, scope, clause)
        return
    elif isinstance(node, Not):
        check_condition(node.child, scope, clause)
        return
    elif not isinstance(node, (IsNull, InList, Like)):
        raise UnsupportedOperatorError(f"Unsupported condition in {clause}: {type(node).__name__}")

    for ref in field_refs(node):
        scope.locate(ref, clause)


class Filter(Operator):
    """
    Filter operator - evaluates the WHERE condition tree

    Pulls records from child and only yields those that satisfy it.
    """

    def __init__(self, child: Iterable[Record], condition: ConditionNode, scope: Scope):
        """
        Initialize filter operator

        Args:
            child: Child operator or record sequence
            condition: Root of the condition tree
            scope: Field resolution scope for the records
        """
        super().__init__(child)
        self.condition = condition
        self.scope = scope

    def __iter__(self) -> Iterator[Record]:
        for record in self.child:
            if evaluate(self.condition, record, self.scope):
                yield record

    def __repr__(self) -> str:
        return f"Filter({self.condition!r})"
