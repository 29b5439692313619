"""
Project operator - implements SELECT column list

Shapes each record into its output form: wildcards, single fields and
aliased fields.
"""

from collections import Counter
from collections.abc import Iterable, Iterator, Sequence
from typing import Any

from jsonsql.core.record import Record, Scope
from jsonsql.operators.base import Operator
from jsonsql.sql.ast_nodes import SelectItem


class ProjectedRecord(Record):
    """
    Output record that remembers the record it was projected from

    ORDER BY runs after SELECT but may still sort on fields the SELECT
    list dropped or renamed; it reads them from ``source``.
    """

    __slots__ = ("source",)

    def __init__(self, fields, alias: str | None = None, source: Record | None = None):
        super().__init__(fields, alias=alias)
        self.source = source


def output_names(select_items: Sequence[SelectItem]) -> list[str | None]:
    """
    Output key for every select item (None for wildcards)

    An explicit alias always wins. Unaliased items use their trailing name
    (p.name -> name) unless another unaliased item shares it, in which case
    both keep their full reference (o.id, p.id).
    """
    counts = Counter(
        item.output_name for item in select_items if not item.is_wildcard and not item.output_alias
    )

    names: list[str | None] = []
    for item in select_items:
        if item.is_wildcard:
            names.append(None)
        elif item.output_alias:
            names.append(item.output_alias)
        elif counts[item.output_name] > 1:
            names.append(item.source_field)
        else:
            names.append(item.output_name)
    return names


def _wildcard_fields(record: Record, alias: str | None) -> Iterator[tuple[str, Any]]:
    if alias is None:
        yield from record.items()
    elif record.alias is not None:
        if record.alias == alias:
            yield from record.items()
    else:
        prefix = f"{alias}."
        for key, value in record.items():
            if key.startswith(prefix):
                yield key, value


def project(
    record: Record,
    select_items: Sequence[SelectItem],
    scope: Scope | None = None,
    names: Sequence[str | None] | None = None,
) -> ProjectedRecord:
    """
    Apply a SELECT list to one record

    Args:
        record: Record to project
        select_items: SELECT list
        scope: Field resolution scope; derived from the record when omitted
        names: Precomputed output_names(select_items)

    Returns:
        Output record. Fields absent from the input are Null.
    """
    if scope is None:
        scope = Scope.from_record(record)
    if names is None:
        names = output_names(select_items)

    fields: dict[str, Any] = {}
    for item, name in zip(select_items, names):
        if item.is_wildcard:
            fields.update(_wildcard_fields(record, item.wildcard_alias))
        else:
            fields[name] = scope.resolve(record, item.source_field)

    # A pure SELECT * keeps the table tag so the record still resolves alias.field
    only_wildcards = all(item.is_wildcard and item.wildcard_alias is None for item in select_items)
    alias = record.alias if only_wildcards else None
    source = record.source if isinstance(record, ProjectedRecord) else record
    return ProjectedRecord(fields, alias=alias, source=source)


class Project(Operator):
    """
    Project operator - shapes records (SELECT clause)

    Pulls records from child and yields their projected form.
    """

    def __init__(self, child: Iterable[Record], select_items: Sequence[SelectItem], scope: Scope):
        """
        Initialize project operator

        Args:
            child: Child operator or record sequence
            select_items: SELECT list
            scope: Field resolution scope for the input records
        """
        super().__init__(child)
        self.select_items = list(select_items)
        self.scope = scope
        self.names = output_names(self.select_items)

    def __iter__(self) -> Iterator[ProjectedRecord]:
        for record in self.child:
            yield project(record, self.select_items, self.scope, self.names)

    def __repr__(self) -> str:
        col_str = ", ".join(repr(item) for item in self.select_items)
        return f"Project({col_str})"
