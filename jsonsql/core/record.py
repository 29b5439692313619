"""
Records, table bindings and field resolution

A Record is an immutable ordered mapping from field key to value. Records
read from a single table keep the document's own keys and are tagged with
the table alias; records produced by a join carry ``alias.field`` keys and
no tag.

A Scope knows which aliases are bound and which field names each binding
carries, and turns a field reference from the query into a value.
"""

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from jsonsql.core.errors import AmbiguousFieldError, UnboundAliasError


class Record(Mapping):
    """
    One logical row

    Behaves like a read-only dict. New records are built by joining or
    projecting; an existing record is never changed.
    """

    __slots__ = ("_fields", "alias")

    def __init__(self, fields: Mapping[str, Any] | Iterable[tuple[str, Any]] = (), alias: str | None = None):
        self._fields = dict(fields)
        self.alias = alias

    def __getitem__(self, key: str) -> Any:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        if self.alias:
            return f"Record({self._fields!r}, alias={self.alias!r})"
        return f"Record({self._fields!r})"

    def field(self, alias: str, name: str) -> Any:
        """
        Look up a field of the given table, Null if absent

        Args:
            alias: Table alias owning the field
            name: Field name inside that table
        """
        if self.alias is not None:
            return self._fields.get(name) if alias == self.alias else None
        if not alias:
            # Untagged, unqualified record
            return self._fields.get(name)
        return self._fields.get(f"{alias}.{name}")

    def qualified(self) -> "Record":
        """Return this record with every key prefixed by its alias"""
        if self.alias is None:
            return self
        return Record((f"{self.alias}.{key}", value) for key, value in self._fields.items())

    def merge(self, other: "Record") -> "Record":
        """Concatenate two records into a composite record"""
        merged = dict(self.qualified()._fields)
        merged.update(other.qualified()._fields)
        return Record(merged)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._fields)


@dataclass
class TableBinding:
    """
    A table alias paired with its resolved rows

    Rows may be plain dicts (as returned by a reader) or Records; they are
    wrapped into Records tagged with the alias when scanned.
    """

    alias: str
    rows: Sequence[Mapping[str, Any]] = field(default_factory=list)
    table_name: str | None = None

    def __post_init__(self):
        self.rows = list(self.rows)
        self._field_names: list[str] | None = None

    def field_names(self) -> list[str]:
        """Union of keys across all rows, in encounter order"""
        if self._field_names is None:
            seen: dict[str, None] = {}
            for row in self.rows:
                for key in row:
                    seen.setdefault(key, None)
            self._field_names = list(seen)
        return self._field_names

    def records(self) -> Iterator[Record]:
        for row in self.rows:
            yield Record(row, alias=self.alias)

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class FieldLocation:
    """Where a field reference points: table alias, field name, nested path"""

    alias: str | None
    name: str
    path: tuple[str, ...] = ()


class Scope:
    """
    Field resolution over a set of table bindings

    Resolution rules for a reference ``a.b.c``:
    - ``a`` is a bound alias: field ``b`` of that table, ``c`` is nested
    - otherwise ``a`` is a field name owned by exactly one table; ``b.c`` is
      nested inside it
    - a field owned by several joined tables is ambiguous
    - with one table bound, a name no row carries is a missing field (Null)
    - with several tables bound, a dotted reference whose head is neither an
      alias nor a known field names an unbound alias
    """

    def __init__(self, bindings: Sequence[TableBinding]):
        self.aliases = [binding.alias for binding in bindings]
        self._fields = {binding.alias: set(binding.field_names()) for binding in bindings}
        self._locations: dict[str, FieldLocation] = {}

    @classmethod
    def from_records(cls, records: Iterable[Record]) -> "Scope":
        """
        Build a scope describing records that arrive without bindings

        Tagged records bind their own alias. Composite records are split
        back into tables by key prefix. Untagged, unqualified records
        share the anonymous table "".
        """
        tables: dict[str, list[dict[str, Any]]] = {}

        for record in records:
            if record.alias is not None:
                tables.setdefault(record.alias, []).append(record.to_dict())
            elif record and all("." in key for key in record):
                split: dict[str, dict[str, Any]] = {}
                for key, value in record.items():
                    alias, _, name = key.partition(".")
                    split.setdefault(alias, {})[name] = value
                for alias, row in split.items():
                    tables.setdefault(alias, []).append(row)
            else:
                tables.setdefault("", []).append(record.to_dict())

        if not tables:
            tables[""] = []
        return cls([TableBinding(alias, rows) for alias, rows in tables.items()])

    @classmethod
    def from_record(cls, record: Record) -> "Scope":
        return cls.from_records([record])

    def extended(self, binding: TableBinding) -> "Scope":
        """Scope with one more table bound after the existing ones"""
        return self.with_fields(binding.alias, binding.field_names())

    def with_fields(self, alias: str, names: Iterable[str]) -> "Scope":
        """Scope with one more alias bound, known only by its field names"""
        scope = self.subset(self.aliases)
        scope.aliases.append(alias)
        scope._fields[alias] = set(names)
        return scope

    def subset(self, aliases: Iterable[str]) -> "Scope":
        """Scope restricted to some of the bound aliases, in binding order"""
        wanted = set(aliases)
        scope = Scope([])
        scope.aliases = [alias for alias in self.aliases if alias in wanted]
        scope._fields = {alias: self._fields[alias] for alias in scope.aliases}
        return scope

    @property
    def joined(self) -> bool:
        return len(self.aliases) > 1

    def is_bound(self, alias: str) -> bool:
        return alias in self._fields

    def owners(self, name: str) -> list[str]:
        """Aliases whose rows carry a field called name"""
        return [alias for alias in self.aliases if name in self._fields[alias]]

    def locate(self, ref: str, clause: str = "query") -> FieldLocation:
        """
        Resolve a field reference to its location

        Raises:
            AmbiguousFieldError: Unqualified name present in several tables
            UnboundAliasError: Dotted reference to an unknown table alias
                in a query over several tables
        """
        cached = self._locations.get(ref)
        if cached is not None:
            return cached

        head, _, rest = ref.partition(".")

        if rest and head in self._fields:
            name, *path = rest.split(".")
            location = FieldLocation(head, name, tuple(path))
        else:
            path = tuple(rest.split(".")) if rest else ()
            owners = self.owners(head)

            if len(owners) > 1 and self.joined:
                raise AmbiguousFieldError(head, owners)
            if owners:
                location = FieldLocation(owners[0], head, path)
            elif not self.joined:
                # One table: a field no row carries is just missing
                location = FieldLocation(self.aliases[0], head, path)
            elif rest:
                raise UnboundAliasError(head, clause)
            else:
                # Unknown everywhere: resolves to Null
                location = FieldLocation(None, head)

        self._locations[ref] = location
        return location

    def resolve(self, record: Record, ref: str) -> Any:
        """Value of a field reference in a record, Null when missing"""
        location = self.locate(ref)
        if location.alias is None:
            return None

        value = record.field(location.alias, location.name)
        for part in location.path:
            if isinstance(value, dict):
                value = value.get(part)
            elif isinstance(value, list) and part.isdigit() and int(part) < len(value):
                value = value[int(part)]
            else:
                return None
        return value
