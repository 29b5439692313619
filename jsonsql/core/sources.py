"""
Source resolution - turn table names from a query into bound records

Lookup order for a table name:
1. A configured mapping (source and path expression)
2. An http(s) URL or a file path written in the query
3. <data_dir>/<name>.json, exact match first, then case-insensitive
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jsonsql.config.mappings import MappingManager, TableMapping
from jsonsql.core.record import TableBinding
from jsonsql.readers.base import BaseReader
from jsonsql.readers.http_reader import HTTPReader, is_url
from jsonsql.readers.json_reader import JSONReader
from jsonsql.sql.ast_nodes import QueryPlan, TableRef


class SourceResolver:
    """
    Resolve table names to readers and TableBindings

    Example:
        resolver = SourceResolver("data", {"orders": "shop.json:$.orders"})
        binding = resolver.resolve(TableRef("orders", "o"))
    """

    def __init__(
        self,
        data_dir: str | Path = ".",
        mappings: MappingManager | Mapping[str, str] | None = None,
    ):
        """
        Args:
            data_dir: Directory holding <table>.json files and relative sources
            mappings: MappingManager, or a plain alias -> mapping string dict
        """
        self.data_dir = Path(data_dir).expanduser()
        self.mappings = mappings if mappings is not None else {}

    def mapping_for(self, table_name: str) -> TableMapping | None:
        if isinstance(self.mappings, MappingManager):
            return self.mappings.get(table_name)
        mapping = self.mappings.get(table_name)
        return TableMapping.parse(mapping) if mapping is not None else None

    def readers(self, table_name: str) -> list[BaseReader]:
        """
        Readers producing the records of one table

        Raises:
            FileNotFoundError: If no file backs the table
        """
        mapping = self.mapping_for(table_name)

        if mapping is not None:
            if mapping.source is None:
                return [JSONReader(self.find_table_file(table_name), mapping.path)]
            return self._source_readers(mapping.source, mapping.path)

        if is_url(table_name):
            return [HTTPReader(table_name)]
        if self._looks_like_path(table_name):
            return self._source_readers(table_name, "$")
        return [JSONReader(self.find_table_file(table_name))]

    def read(self, table_name: str) -> list[dict[str, Any]]:
        """All records of a table, merged across its readers"""
        rows: list[dict[str, Any]] = []
        for reader in self.readers(table_name):
            rows.extend(reader.read_lazy())
        return rows

    def resolve(self, table: TableRef | str) -> TableBinding:
        """Bind one table reference to its records"""
        if isinstance(table, str):
            table = TableRef(table)
        return TableBinding(table.effective_alias, self.read(table.name), table.name)

    def bind(self, plan: QueryPlan) -> dict[str, TableBinding]:
        """
        Bind every table a plan references

        A table referenced twice (self-join) is read once.
        """
        cache: dict[str, list[dict[str, Any]]] = {}
        bindings: dict[str, TableBinding] = {}

        for table in plan.tables():
            if table.name not in cache:
                cache[table.name] = self.read(table.name)
            alias = table.effective_alias
            bindings.setdefault(alias, TableBinding(alias, cache[table.name], table.name))

        return bindings

    def find_table_file(self, table_name: str) -> Path:
        """
        Locate <data_dir>/<table_name>.json

        Raises:
            FileNotFoundError: If neither exact nor case-insensitive match exists
        """
        exact = self.data_dir / f"{table_name}.json"
        if exact.is_file():
            return exact

        wanted = f"{table_name}.json".lower()
        if self.data_dir.is_dir():
            for candidate in sorted(self.data_dir.iterdir()):
                if candidate.is_file() and candidate.name.lower() == wanted:
                    return candidate

        raise FileNotFoundError(
            f"No JSON file found for table '{table_name}' in {self.data_dir}. "
            f"Add a mapping with: jsonsql add-mapping {table_name} <mapping>"
        )

    def _looks_like_path(self, name: str) -> bool:
        return "/" in name or "\\" in name or name.lower().endswith(".json")

    def _local_path(self, source: str) -> Path:
        path = Path(source).expanduser()
        return path if path.is_absolute() else self.data_dir / path

    def _source_readers(self, source: str, records_path: str) -> list[BaseReader]:
        if is_url(source):
            return [HTTPReader(source, records_path)]

        path = self._local_path(source)

        if path.is_dir():
            files = sorted(f for f in path.iterdir() if f.is_file() and f.suffix.lower() == ".json")
            if not files:
                raise FileNotFoundError(f"No JSON files found in directory: {path}")
            return [JSONReader(f, records_path) for f in files]

        return [JSONReader(path, records_path)]
