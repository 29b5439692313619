"""
Table mappings - table alias to JSON source and path expression

A mapping is stored as one string:

    "$.orders"                     - path into <data_dir>/<alias>.json
    "shop.json:$.orders"           - path into a specific file
    "exports/:$[*]"                - every *.json file in a directory
    "https://host/api.json:$.data" - a remote document

Mappings persist as a JSON object in the config file.
"""

import json
from dataclasses import dataclass
from pathlib import Path

DEFAULT_MAPPINGS_FILE = ".jsonsql-mappings.json"


@dataclass(frozen=True)
class TableMapping:
    """A parsed mapping: where the document lives and where the records are"""

    source: str | None
    path: str = "$"

    @classmethod
    def parse(cls, mapping: str) -> "TableMapping":
        """
        Split a mapping string into source and path expression

        Examples:
            "$.orders"           -> TableMapping(None, "$.orders")
            "shop.json:$.orders" -> TableMapping("shop.json", "$.orders")
            "shop.json"          -> TableMapping("shop.json", "$")
        """
        mapping = mapping.strip()
        if mapping.startswith("$"):
            return cls(None, mapping)

        source, separator, path = mapping.rpartition(":$")
        if separator:
            return cls(source, "$" + path)
        return cls(mapping, "$")

    def __str__(self) -> str:
        return self.path if self.source is None else f"{self.source}:{self.path}"


class MappingManager:
    """
    Persistent store of table mappings

    Example:
        manager = MappingManager(".jsonsql-mappings.json")
        manager.add("orders", "shop.json:$.orders")
        manager.get("orders")  # TableMapping(source='shop.json', path='$.orders')
    """

    def __init__(self, config_file: str | Path = DEFAULT_MAPPINGS_FILE):
        self.config_file = Path(config_file)
        self.mappings: dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        if not self.config_file.exists():
            return

        content = self.config_file.read_text(encoding="utf-8")
        if not content.strip():
            return

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to load mappings from {self.config_file}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Mappings file {self.config_file} must contain a JSON object")

        self.mappings = {str(alias): str(mapping) for alias, mapping in data.items()}

    def _save(self) -> None:
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(json.dumps(self.mappings, indent=2) + "\n", encoding="utf-8")

    def add(self, alias: str, mapping: str) -> None:
        """
        Add or replace a mapping

        Raises:
            ValueError: If alias or mapping is empty
        """
        if not alias or not alias.strip():
            raise ValueError("Alias cannot be empty")
        if not mapping or not mapping.strip():
            raise ValueError("Mapping cannot be empty")

        self.mappings[alias.strip()] = mapping.strip()
        self._save()

    def remove(self, alias: str) -> None:
        """
        Remove a mapping

        Raises:
            KeyError: If no mapping exists for alias
        """
        if alias not in self.mappings:
            raise KeyError(f"No mapping found for table: {alias}")
        del self.mappings[alias]
        self._save()

    def has(self, alias: str) -> bool:
        return alias in self.mappings

    def get(self, alias: str) -> TableMapping | None:
        mapping = self.mappings.get(alias)
        return TableMapping.parse(mapping) if mapping is not None else None

    def list(self) -> dict[str, str]:
        """All mappings sorted by alias"""
        return dict(sorted(self.mappings.items()))

    def __len__(self) -> int:
        return len(self.mappings)
