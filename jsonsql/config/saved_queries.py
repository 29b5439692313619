"""
Saved queries - named SQL text kept in a JSON file

Queries may contain ${name} / ${name:default} placeholders; they are stored
as written and filled in when run.
"""

import json
import warnings
from pathlib import Path

DEFAULT_QUERIES_FILE = ".jsonsql-queries.json"


class QueryStore:
    """
    Persistent store of named queries, in insertion order

    Example:
        store = QueryStore(".jsonsql-queries.json")
        store.save("expensive", "SELECT * FROM products WHERE price > ${min:100}")
        store.get("expensive")
    """

    def __init__(self, queries_file: str | Path = DEFAULT_QUERIES_FILE):
        self.queries_file = Path(queries_file)
        self.queries: dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        if not self.queries_file.exists():
            return

        content = self.queries_file.read_text(encoding="utf-8")
        if not content.strip():
            return

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            warnings.warn(f"Ignoring unreadable saved queries file {self.queries_file}: {e}", UserWarning)
            return

        if not isinstance(data, dict):
            warnings.warn(f"Ignoring saved queries file {self.queries_file}: not a JSON object", UserWarning)
            return

        self.queries = {str(name): str(sql) for name, sql in data.items()}

    def _save(self) -> None:
        self.queries_file.parent.mkdir(parents=True, exist_ok=True)
        self.queries_file.write_text(json.dumps(self.queries, indent=2) + "\n", encoding="utf-8")

    def save(self, name: str, sql: str) -> None:
        """
        Save or overwrite a named query

        Raises:
            ValueError: If name or SQL is empty
        """
        if not name or not name.strip():
            raise ValueError("Query name cannot be empty")
        if not sql or not sql.strip():
            raise ValueError("Query SQL cannot be empty")

        self.queries[name.strip()] = sql
        self._save()

    def get(self, name: str) -> str | None:
        return self.queries.get(name)

    def has(self, name: str) -> bool:
        return name in self.queries

    def delete(self, name: str) -> None:
        """
        Delete a named query

        Raises:
            KeyError: If no query is saved under name
        """
        if name not in self.queries:
            raise KeyError(f"Query not found: {name}")
        del self.queries[name]
        self._save()

    def list(self) -> dict[str, str]:
        return dict(self.queries)

    def __len__(self) -> int:
        return len(self.queries)
