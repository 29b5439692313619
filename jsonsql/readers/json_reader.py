"""
JSON Reader for reading standard JSON files
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterator

from jsonsql.readers.base import BaseReader
from jsonsql.readers.json_path import locate_records


class JSONReader(BaseReader):
    """
    Reader for standard JSON files.

    Supports:
    - Array of objects: [{"a": 1}, {"a": 2}]
    - Records nested anywhere: {"store": {"books": [...]}} with "$.store.books"
    - A single object, read as a one-record table
    """

    def __init__(self, path: str | Path, records_path: str = "$", encoding: str = "utf-8"):
        """
        Initialize JSON reader

        Args:
            path: Path to JSON file
            records_path: Path expression locating the records (default: root)
            encoding: File encoding (default: utf-8)
        """
        self.path = Path(path)
        self.records_path = records_path or "$"
        self.encoding = encoding

        if not self.path.is_file():
            raise FileNotFoundError(f"JSON file not found: {self.path}")

    def load(self) -> Any:
        """Parse the whole document"""
        with open(self.path, encoding=self.encoding) as f:
            try:
                return json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON file {self.path}: {e}") from e

    def read_lazy(self) -> Iterator[Dict[str, Any]]:
        """
        Read JSON file and yield records.

        Note: Standard JSON parsing loads the whole file into memory.
        """
        yield from locate_records(self.load(), self.records_path, source=str(self.path))
