"""
Base reader interface for all data sources

All readers implement this interface so the source resolver can treat
local files and remote documents alike.
"""

from typing import Any, Dict, Iterator, List


class BaseReader:
    """
    Base class for all data source readers

    Readers are responsible for:
    1. Fetching one JSON document (file, URL)
    2. Locating the records inside it with a path expression
    3. Yielding those records as dictionaries
    """

    def read_lazy(self) -> Iterator[Dict[str, Any]]:
        """
        Yield records as dictionaries

        This is the core method that all readers must implement.

        Yields:
            Dictionary representing one record

        Example:
            {'id': 1, 'name': 'Alice', 'address': {'city': 'NYC'}}
        """
        raise NotImplementedError("Subclasses must implement read_lazy()")

    def read_all(self) -> List[Dict[str, Any]]:
        """Materialize every record"""
        return list(self.read_lazy())

    def __iter__(self):
        """Allow readers to be used directly in for loops"""
        return self.read_lazy()
