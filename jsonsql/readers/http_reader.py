"""
HTTP Reader - read a JSON document from a remote URL

Example:
    reader = HTTPReader("https://example.com/api/orders.json", "$.data")
    for row in reader.read_lazy():
        print(row)
"""

from typing import Any, Dict, Iterator

import httpx

from jsonsql.readers.base import BaseReader
from jsonsql.readers.json_path import locate_records


def is_url(source: str) -> bool:
    """True for http:// and https:// sources"""
    return source.lower().startswith(("http://", "https://"))


class HTTPReader(BaseReader):
    """
    Read records from a JSON document served over HTTP/HTTPS

    The document is downloaded once, on first read, and kept for later reads.
    """

    def __init__(self, url: str, records_path: str = "$", timeout: float = 30.0):
        """
        Initialize HTTP reader

        Args:
            url: HTTP/HTTPS URL of a JSON document
            records_path: Path expression locating the records (default: root)
            timeout: Request timeout in seconds
        """
        self.url = url
        self.records_path = records_path or "$"
        self.timeout = timeout
        self._document: Any = None
        self._loaded = False

    def load(self) -> Any:
        """Download and parse the document"""
        if self._loaded:
            return self._document

        try:
            response = httpx.get(self.url, follow_redirects=True, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise IOError(f"Failed to download {self.url}: {e}") from e

        try:
            self._document = response.json()
        except ValueError as e:
            raise ValueError(f"Invalid JSON from {self.url}: {e}") from e

        self._loaded = True
        return self._document

    def read_lazy(self) -> Iterator[Dict[str, Any]]:
        yield from locate_records(self.load(), self.records_path, source=self.url)
