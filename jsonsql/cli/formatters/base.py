"""
Base formatter interface for CLI output

A formatter turns query output rows into the text the CLI prints or writes.
"""

from typing import Any


class BaseFormatter:
    """
    Base class for result formatters

    Rows are plain dicts as returned by QueryResult.to_list(): keys are the
    output column names, alias-qualified (``o.id``) for SELECT * over a join.
    Rows of one result need not share the same keys.
    """

    # Value accepted by --format
    name = ""

    # Output is laid out for a terminal and not meant to be parsed
    for_terminal = False

    def format(self, results: list[dict[str, Any]], **kwargs) -> str:
        """
        Format query results for output

        Args:
            results: Output rows in result order
            **kwargs: Formatter options; each formatter ignores the ones it
                does not know

        Returns:
            Text without a trailing newline
        """
        raise NotImplementedError(f"{self.__class__.__name__} must implement format()")

    @staticmethod
    def columns(results: list[dict[str, Any]]) -> list[str]:
        """Union of keys across all rows, in encounter order"""
        seen: dict[str, None] = {}
        for row in results:
            for key in row:
                seen.setdefault(key, None)
        return list(seen)
