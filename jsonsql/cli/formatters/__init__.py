"""
Output formatters for CLI

Available formatters:
- TableFormatter: Rich tables for the terminal
- JSONFormatter: Machine-readable JSON array
"""

from jsonsql.cli.formatters.base import BaseFormatter
from jsonsql.cli.formatters.json import JSONFormatter
from jsonsql.cli.formatters.table import TableFormatter

__all__ = ["BaseFormatter", "TableFormatter", "JSONFormatter", "get_formatter"]


def get_formatter(format_name: str) -> BaseFormatter:
    """
    Get formatter by name

    Args:
        format_name: Name of formatter (table, json)

    Returns:
        Formatter instance

    Raises:
        ValueError: If formatter not found
    """
    formatters = {cls.name: cls for cls in (TableFormatter, JSONFormatter)}

    if format_name not in formatters:
        available = ", ".join(formatters.keys())
        raise ValueError(f"Unknown format: {format_name}. Available formats: {available}")

    return formatters[format_name]()
