"""
Rich table formatter for terminal output
"""

import json
from typing import Any, Dict, List

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from jsonsql.cli.formatters.base import BaseFormatter

NULL_MARKUP = "[dim]NULL[/dim]"


def display_value(value: Any) -> str:
    """Cell text for a JSON value: nested values as JSON, booleans as true/false"""
    if value is None:
        return NULL_MARKUP
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return escape(json.dumps(value, ensure_ascii=False, default=str))
    return escape(str(value))


class TableFormatter(BaseFormatter):
    """Format results as a Rich table"""

    name = "table"
    for_terminal = True

    def format(self, results: List[Dict[str, Any]], **kwargs) -> str:
        """
        Format results as a Rich table

        Columns are the union of keys across all rows, in encounter order;
        a row without some key shows NULL there.

        Args:
            results: List of result dictionaries
            **kwargs: Options like 'no_color', 'show_footer', 'max_width'

        Returns:
            Formatted table string
        """
        if not results:
            return "No results found."

        console = Console(force_terminal=not kwargs.get("no_color", False), no_color=kwargs.get("no_color", False))
        terminal_width = console.width

        columns = self.columns(results)
        num_cols = len(columns)

        # Adaptive column width based on terminal size
        if terminal_width < 80 or num_cols > 8:
            max_col_width = kwargs.get("max_width", 15)
            table = Table(show_header=True, header_style="bold magenta", box=box.SIMPLE)

            for col in columns:
                table.add_column(escape(col), style="cyan", overflow="ellipsis", max_width=max_col_width, no_wrap=True)
        else:
            table = Table(show_header=True, header_style="bold magenta")

            for col in columns:
                table.add_column(escape(col), style="cyan", overflow="ellipsis", max_width=30, no_wrap=False)

        for row in results:
            table.add_row(*[display_value(row.get(col)) for col in columns])

        with console.capture() as capture:
            console.print(table)

        output = capture.get()

        if kwargs.get("show_footer", True):
            row_count = len(results)
            footer = f"[dim]{row_count} row{'s' if row_count != 1 else ''}[/dim]"
            with console.capture() as capture:
                console.print(footer)
            output += capture.get()

        return output
