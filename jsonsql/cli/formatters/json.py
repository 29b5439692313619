"""
JSON formatter for machine-readable output
"""

import json
import math
from typing import Any

from jsonsql.cli.formatters.base import BaseFormatter


def clean_value(value: Any) -> Any:
    """Replace NaN and infinity (which JSON cannot hold) with null, recursively"""
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return None
    if isinstance(value, dict):
        return {k: clean_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [clean_value(v) for v in value]
    return value


class JSONFormatter(BaseFormatter):
    """Format results as a JSON array"""

    name = "json"

    def format(self, results: list[dict[str, Any]], **kwargs) -> str:
        """
        Format results as JSON

        Args:
            results: List of result dictionaries
            **kwargs: Options like 'pretty', 'indent'

        Returns:
            JSON string; compact unless pretty is set
        """
        cleaned_results = [clean_value(dict(row)) for row in results]

        if kwargs.get("pretty", False):
            indent = kwargs.get("indent", 2)
            return json.dumps(cleaned_results, indent=indent, ensure_ascii=False, default=str)
        return json.dumps(cleaned_results, separators=(",", ":"), ensure_ascii=False, default=str)
