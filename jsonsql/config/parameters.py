"""
Query parameters - ${name} and ${name:default} placeholders in SQL text
"""

import re
from collections.abc import Mapping

PARAMETER_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")


def replace_parameters(sql: str, params: Mapping[str, str] | None = None) -> str:
    """
    Fill placeholders with parameter values

    Args:
        sql: SQL text with ${name} or ${name:default} placeholders
        params: Parameter values by name

    Returns:
        SQL text with every placeholder replaced

    Raises:
        ValueError: If a placeholder without default has no value

    Examples:
        >>> replace_parameters("SELECT * FROM t WHERE id = ${id}", {"id": "7"})
        'SELECT * FROM t WHERE id = 7'
        >>> replace_parameters("SELECT TOP ${n:10} * FROM t")
        'SELECT TOP 10 * FROM t'
    """
    if not sql:
        return sql

    params = params or {}

    missing = []
    for match in PARAMETER_PATTERN.finditer(sql):
        name, default = match.group(1), match.group(2)
        if default is None and name not in params and name not in missing:
            missing.append(name)

    if missing:
        raise ValueError(
            f"Missing required parameters: {', '.join(missing)}. "
            "Use --param <name>=<value> to provide values."
        )

    def substitute(match: re.Match) -> str:
        name, default = match.group(1), match.group(2)
        return str(params[name]) if name in params else default

    return PARAMETER_PATTERN.sub(substitute, sql)


def extract_parameter_names(sql: str) -> list[str]:
    """Placeholder names in order of first appearance"""
    names: list[str] = []
    for match in PARAMETER_PATTERN.finditer(sql or ""):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names


def has_parameters(sql: str) -> bool:
    return bool(sql) and PARAMETER_PATTERN.search(sql) is not None


def parse_param_options(options: tuple[str, ...] | list[str]) -> dict[str, str]:
    """
    Turn repeated "name=value" CLI options into a dict

    Raises:
        ValueError: If an option has no '=' or an empty name
    """
    params: dict[str, str] = {}
    for option in options:
        name, separator, value = option.partition("=")
        if not separator or not name.strip():
            raise ValueError(f"Invalid parameter '{option}'. Expected format: name=value")
        params[name.strip()] = value
    return params
