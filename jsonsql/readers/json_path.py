"""
Path expressions for locating records inside a JSON document

Supported subset:
- "$"            - the document root
- "$.key"        - object member (also "$['key']")
- "$.key[0]"     - array element
- "$.key[*]"     - every array element / object value
- "$.key[]"      - same as [*]
- "$.a[*].b"     - combinations

A path that ends on an array yields its elements as records; one that ends
on an object yields that single object. After a wildcard step every match is
collected and arrays among the matches are flattened one level.
"""

import re
import warnings
from typing import Any

KEY = "key"
INDEX = "index"
WILDCARD = "wildcard"

_STEP_RE = re.compile(
    r"""
    \.(?P<key>[^.\[\]]+)
    | \[(?P<index>\d+)\]
    | \['(?P<quoted>[^']*)'\]
    | (?P<wildcard>\[\*\]|\[\])
    """,
    re.VERBOSE,
)


def parse_path(expression: str) -> list[tuple[str, Any]]:
    """
    Split a path expression into steps

    Args:
        expression: Path such as "$.store.books[*]"

    Returns:
        List of (kind, argument) steps

    Raises:
        ValueError: If the expression is not in the supported subset
    """
    path = expression.strip()
    if not path.startswith("$"):
        raise ValueError(f"Path expression must start with '$': {expression!r}")

    steps: list[tuple[str, Any]] = []
    pos = 1

    while pos < len(path):
        match = _STEP_RE.match(path, pos)
        if match is None:
            raise ValueError(f"Invalid path expression {expression!r} at character {pos}")

        if match.group("key") is not None:
            key = match.group("key")
            steps.append((WILDCARD, None) if key == "*" else (KEY, key))
        elif match.group("index") is not None:
            steps.append((INDEX, int(match.group("index"))))
        elif match.group("quoted") is not None:
            steps.append((KEY, match.group("quoted")))
        else:
            steps.append((WILDCARD, None))

        pos = match.end()

    return steps


def evaluate_path(document: Any, expression: str) -> tuple[list[Any], str | None]:
    """
    Apply a path expression to a parsed document

    Returns:
        (matches, missing) - the matched values, and the first member name
        that was absent when nothing matched (None otherwise)
    """
    nodes = [document]
    missing = None
    fanned_out = False

    for kind, argument in parse_path(expression):
        next_nodes = []

        for node in nodes:
            if kind == KEY:
                if isinstance(node, dict) and argument in node:
                    next_nodes.append(node[argument])
            elif kind == INDEX:
                if isinstance(node, list) and argument < len(node):
                    next_nodes.append(node[argument])
            elif isinstance(node, list):
                next_nodes.extend(node)
            elif isinstance(node, dict):
                next_nodes.extend(node.values())

        if kind == WILDCARD:
            fanned_out = True

        if not next_nodes and nodes:
            if kind == KEY:
                missing = argument
            elif kind == INDEX:
                missing = f"[{argument}]"
            return [], missing

        nodes = next_nodes

    if not fanned_out:
        return nodes, None

    # Flatten arrays among wildcard matches one level
    flattened = []
    for node in nodes:
        if isinstance(node, list):
            flattened.extend(node)
        else:
            flattened.append(node)
    return [flattened], None


def locate_records(document: Any, expression: str = "$", source: str = "<document>") -> list[dict[str, Any]]:
    """
    Find the records a path expression points at

    Args:
        document: Parsed JSON document
        expression: Path expression
        source: Name of the document, used in warnings

    Returns:
        List of JSON objects. Non-object values are skipped with a warning.
    """
    matches, missing = evaluate_path(document, expression)

    if not matches:
        if missing is not None:
            warnings.warn(
                f"Path '{expression}' matched nothing in {source}: '{missing}' not found",
                UserWarning,
            )
        return []

    target = matches[0]
    candidates = target if isinstance(target, list) else [target]

    records = [item for item in candidates if isinstance(item, dict)]
    skipped = len(candidates) - len(records)
    if skipped:
        warnings.warn(
            f"Skipped {skipped} non-object value{'s' if skipped != 1 else ''} "
            f"at '{expression}' in {source}",
            UserWarning,
        )

    return records
