"""
Base operator class for Volcano-style query execution

Each operator pulls records from its child on demand. The executor drives
the stages in order and decides where a stage is materialized.
"""

from collections.abc import Iterable, Iterator
from typing import Optional

from jsonsql.core.record import Record


class Operator:
    """
    Base class for all query operators

    Operators form a tree where:
    - Leaf operators (Scan) read from a table binding
    - Internal operators (Filter, Project, ...) transform records
    - The root operator is pulled by the executor to get results

    A child may be another operator or any iterable of records, so a stage
    can consume the materialized output of the previous one.
    """

    def __init__(self, child: Optional[Iterable[Record]] = None):
        """
        Initialize operator

        Args:
            child: Child operator or record sequence (None for leaf operators)
        """
        self.child = child

    def __iter__(self) -> Iterator[Record]:
        """
        Execute operator and yield results

        Subclasses must implement this to define how they process records.
        """
        raise NotImplementedError(f"{self.__class__.__name__} must implement __iter__()")

    def children(self) -> list["Operator"]:
        """Child operators, for plan rendering"""
        if isinstance(self.child, Operator):
            return [self.child]
        return []

    def explain(self, indent: int = 0) -> list[str]:
        """Render this operator and its subtree, one line per operator"""
        lines = [" " * indent + repr(self)]
        for child in self.children():
            lines.extend(child.explain(indent + 2))
        return lines

    def __repr__(self) -> str:
        """String representation for debugging"""
        return f"{self.__class__.__name__}()"
