"""
Main Query API - user-facing interface for jsonsql

This is the primary entry point for users. It ties together SQL parsing,
source resolution and execution.

Example:
    >>> from jsonsql import query
    >>> results = query("data").sql("SELECT name FROM products WHERE price > 20")
    >>> for row in results:
    ...     print(row)
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Iterator, List

from jsonsql.config.mappings import MappingManager
from jsonsql.config.parameters import replace_parameters
from jsonsql.core.executor import QueryExecutor
from jsonsql.core.record import Record, TableBinding
from jsonsql.core.sources import SourceResolver
from jsonsql.sql.ast_nodes import QueryPlan
from jsonsql.sql.parser import parse


class Query:
    """
    Main query builder class

    Holds where tables come from; each sql() call runs one query.
    """

    def __init__(
        self,
        data_dir: str | Path = ".",
        mappings: MappingManager | Mapping[str, str] | None = None,
    ):
        """
        Initialize query with a data directory and optional table mappings

        Args:
            data_dir: Directory holding <table>.json files
            mappings: MappingManager or plain alias -> mapping dict

        Example:
            >>> q = Query("data")
            >>> q = Query("data", {"orders": "shop.json:$.orders"})
        """
        self.resolver = SourceResolver(data_dir, mappings)

    def sql(self, sql: str, params: Mapping[str, str] | None = None) -> "QueryResult":
        """
        Parse a SQL query against this query's sources

        Args:
            sql: SQL text, may contain ${name} / ${name:default} placeholders
            params: Placeholder values

        Returns:
            QueryResult; the query runs when the result is first read

        Raises:
            ValueError: If a required placeholder has no value
            ParseError: If the SQL is invalid
        """
        text = replace_parameters(sql, params)
        return QueryResult(parse(text), self.resolver, raw_sql=text)


class QueryResult:
    """
    Query result

    Executes on first access and keeps the complete result; a failed query
    raises and exposes no rows.
    """

    def __init__(
        self,
        plan: QueryPlan,
        resolver: SourceResolver,
        raw_sql: str | None = None,
        executor: QueryExecutor | None = None,
    ):
        """
        Initialize query result

        Args:
            plan: Parsed query
            resolver: Turns table names into bindings
            raw_sql: SQL text the plan was parsed from
            executor: Executor to run the plan with
        """
        self.plan = plan
        self.resolver = resolver
        self.raw_sql = raw_sql
        self.executor = executor or QueryExecutor()
        self._bindings: dict[str, TableBinding] | None = None
        self._records: list[Record] | None = None

    def bindings(self) -> dict[str, TableBinding]:
        """Resolved records for every table the query references"""
        if self._bindings is None:
            self._bindings = self.resolver.bind(self.plan)
        return self._bindings

    @property
    def records(self) -> list[Record]:
        if self._records is None:
            self._records = self.executor.execute(self.plan, self.bindings())
        return self._records

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        """
        Yields:
            Result rows as dictionaries
        """
        for record in self.records:
            yield record.to_dict()

    def __len__(self) -> int:
        return len(self.records)

    def to_list(self) -> List[Dict[str, Any]]:
        """
        Materialize all results into a list

        Example:
            >>> rows = query("data").sql("SELECT * FROM products").to_list()
            >>> print(len(rows))
            3
        """
        return list(self)

    def to_json(self, pretty: bool = False) -> str:
        """Results as a JSON array, field order preserved"""
        from jsonsql.cli.formatters.json import JSONFormatter

        return JSONFormatter().format(self.to_list(), pretty=pretty)

    def to_dataframe(self):
        """
        Convert results to pandas DataFrame

        Returns:
            pandas.DataFrame with one column per output field
        """
        try:
            import pandas as pd
        except ImportError:
            raise ImportError("Pandas is required for to_dataframe(). Install `jsonsql[pandas]`")

        return pd.DataFrame(self.to_list())

    def explain(self) -> str:
        """
        Get query execution plan

        Example:
            >>> print(query("data").sql("SELECT TOP 2 name FROM products WHERE price > 20").explain())
            Query Plan:
            ========================================
            Project(name)
              Limit(2)
                Filter(price > 20)
                  Scan(products)
        """
        return self.executor.explain(self.plan, self.bindings())


# Convenience function for top-level API
def query(
    data_dir: str | Path = ".",
    mappings: MappingManager | Mapping[str, str] | None = None,
) -> Query:
    """
    Create a query over a data directory

    This is the main entry point for the jsonsql API.

    Example:
        >>> from jsonsql import query
        >>> rows = query("data").sql("SELECT * FROM orders o JOIN products p ON o.productId = p.id").to_list()
    """
    return Query(data_dir, mappings)
