"""
jsonsql - Query JSON documents with SQL

Tables are arrays of JSON objects located inside files, directories or
URLs. Queries support joins, nested field paths, filtering, ordering and
limits over heterogeneous records.
"""

__version__ = "0.1.0"

# Main API
from jsonsql.core.query import Query, QueryResult, query

__all__ = ["__version__", "query", "Query", "QueryResult"]
