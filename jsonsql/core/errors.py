"""
Query errors raised by the execution engine

Every error aborts the whole query. Problems that are expected when querying
schema-less data (missing fields, mismatched types inside WHERE) never reach
this module: they are resolved to Null / false where they occur.
"""


class QueryError(Exception):
    """Base class for all structural query failures"""

    pass


class UnboundAliasError(QueryError):
    """A clause references a table alias that has no TableBinding"""

    def __init__(self, alias: str, clause: str = "query"):
        self.alias = alias
        self.clause = clause
        super().__init__(f"Unknown table alias '{alias}' referenced in {clause}")


class UnsupportedJoinPredicateError(QueryError):
    """A JOIN ... ON condition is not a single field equality"""

    pass


class AmbiguousFieldError(QueryError):
    """An unqualified field name exists in more than one joined table"""

    def __init__(self, field: str, aliases: list[str]):
        self.field = field
        self.aliases = aliases
        super().__init__(
            f"Field '{field}' is ambiguous: present in {', '.join(aliases)}. "
            f"Qualify it with a table alias (e.g. {aliases[0]}.{field})"
        )


class TypeMismatchError(QueryError):
    """ORDER BY compared two values of incompatible types"""

    pass


class InvalidLimitError(QueryError):
    """LIMIT/TOP value is negative or not an integer"""

    pass


class UnsupportedOperatorError(QueryError):
    """A condition uses an operator the engine does not implement"""

    pass
