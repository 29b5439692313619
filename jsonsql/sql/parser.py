"""
SQL Parser - Hand-written recursive descent parser

Parses the SQL subset the engine executes:
- SELECT [TOP n] item [AS alias], ... FROM table [[AS] alias]
- , UNNEST(array_field) [AS] alias[(column)] after the FROM table (any number)
- [INNER | LEFT [OUTER]] JOIN table [[AS] alias] ON a = b (any number)
- WHERE with AND / OR / NOT, parentheses, = != <> > < >= <=,
  IS [NOT] NULL, [NOT] IN (...), [NOT] LIKE / ILIKE
- ORDER BY key [ASC|DESC], ...
- LIMIT n

Output is a QueryPlan; semantic checks (aliases, join predicate shape)
happen in the executor.
"""

import re

from jsonsql.core.errors import InvalidLimitError
from jsonsql.sql.ast_nodes import (
    And,
    Comparison,
    ConditionNode,
    FieldRef,
    InList,
    IsNull,
    JoinKind,
    JoinSpec,
    Like,
    Literal,
    Not,
    Operand,
    Or,
    OrderKey,
    QueryPlan,
    SelectItem,
    SortDirection,
    TableRef,
    UnnestSpec,
)


class ParseError(Exception):
    """Raised when SQL parsing fails"""

    pass


KEYWORDS = {
    "SELECT", "TOP", "FROM", "AS", "JOIN", "INNER", "LEFT", "OUTER", "ON",
    "WHERE", "AND", "OR", "NOT", "IS", "NULL", "IN", "LIKE", "ILIKE",
    "TRUE", "FALSE", "ORDER", "BY", "ASC", "DESC", "LIMIT", "UNNEST",
}

_OPERATORS = {"=", "!=", "<>", ">", "<", ">=", "<="}

_TOKEN_RE = re.compile(
    r"""
    (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
    | (?P<op><>|!=|>=|<=|=|>|<)
    | (?P<punct>[,()])
    | (?P<word>[^\s,()'"=<>!]+)
    """,
    re.VERBOSE,
)

_INT_RE = re.compile(r"-?\d+")
_FLOAT_RE = re.compile(r"-?(?:\d+\.\d*|\.\d+)(?:[eE][-+]?\d+)?|-?\d+[eE][-+]?\d+")


def _is_quoted(token: str) -> bool:
    return len(token) >= 2 and token[0] in "'\"" and token[-1] == token[0]


def _unquote(token: str) -> str:
    quote = token[0]
    return token[1:-1].replace(quote * 2, quote)


class SQLParser:
    """
    Simple recursive descent parser for SQL

    Grammar:
        query      := SELECT [TOP n] items FROM table [, unnest]* join* [WHERE or_expr]
                      [ORDER BY keys] [LIMIT n]
        items      := * | item [, item]*
        item       := field [[AS] alias]
        table      := name [[AS] alias]
        unnest     := UNNEST ( field ) [AS] alias [( column )]
        join       := [INNER | LEFT [OUTER]] JOIN table ON or_expr
        or_expr    := and_expr [OR and_expr]*
        and_expr   := not_expr [AND not_expr]*
        not_expr   := NOT not_expr | predicate
        predicate  := ( or_expr )
                    | operand IS [NOT] NULL
                    | operand [NOT] IN ( literal [, literal]* )
                    | operand [NOT] LIKE|ILIKE string
                    | operand op operand
        op         := = | != | <> | > | < | >= | <=
    """

    def __init__(self, sql: str):
        self.sql = sql.strip().rstrip(";").rstrip()
        self.tokens = self._tokenize(self.sql)
        self.pos = 0

    def _tokenize(self, sql: str) -> list[str]:
        """
        Split SQL into tokens

        Quoted strings stay one token with their quotes, so literals can be
        told apart from identifiers. Dots are not split: qualified names
        (o.id), nested paths (address.city) and file paths stay intact.
        """
        tokens = []
        pos = 0

        while pos < len(sql):
            if sql[pos].isspace():
                pos += 1
                continue

            match = _TOKEN_RE.match(sql, pos)
            if match is None:
                if sql[pos] in "'\"":
                    raise ParseError(f"Unterminated string starting at character {pos}")
                raise ParseError(f"Unexpected character '{sql[pos]}' at character {pos}")

            tokens.append(match.group())
            pos = match.end()

        return tokens

    def current(self) -> str | None:
        """Get current token without advancing"""
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def at(self, *keywords: str) -> bool:
        """True if the current token is one of the keywords (case-insensitive)"""
        token = self.current()
        return token is not None and not _is_quoted(token) and token.upper() in keywords

    def consume(self, expected: str | None = None) -> str:
        """
        Consume and return current token, optionally checking it matches expected

        Args:
            expected: If provided, raises ParseError if current token doesn't match

        Returns:
            The consumed token

        Raises:
            ParseError: If expected token doesn't match or no more tokens
        """
        if self.pos >= len(self.tokens):
            raise ParseError(f"Unexpected end of query. Expected: {expected or 'more input'}")

        token = self.tokens[self.pos]

        if expected and token.upper() != expected.upper():
            raise ParseError(f"Expected '{expected}' but got '{token}' at position {self.pos}")

        self.pos += 1
        return token

    def is_identifier(self, token: str | None) -> bool:
        if token is None or _is_quoted(token):
            return False
        if token in _OPERATORS or token in ",()":
            return False
        return token.upper() not in KEYWORDS

    def consume_identifier(self, what: str) -> str:
        token = self.current()
        if not self.is_identifier(token):
            found = "end of query" if token is None else f"'{token}'"
            raise ParseError(f"Expected {what} but got {found} at position {self.pos}")
        return self.consume()

    def parse(self) -> QueryPlan:
        """Parse SQL query into a QueryPlan"""
        if not self.tokens:
            raise ParseError("Empty query")

        plan = self._parse_select()

        if self.current() is not None:
            raise ParseError(f"Unexpected token '{self.current()}' at position {self.pos}")
        return plan

    def _parse_select(self) -> QueryPlan:
        """Parse SELECT statement"""
        self.consume("SELECT")

        limit = None
        if self.at("TOP"):
            self.consume("TOP")
            limit = self._parse_count("TOP")

        select = self._parse_select_items()

        self.consume("FROM")
        from_table = self._parse_table_ref()

        unnests = []
        while self.current() == ",":
            self.consume(",")
            unnests.append(self._parse_unnest())

        joins = []
        while self.at("INNER", "LEFT", "JOIN"):
            joins.append(self._parse_join())

        where = None
        if self.at("WHERE"):
            self.consume("WHERE")
            where = self._parse_or()

        order_by = []
        if self.at("ORDER"):
            order_by = self._parse_order_by()

        if self.at("LIMIT"):
            if limit is not None:
                raise ParseError("TOP and LIMIT cannot be used in the same query")
            self.consume("LIMIT")
            limit = self._parse_count("LIMIT")

        return QueryPlan(
            from_table=from_table,
            joins=joins,
            where=where,
            select=select,
            order_by=order_by,
            limit=limit,
            unnests=unnests,
        )

    def _parse_count(self, keyword: str) -> int:
        """Parse the row count after TOP or LIMIT"""
        token = self.consume()

        if not _INT_RE.fullmatch(token):
            raise InvalidLimitError(f"{keyword} must be an integer, got '{token}'")

        count = int(token)
        if count < 0:
            raise InvalidLimitError(f"{keyword} must be non-negative, got {count}")
        return count

    def _parse_select_items(self) -> list[SelectItem]:
        """
        Parse the SELECT list

        Examples:
            *
            name, price
            o.*, p.name AS product
        """
        items = []

        while True:
            source_field = self.consume_identifier("column name")

            alias = None
            if self.at("AS"):
                self.consume("AS")
                alias = self.consume_identifier("column alias")
            elif self.is_identifier(self.current()):
                alias = self.consume()

            if alias and source_field.endswith("*"):
                raise ParseError(f"Wildcard '{source_field}' cannot have an alias")

            items.append(SelectItem(source_field, alias))

            if self.current() == ",":
                self.consume(",")
            else:
                break

        return items

    def _parse_table_ref(self) -> TableRef:
        """
        Parse a table name and optional alias

        Examples:
            orders
            orders o
            orders AS o
            'data/orders.json' o
        """
        token = self.current()
        if token is not None and _is_quoted(token):
            name = _unquote(self.consume())
        else:
            name = self.consume_identifier("table name")

        alias = None
        if self.at("AS"):
            self.consume("AS")
            alias = self.consume_identifier("table alias")
        elif self.is_identifier(self.current()):
            alias = self.consume()

        return TableRef(name, alias)

    def _parse_unnest(self) -> UnnestSpec:
        """
        Parse an UNNEST table function

        Examples:
            UNNEST(tags) AS t(tag)
            UNNEST(p.specs.features) f(feature)
            UNNEST(reviews) AS r        -> column 'value'
        """
        if not self.at("UNNEST"):
            found = "end of query" if self.current() is None else f"'{self.current()}'"
            raise ParseError(f"Expected UNNEST after ',' in FROM but got {found} at position {self.pos}")
        self.consume("UNNEST")

        if self.current() != "(":
            raise ParseError("Invalid UNNEST syntax: expected UNNEST(array_field) AS alias(column)")
        self.consume("(")
        array_field = self.consume_identifier("array field")
        self.consume(")")

        if self.at("AS"):
            self.consume("AS")
        if not self.is_identifier(self.current()):
            raise ParseError(f"UNNEST({array_field}) requires an alias: UNNEST({array_field}) AS alias(column)")
        alias = self.consume()

        column = "value"
        if self.current() == "(":
            self.consume("(")
            column = self.consume_identifier("UNNEST column name")
            self.consume(")")

        return UnnestSpec(array_field, alias, column)

    def _parse_join(self) -> JoinSpec:
        """
        Parse JOIN clause

        Examples:
            JOIN products p ON o.productId = p.id
            INNER JOIN products p ON o.productId = p.id
            LEFT OUTER JOIN customers c ON c.id = o.customerId
        """
        if self.at("INNER"):
            self.consume("INNER")
            kind = JoinKind.INNER
        elif self.at("LEFT"):
            self.consume("LEFT")
            if self.at("OUTER"):
                self.consume("OUTER")
            kind = JoinKind.LEFT
        else:
            kind = JoinKind.INNER

        self.consume("JOIN")
        table = self._parse_table_ref()
        self.consume("ON")
        on = self._parse_or()

        return JoinSpec(table=table, kind=kind, on=on)

    def _parse_or(self) -> ConditionNode:
        children = [self._parse_and()]
        while self.at("OR"):
            self.consume("OR")
            children.append(self._parse_and())
        return children[0] if len(children) == 1 else Or(tuple(children))

    def _parse_and(self) -> ConditionNode:
        children = [self._parse_not()]
        while self.at("AND"):
            self.consume("AND")
            children.append(self._parse_not())
        return children[0] if len(children) == 1 else And(tuple(children))

    def _parse_not(self) -> ConditionNode:
        if self.at("NOT"):
            self.consume("NOT")
            return Not(self._parse_not())
        return self._parse_predicate()

    def _parse_predicate(self) -> ConditionNode:
        """
        Parse a single predicate

        Examples:
            price > 20
            (a = 1 OR b = 2)
            email IS NOT NULL
            status IN ('open', 'held')
            name ILIKE 'a%'
        """
        if self.current() == "(":
            self.consume("(")
            node = self._parse_or()
            self.consume(")")
            return node

        operand = self._parse_operand()

        if self.at("IS"):
            self.consume("IS")
            negated = self.at("NOT")
            if negated:
                self.consume("NOT")
            self.consume("NULL")
            return IsNull(operand, negated)

        negated = False
        if self.at("NOT"):
            self.consume("NOT")
            negated = True
            if not self.at("IN", "LIKE", "ILIKE"):
                raise ParseError(f"Expected IN, LIKE or ILIKE after NOT at position {self.pos}")

        if self.at("IN"):
            self.consume("IN")
            return InList(operand, self._parse_value_list(), negated)

        if self.at("LIKE", "ILIKE"):
            case_insensitive = self.consume().upper() == "ILIKE"
            token = self.current()
            if token is None or not _is_quoted(token):
                raise ParseError(f"Expected quoted pattern after LIKE at position {self.pos}")
            return Like(operand, _unquote(self.consume()), case_insensitive, negated)

        op = self.current()
        if op not in _OPERATORS:
            found = "end of query" if op is None else f"'{op}'"
            raise ParseError(f"Expected comparison operator but got {found} at position {self.pos}")
        self.consume()

        # Normalize <> to !=
        if op == "<>":
            op = "!="

        return Comparison(operand, op, self._parse_operand())

    def _parse_value_list(self) -> tuple:
        """Parse ( literal [, literal]* )"""
        self.consume("(")
        values = []

        while True:
            operand = self._parse_operand()
            if not isinstance(operand, Literal):
                raise ParseError(f"IN list accepts literals only, got '{operand.name}'")
            values.append(operand.value)

            if self.current() == ",":
                self.consume(",")
            else:
                break

        self.consume(")")
        return tuple(values)

    def _parse_operand(self) -> Operand:
        """
        Parse a literal or field reference

        Examples:
            'Alice'   -> Literal('Alice')
            42        -> Literal(42)
            3.5       -> Literal(3.5)
            TRUE      -> Literal(True)
            NULL      -> Literal(None)
            o.total   -> FieldRef('o.total')
        """
        token = self.current()
        if token is None:
            raise ParseError("Unexpected end of query. Expected: value or column name")

        if _is_quoted(token):
            return Literal(_unquote(self.consume()))

        upper = token.upper()
        if upper in ("TRUE", "FALSE"):
            self.consume()
            return Literal(upper == "TRUE")
        if upper == "NULL":
            self.consume()
            return Literal(None)

        if _INT_RE.fullmatch(token):
            return Literal(int(self.consume()))
        if _FLOAT_RE.fullmatch(token):
            return Literal(float(self.consume()))

        return FieldRef(self.consume_identifier("value or column name"))

    def _parse_order_by(self) -> list[OrderKey]:
        """
        Parse ORDER BY clause

        Examples:
            ORDER BY name
            ORDER BY price DESC
            ORDER BY p.name ASC, o.qty DESC
        """
        self.consume("ORDER")
        self.consume("BY")

        keys = []

        while True:
            field = self.consume_identifier("ORDER BY column")

            direction = SortDirection.ASC
            if self.at("ASC", "DESC"):
                direction = SortDirection(self.consume().upper())

            keys.append(OrderKey(field, direction))

            if self.current() == ",":
                self.consume(",")
            else:
                break

        return keys


def parse(sql: str) -> QueryPlan:
    """
    Convenience function to parse SQL query

    Args:
        sql: SQL query string

    Returns:
        Parsed QueryPlan

    Raises:
        ParseError: If query is invalid
        InvalidLimitError: If TOP/LIMIT is not a non-negative integer

    Examples:
        >>> plan = parse("SELECT * FROM products")
        >>> plan = parse("SELECT TOP 5 name FROM products WHERE price > 20")
    """
    parser = SQLParser(sql)
    return parser.parse()
