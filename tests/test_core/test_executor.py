"""
Tests for the query executor state machine
"""

import pytest

from jsonsql.core.errors import (
    AmbiguousFieldError,
    InvalidLimitError,
    QueryError,
    TypeMismatchError,
    UnboundAliasError,
    UnsupportedJoinPredicateError,
)
from jsonsql.core.executor import ExecutionContext, ExecutionState, QueryExecutor, index_bindings
from jsonsql.core.record import TableBinding
from jsonsql.sql.ast_nodes import (
    Comparison,
    FieldRef,
    JoinKind,
    JoinSpec,
    Literal,
    OrderKey,
    QueryPlan,
    SelectItem,
    SortDirection,
    TableRef,
)
from jsonsql.sql.parser import parse


def run(sql, bindings):
    return [record.to_dict() for record in QueryExecutor().execute(parse(sql), bindings)]


class TestExecuteSingleTable:
    """Test queries over one table"""

    def test_select_star(self, products):
        rows = run("SELECT * FROM products", {"products": products})
        assert rows == products

    def test_filter_scenario(self):
        """price > 20 keeps only the Gadget"""
        data = [{"name": "Widget", "price": 19.99}, {"name": "Gadget", "price": 29.99}]
        rows = run("SELECT * FROM items WHERE price > 20", {"items": data})
        assert rows == [{"name": "Gadget", "price": 29.99}]

    def test_projection_with_alias(self, products):
        rows = run("SELECT name AS label, price FROM products WHERE id = 1", {"products": products})
        assert rows == [{"label": "Widget", "price": 19.99}]
        assert list(rows[0]) == ["label", "price"]

    def test_missing_field_projects_null(self, products):
        rows = run("SELECT name, color FROM products LIMIT 1", {"products": products})
        assert rows == [{"name": "Widget", "color": None}]

    def test_heterogeneous_records(self):
        data = [{"a": 1}, {"b": "x"}, {"a": "text"}, {"a": 5}]
        rows = run("SELECT * FROM t WHERE a > 2", {"t": data})
        assert rows == [{"a": 5}]

    def test_order_by_field_not_selected(self, products):
        rows = run("SELECT name FROM products ORDER BY price DESC", {"products": products})
        assert [row["name"] for row in rows] == ["Gadget", "Widget", "Doohickey"]

    def test_order_by_output_alias(self, products):
        rows = run("SELECT name, price AS cost FROM products ORDER BY cost", {"products": products})
        assert [row["cost"] for row in rows] == [4.5, 19.99, 29.99]

    def test_order_by_type_mismatch_fails(self):
        data = [{"v": 1}, {"v": "one"}]
        with pytest.raises(TypeMismatchError):
            run("SELECT * FROM t ORDER BY v", {"t": data})

    def test_nested_field_filter(self, customers):
        rows = run("SELECT name FROM c WHERE address.city = 'LA'", {"c": customers})
        assert rows == [{"name": "Bob"}]

    def test_empty_table(self):
        assert run("SELECT * FROM t WHERE a = 1 ORDER BY a", {"t": []}) == []

    def test_empty_table_nested_filter(self):
        assert run("SELECT * FROM users WHERE address.city = 'Oslo'", {"users": []}) == []

    def test_nested_field_missing_from_every_row(self):
        data = [{"name": "a"}, {"name": "b"}]
        rows = run("SELECT name, meta.tag FROM users ORDER BY meta.tag", {"users": data})
        assert rows == [{"name": "a", "tag": None}, {"name": "b", "tag": None}]


class TestExecuteJoins:
    """Test join execution"""

    def test_inner_join(self, orders, products):
        rows = run(
            "SELECT o.id, p.name FROM orders o JOIN products p ON o.productId = p.id",
            {"o": orders, "p": products},
        )
        assert rows == [
            {"id": 100, "name": "Widget"},
            {"id": 101, "name": "Gadget"},
            {"id": 103, "name": "Widget"},
        ]

    def test_left_join_keeps_unmatched(self, orders, products):
        rows = run(
            "SELECT o.id, p.name FROM orders o LEFT JOIN products p ON p.id = o.productId",
            {"o": orders, "p": products},
        )
        assert [row["id"] for row in rows] == [100, 101, 102, 103]
        assert rows[2]["name"] is None

    def test_join_star_has_qualified_keys(self, orders, products):
        rows = run(
            "SELECT * FROM orders o JOIN products p ON o.productId = p.id LIMIT 1",
            {"o": orders, "p": products},
        )
        assert rows[0]["o.qty"] == 2
        assert rows[0]["p.name"] == "Widget"

    def test_three_way_join(self, orders, products, customers):
        rows = run(
            "SELECT o.id, p.name, c.name AS customer FROM orders o "
            "JOIN products p ON o.productId = p.id "
            "LEFT JOIN customers c ON o.customerId = c.id "
            "ORDER BY o.id",
            {"o": orders, "p": products, "c": customers},
        )
        assert rows == [
            {"id": 100, "name": "Widget", "customer": "Alice"},
            {"id": 101, "name": "Gadget", "customer": "Bob"},
            {"id": 103, "name": "Widget", "customer": None},
        ]

    def test_where_on_joined_fields(self, orders, products):
        rows = run(
            "SELECT o.id FROM orders o JOIN products p ON o.productId = p.id "
            "WHERE p.category = 'tools' AND o.qty > 1",
            {"o": orders, "p": products},
        )
        assert rows == [{"id": 100}]

    def test_ambiguous_field_rejected(self, orders, products):
        with pytest.raises(AmbiguousFieldError):
            run(
                "SELECT id FROM orders o JOIN products p ON o.productId = p.id",
                {"o": orders, "p": products},
            )

    def test_order_by_output_alias_of_shared_field(self):
        """ORDER BY id uses the SELECT alias even though both tables carry id"""
        orders = [{"id": 2, "productId": 1}, {"id": 1, "productId": 1}]
        products = [{"id": 1, "name": "W"}]
        rows = run(
            "SELECT o.id AS id, p.name FROM orders o JOIN products p ON o.productId = p.id ORDER BY id",
            {"o": orders, "p": products},
        )
        assert [row["id"] for row in rows] == [1, 2]

    def test_order_by_shared_field_without_alias_rejected(self, orders, products):
        with pytest.raises(AmbiguousFieldError):
            run(
                "SELECT o.qty, p.name FROM orders o JOIN products p ON o.productId = p.id ORDER BY id",
                {"o": orders, "p": products},
            )

    def test_unsupported_join_predicate(self, orders, products):
        with pytest.raises(UnsupportedJoinPredicateError):
            run(
                "SELECT * FROM orders o JOIN products p ON o.productId > p.id",
                {"o": orders, "p": products},
            )

    def test_join_predicate_must_reference_joined_table(self, orders, products):
        with pytest.raises(UnsupportedJoinPredicateError):
            run(
                "SELECT * FROM orders o JOIN products p ON o.productId = o.id",
                {"o": orders, "p": products},
            )


class TestExecuteUnnest:
    """Test UNNEST expansion"""

    @pytest.fixture
    def catalog(self):
        return [
            {
                "id": 1,
                "name": "Smartphone",
                "tags": ["mobile", "smartphone", "android"],
                "reviews": [{"user": "Alice", "rating": 5}, {"user": "Bob", "rating": 4}],
                "specs": {"display": {"features": ["OLED", "HDR"]}},
            },
            {
                "id": 2,
                "name": "Laptop",
                "tags": ["laptop", "computer", "work"],
                "reviews": [{"user": "Carol", "rating": 5}],
            },
            {"id": 3, "name": "Cable", "tags": None, "reviews": []},
        ]

    @pytest.fixture
    def offers(self):
        return [
            {"suid": "o1", "name": "Summer Sale", "discounts": ["d1", "d2"]},
            {"suid": "o2", "name": "Winter Special", "discounts": ["d2", "d3"]},
            {"suid": "o3", "name": "Clearance", "discounts": []},
        ]

    @pytest.fixture
    def discounts(self):
        return [
            {"suid": "d1", "type": "percentage", "value": 15},
            {"suid": "d2", "type": "fixed", "value": 10},
            {"suid": "d3", "type": "percentage", "value": 25},
        ]

    def test_simple_unnest(self, catalog):
        rows = run("SELECT name, tag FROM products, UNNEST(tags) AS t(tag)", {"products": catalog})

        assert len(rows) == 6
        assert rows[0] == {"name": "Smartphone", "tag": "mobile"}
        assert rows[-1] == {"name": "Laptop", "tag": "work"}

    def test_unnest_with_where(self, catalog):
        rows = run(
            "SELECT name, tag FROM products, UNNEST(tags) AS t(tag) WHERE tag = 'android'",
            {"products": catalog},
        )
        assert rows == [{"name": "Smartphone", "tag": "android"}]

    def test_object_elements(self, catalog):
        rows = run(
            "SELECT name, review.user, review.rating FROM products, UNNEST(reviews) AS r(review)",
            {"products": catalog},
        )
        assert rows == [
            {"name": "Smartphone", "user": "Alice", "rating": 5},
            {"name": "Smartphone", "user": "Bob", "rating": 4},
            {"name": "Laptop", "user": "Carol", "rating": 5},
        ]

    def test_nested_array_path_with_order_by(self, catalog):
        rows = run(
            "SELECT name, feature FROM products, UNNEST(specs.display.features) AS f(feature) "
            "ORDER BY feature DESC",
            {"products": catalog},
        )
        assert [row["feature"] for row in rows] == ["OLED", "HDR"]

    def test_default_column_and_qualified_reference(self, catalog):
        rows = run("SELECT p.id, t.value FROM products p, UNNEST(p.tags) AS t WHERE p.id = 2", {"p": catalog})
        assert [row["value"] for row in rows] == ["laptop", "computer", "work"]

    def test_star_includes_unnest_column(self, catalog):
        rows = run("SELECT * FROM products p, UNNEST(tags) AS t(tag) LIMIT 1", {"p": catalog})
        assert rows[0]["p.name"] == "Smartphone"
        assert rows[0]["t.tag"] == "mobile"

    def test_limit_counts_unnested_rows(self, catalog):
        rows = run("SELECT tag FROM products, UNNEST(tags) AS t(tag) LIMIT 4", {"products": catalog})
        assert [row["tag"] for row in rows] == ["mobile", "smartphone", "android", "laptop"]

    def test_join_on_unnested_value(self, offers, discounts):
        rows = run(
            "SELECT co.suid AS offer_id, discs.suid AS discount_id, discs.type "
            "FROM commercialoffers co, UNNEST(co.discounts) AS d(disc) "
            "JOIN discounts discs ON disc = discs.suid",
            {"co": offers, "discs": discounts},
        )
        assert [(row["offer_id"], row["discount_id"]) for row in rows] == [
            ("o1", "d1"),
            ("o1", "d2"),
            ("o2", "d2"),
            ("o2", "d3"),
        ]

    def test_left_join_after_unnest_skips_empty_arrays(self, offers, discounts):
        rows = run(
            "SELECT co.name AS offer, discs.type FROM commercialoffers co, UNNEST(co.discounts) AS d(disc) "
            "LEFT JOIN discounts discs ON disc = discs.suid WHERE discs.type = 'percentage' ORDER BY discs.value",
            {"co": offers, "discs": discounts},
        )
        assert rows == [
            {"offer": "Summer Sale", "type": "percentage"},
            {"offer": "Winter Special", "type": "percentage"},
        ]

    def test_join_on_unnested_object_field(self):
        products = [
            {"id": 1, "name": "A", "categories": [{"id": 10}, {"id": 20}]},
            {"id": 2, "name": "B", "categories": [{"id": 20}]},
        ]
        details = [{"id": 10, "taxRate": 0.08}, {"id": 20, "taxRate": 0.1}]
        rows = run(
            "SELECT p.name, cd.taxRate FROM products p, UNNEST(p.categories) AS c(cat) "
            "JOIN categoryDetails cd ON cat.id = cd.id",
            {"p": products, "cd": details},
        )
        assert rows == [
            {"name": "A", "taxRate": 0.08},
            {"name": "A", "taxRate": 0.1},
            {"name": "B", "taxRate": 0.1},
        ]

    def test_unnest_alias_clashes_with_table(self, catalog):
        with pytest.raises(QueryError, match="used more than once"):
            run("SELECT * FROM products p, UNNEST(tags) AS p(tag)", {"p": catalog})

    def test_explain(self, catalog):
        plan = parse("SELECT tag FROM products, UNNEST(tags) AS t(tag) WHERE tag = 'work'")
        lines = QueryExecutor().explain(plan).splitlines()

        assert [line.strip() for line in lines[2:]] == [
            "Project(tag)",
            "Filter(tag = 'work')",
            "Unnest(tags AS t.tag)",
            "Scan(products)",
        ]


class TestLimit:
    """Test TOP / LIMIT"""

    def test_limit_without_order_by_takes_scan_order(self):
        data = [{"n": i} for i in range(10)]
        rows = run("SELECT * FROM t WHERE n >= 3 LIMIT 2", {"t": data})
        assert rows == [{"n": 3}, {"n": 4}]

    def test_top_with_order_by(self):
        data = [{"n": n} for n in (5, 1, 4, 2, 3)]
        rows = run("SELECT TOP 3 n FROM t ORDER BY n DESC", {"t": data})
        assert rows == [{"n": 5}, {"n": 4}, {"n": 3}]

    @pytest.mark.parametrize("n", [0, 1, 3, 5, 8])
    def test_limit_after_sort_is_prefix(self, n):
        data = [{"n": v} for v in (3, 1, 4, 1, 5)]
        full = run("SELECT n FROM t ORDER BY n", {"t": data})
        limited = run(f"SELECT n FROM t ORDER BY n LIMIT {n}", {"t": data})
        assert limited == full[:n]

    def test_limit_stops_scanning_early(self):
        pulled = []

        class Rows(list):
            def __iter__(self):
                for row in super().__iter__():
                    pulled.append(row)
                    yield row

        binding = TableBinding("t", [{"n": 0}])
        binding.field_names()
        binding.rows = Rows({"n": i} for i in range(100))
        rows = QueryExecutor().execute(parse("SELECT * FROM t LIMIT 3"), [binding])

        assert len(rows) == 3
        assert len(pulled) == 3

    def test_negative_limit_in_plan(self, products):
        plan = QueryPlan(from_table=TableRef("products"), limit=-1)
        with pytest.raises(InvalidLimitError):
            QueryExecutor().execute(plan, {"products": products})


class TestPlanValidation:
    """Test structural errors detected before execution"""

    def test_unbound_from_alias(self):
        with pytest.raises(UnboundAliasError) as exc_info:
            run("SELECT * FROM missing", {"other": []})
        assert exc_info.value.clause == "FROM"

    def test_unbound_join_alias(self, orders):
        with pytest.raises(UnboundAliasError):
            run("SELECT * FROM orders o JOIN products p ON o.productId = p.id", {"o": orders})

    def test_unknown_alias_in_select(self, orders, products):
        with pytest.raises(UnboundAliasError):
            run(
                "SELECT x.name FROM orders o JOIN products p ON o.productId = p.id",
                {"o": orders, "p": products},
            )

    def test_unknown_alias_in_wildcard(self, products):
        with pytest.raises(UnboundAliasError):
            run("SELECT x.* FROM products p", {"p": products})

    def test_duplicate_alias(self, products):
        with pytest.raises(QueryError):
            run("SELECT * FROM products p JOIN products p ON p.id = p.id", {"p": products})


class TestExecutionContext:
    """Test state tracking"""

    def test_states_visited_in_order(self, products):
        context = ExecutionContext(parse("SELECT * FROM products"), index_bindings({"products": products}))
        QueryExecutor().run(context)

        assert context.state == ExecutionState.DONE
        assert context.visited == [
            ExecutionState.BIND_TABLES,
            ExecutionState.APPLY_JOINS,
            ExecutionState.APPLY_WHERE,
            ExecutionState.APPLY_SELECT,
            ExecutionState.APPLY_ORDER_BY,
            ExecutionState.APPLY_LIMIT,
            ExecutionState.DONE,
        ]

    def test_failure_moves_to_error(self):
        context = ExecutionContext(
            parse("SELECT * FROM t ORDER BY v"), index_bindings({"t": [{"v": 1}, {"v": "x"}]})
        )

        with pytest.raises(TypeMismatchError):
            QueryExecutor().run(context)

        assert context.state == ExecutionState.ERROR
        assert context.records is None
        with pytest.raises(QueryError):
            context.result

    def test_executor_is_reusable(self, products):
        executor = QueryExecutor()
        plan = parse("SELECT name FROM products WHERE price < 10")
        first = executor.execute(plan, {"products": products})
        second = executor.execute(plan, {"products": products})
        assert [r.to_dict() for r in first] == [r.to_dict() for r in second] == [{"name": "Doohickey"}]


class TestPlanObjects:
    """Test executing hand-built plans"""

    def test_hand_built_plan(self, orders, products):
        plan = QueryPlan(
            from_table=TableRef("orders", "o"),
            joins=[
                JoinSpec(
                    TableRef("products", "p"),
                    JoinKind.LEFT,
                    Comparison(FieldRef("productId"), "=", FieldRef("p.id")),
                )
            ],
            where=Comparison(FieldRef("o.qty"), ">=", Literal(2)),
            select=[SelectItem("o.id"), SelectItem("p.name", "product")],
            order_by=[OrderKey("o.qty", SortDirection.DESC)],
        )

        rows = QueryExecutor().execute(plan, [TableBinding("o", orders), TableBinding("p", products)])

        assert [row.to_dict() for row in rows] == [
            {"id": 102, "product": None},
            {"id": 100, "product": "Widget"},
        ]

    def test_explain(self, products):
        text = QueryExecutor().explain(parse("SELECT name FROM products WHERE price > 20 ORDER BY name LIMIT 1"))
        lines = text.splitlines()

        assert lines[0] == "Query Plan:"
        assert lines[2] == "Limit(1)"
        assert lines[3].strip() == "OrderBy(name ASC)"
        assert lines[4].strip() == "Project(name)"
        assert lines[5].strip() == "Filter(price > 20)"
        assert lines[6].strip() == "Scan(products)"
