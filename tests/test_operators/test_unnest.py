"""
Tests for UNNEST
"""

from jsonsql.core.record import Record, Scope, TableBinding
from jsonsql.operators.scan import Scan
from jsonsql.operators.unnest import UnnestOperator, unnest
from jsonsql.sql.ast_nodes import UnnestSpec

PRODUCTS = [
    {"id": 1, "name": "Smartphone", "tags": ["mobile", "android"]},
    {"id": 2, "name": "Laptop", "tags": []},
    {"id": 3, "name": "Cable", "tags": None},
    {"id": 4, "name": "Case"},
    {"id": 5, "name": "Charger", "tags": "usb"},
    {"id": 6, "name": "Tablet", "tags": ["mobile"]},
]


class TestUnnestOperator:
    """Test array expansion"""

    def run(self, rows, spec):
        binding = TableBinding("p", rows)
        return list(UnnestOperator(Scan(binding), spec, Scope([binding])))

    def test_one_row_per_element_in_order(self):
        result = self.run(PRODUCTS, UnnestSpec("tags", "t", "tag"))

        assert [(r["p.name"], r["t.tag"]) for r in result] == [
            ("Smartphone", "mobile"),
            ("Smartphone", "android"),
            ("Tablet", "mobile"),
        ]

    def test_rows_without_array_are_dropped(self):
        """Empty, null, missing and non-array values produce no rows"""
        result = self.run(PRODUCTS, UnnestSpec("tags", "t", "tag"))
        assert {r["p.id"] for r in result} == {1, 6}

    def test_output_is_composite(self):
        result = self.run(PRODUCTS[:1], UnnestSpec("tags", "t"))
        assert result[0].alias is None
        assert result[0].to_dict() == {
            "p.id": 1,
            "p.name": "Smartphone",
            "p.tags": ["mobile", "android"],
            "t.value": "mobile",
        }

    def test_object_elements(self):
        rows = [{"name": "Phone", "reviews": [{"user": "Alice", "rating": 5}, {"user": "Bob", "rating": 4}]}]
        result = self.run(rows, UnnestSpec("reviews", "r", "review"))

        scope = Scope([TableBinding("p", rows)]).with_fields("r", ["review"])
        assert [scope.resolve(r, "review.user") for r in result] == ["Alice", "Bob"]
        assert [scope.resolve(r, "r.review.rating") for r in result] == [5, 4]

    def test_nested_array_path(self):
        rows = [{"name": "Phone", "specs": {"display": {"features": ["OLED", "HDR"]}}}, {"name": "Laptop"}]
        result = self.run(rows, UnnestSpec("specs.display.features", "f", "feature"))
        assert [r["f.feature"] for r in result] == ["OLED", "HDR"]

    def test_second_unnest_reads_first(self):
        rows = [{"name": "Phone", "reviews": [{"user": "Alice", "tags": ["fast", "cheap"]}]}]
        binding = TableBinding("p", rows)
        first = UnnestSpec("reviews", "r", "review")
        second = UnnestSpec("review.tags", "rt", "tag")

        scope = Scope([binding])
        records = UnnestOperator(Scan(binding), first, scope)
        records = UnnestOperator(records, second, scope.with_fields("r", ["review"]))

        assert [r["rt.tag"] for r in records] == ["fast", "cheap"]

    def test_repr_and_explain(self):
        binding = TableBinding("products", PRODUCTS)
        operator = UnnestOperator(Scan(binding), UnnestSpec("tags", "t", "tag"), Scope([binding]))

        assert repr(operator) == "Unnest(tags AS t.tag)"
        assert operator.explain() == ["Unnest(tags AS t.tag)", "  Scan(products)"]


class TestUnnestFunction:
    """Test the standalone helper"""

    def test_derives_scope(self):
        records = [Record({"name": "Phone", "tags": ["a", "b"]}, alias="p")]
        result = unnest(records, UnnestSpec("tags", "t", "tag"))
        assert [r.to_dict() for r in result] == [
            {"p.name": "Phone", "p.tags": ["a", "b"], "t.tag": "a"},
            {"p.name": "Phone", "p.tags": ["a", "b"], "t.tag": "b"},
        ]

    def test_empty_input(self):
        assert unnest([], UnnestSpec("tags", "t")) == []
