"""
Tests for Record, TableBinding and Scope
"""

import pytest

from jsonsql.core.errors import AmbiguousFieldError, UnboundAliasError
from jsonsql.core.record import FieldLocation, Record, Scope, TableBinding


class TestRecord:
    """Test the immutable record mapping"""

    def test_mapping_behaviour(self):
        record = Record({"a": 1, "b": 2}, alias="t")
        assert record["a"] == 1
        assert list(record) == ["a", "b"]
        assert len(record) == 2
        assert dict(record) == {"a": 1, "b": 2}

    def test_is_read_only(self):
        record = Record({"a": 1})
        with pytest.raises(TypeError):
            record["a"] = 2

    def test_source_dict_is_copied(self):
        row = {"a": 1}
        record = Record(row)
        row["a"] = 99
        assert record["a"] == 1

    def test_field_on_tagged_record(self):
        record = Record({"name": "Widget"}, alias="p")
        assert record.field("p", "name") == "Widget"
        assert record.field("o", "name") is None
        assert record.field("p", "missing") is None

    def test_field_on_composite_record(self):
        record = Record({"o.id": 1, "p.id": 2})
        assert record.field("o", "id") == 1
        assert record.field("p", "id") == 2

    def test_merge_qualifies_both_sides(self):
        left = Record({"id": 1, "qty": 2}, alias="o")
        right = Record({"id": 1, "name": "Widget"}, alias="p")

        merged = left.merge(right)

        assert merged.alias is None
        assert merged.to_dict() == {"o.id": 1, "o.qty": 2, "p.id": 1, "p.name": "Widget"}

    def test_merge_leaves_inputs_unchanged(self):
        left = Record({"id": 1}, alias="o")
        right = Record({"id": 2}, alias="p")
        left.merge(right)
        assert left.to_dict() == {"id": 1}
        assert right.to_dict() == {"id": 2}


class TestTableBinding:
    """Test table bindings"""

    def test_field_names_union_in_encounter_order(self):
        binding = TableBinding("t", [{"a": 1}, {"b": 2, "a": 3}, {"c": 4}])
        assert binding.field_names() == ["a", "b", "c"]

    def test_records_are_tagged(self):
        binding = TableBinding("t", [{"a": 1}])
        records = list(binding.records())
        assert records[0].alias == "t"
        assert len(binding) == 1


class TestScope:
    """Test field resolution"""

    @pytest.fixture
    def joined(self):
        return Scope(
            [
                TableBinding("o", [{"id": 1, "productId": 1, "meta": {"source": "web"}}]),
                TableBinding("p", [{"id": 1, "name": "Widget"}]),
            ]
        )

    def test_qualified_reference(self, joined):
        location = joined.locate("o.productId")
        assert location.alias == "o"
        assert location.name == "productId"

    def test_unqualified_unique_owner(self, joined):
        assert joined.locate("name").alias == "p"

    def test_unqualified_ambiguous(self, joined):
        with pytest.raises(AmbiguousFieldError) as exc_info:
            joined.locate("id")
        assert exc_info.value.aliases == ["o", "p"]

    def test_unknown_alias(self, joined):
        with pytest.raises(UnboundAliasError) as exc_info:
            joined.locate("x.id", "WHERE")
        assert exc_info.value.alias == "x"
        assert "WHERE" in str(exc_info.value)

    def test_unknown_unqualified_field_is_null(self, joined):
        record = Record({"o.id": 1, "p.id": 1})
        assert joined.locate("nothing").alias is None
        assert joined.resolve(record, "nothing") is None

    def test_nested_path(self, joined):
        record = Record({"o.meta": {"source": "web"}})
        assert joined.resolve(record, "o.meta.source") == "web"
        assert joined.resolve(record, "meta.source") == "web"
        assert joined.resolve(record, "o.meta.missing") is None

    def test_single_table_nested_and_index(self):
        scope = Scope([TableBinding("c", [{"address": {"city": "NYC"}, "tags": ["a", "b"]}])])
        record = Record({"address": {"city": "NYC"}, "tags": ["a", "b"]}, alias="c")
        assert scope.resolve(record, "address.city") == "NYC"
        assert scope.resolve(record, "c.address.city") == "NYC"
        assert scope.resolve(record, "tags.1") == "b"
        assert scope.resolve(record, "tags.5") is None

    def test_single_table_missing_field_is_null(self):
        scope = Scope([TableBinding("t", [{"a": 1}])])
        assert scope.resolve(Record({"a": 1}, alias="t"), "b") is None

    def test_single_table_missing_nested_field_is_null(self):
        """No row carries 'meta', so meta.tag is a missing field, not an alias"""
        scope = Scope([TableBinding("users", [{"name": "a"}, {"name": "b"}])])
        assert scope.locate("meta.tag") == FieldLocation("users", "meta", ("tag",))
        assert scope.resolve(Record({"name": "a"}, alias="users"), "meta.tag") is None

    def test_empty_table_dotted_reference(self):
        scope = Scope([TableBinding("users", [])])
        assert scope.locate("address.city", "WHERE").alias == "users"

    def test_single_table_does_not_raise_ambiguity(self):
        scope = Scope([TableBinding("t", [{"id": 1}])])
        assert scope.locate("id").alias == "t"

    def test_from_records_splits_composites(self):
        scope = Scope.from_records([Record({"o.id": 1, "p.name": "W"})])
        assert scope.aliases == ["o", "p"]
        assert scope.owners("name") == ["p"]

    def test_subset_and_extended(self, joined):
        only_o = joined.subset(["o"])
        assert only_o.aliases == ["o"]
        assert only_o.locate("id").alias == "o"

        extended = only_o.extended(TableBinding("c", [{"city": "NYC"}]))
        assert extended.aliases == ["o", "c"]
        assert extended.locate("city").alias == "c"
