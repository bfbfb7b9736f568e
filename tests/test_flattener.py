"""
Tests for flattening a schema's field tree into view columns.
"""

import pytest

from FirestoreViews.compiler.flattener import flatten, flatten_child
from FirestoreViews.compiler.type_resolver import DuckDBDialect
from FirestoreViews.errors import InvalidSchemaStructure, UnsupportedFieldType
from FirestoreViews.schema.model import FirestoreSchema

DIALECT = DuckDBDialect()
SOURCE = '"data"'


def schema(*fields) -> FirestoreSchema:
    return FirestoreSchema.model_validate({"fields": list(fields)})


class TestColumns:

    def test_users_schema_columns_in_declaration_order(self, users_schema):
        result = flatten(users_schema.fields, DIALECT, SOURCE)

        assert [c.alias for c in result.columns] == [
            "name",
            "age",
            "active",
            "last_login",
            "last_location_latitude",
            "last_location_longitude",
            "manager",
            "legacy",
            "settings",
            "address_city",
            "address_geo_zip",
        ]

    def test_nested_map_keeps_dotted_name_and_json_path(self, users_schema):
        result = flatten(users_schema.fields, DIALECT, SOURCE)
        zip_column = result.columns[-1]

        assert zip_column.name == "address.geo.zip"
        assert "'$.address.geo.zip'" in zip_column.expression

    def test_primitive_schema_has_one_column_per_field(self, primitive_schema):
        result = flatten(primitive_schema.fields, DIALECT, SOURCE)

        assert [c.sql_type for c in result.columns] == ["VARCHAR", "DOUBLE", "BOOLEAN"]
        assert result.children == {}

    def test_empty_map_contributes_nothing(self):
        result = flatten(schema({"name": "meta", "type": "map"}).fields, DIALECT, SOURCE)

        assert result.columns == []

    def test_empty_schema_has_no_columns(self):
        result = flatten((), DIALECT, SOURCE)

        assert result.columns == []
        assert result.children == {}


class TestChildren:

    def test_arrays_become_children(self, users_schema):
        result = flatten(users_schema.fields, DIALECT, SOURCE)

        assert list(result.children) == ["tags", "friends"]

    def test_array_without_element_holds_strings(self, users_schema):
        tags = flatten(users_schema.fields, DIALECT, SOURCE).children["tags"]

        assert tags.element_at_root
        column = flatten_child(tags, DIALECT, '"tags_member"').columns[0]
        assert column.alias == "tags"
        assert column.expression == "json_extract_string(\"tags_member\", '$')"

    def test_map_elements_flatten_against_the_member(self, users_schema):
        friends = flatten(users_schema.fields, DIALECT, SOURCE).children["friends"]
        result = flatten_child(friends, DIALECT, '"friends_member"')

        assert not friends.element_at_root
        assert [c.alias for c in result.columns] == ["name", "score"]
        assert "'$.score'" in result.columns[1].expression
        assert list(result.children) == ["nicknames"]

    def test_array_inside_map_keeps_its_path(self):
        result = flatten(
            schema({"name": "profile", "type": "map", "fields": [
                {"name": "emails", "type": "array"},
            ]}).fields,
            DIALECT,
            SOURCE,
        )

        child = result.children["profile.emails"]
        assert child.path == ("profile", "emails")
        assert child.json_path == ("profile", "emails")

    def test_array_with_fields_shorthand_holds_maps(self):
        result = flatten(
            schema({"name": "items", "type": "array", "fields": [
                {"name": "sku", "type": "string"},
            ]}).fields,
            DIALECT,
            SOURCE,
        )

        child = result.children["items"]
        assert not child.element_at_root
        assert [f.name for f in child.schema.fields] == ["sku"]


class TestInvalidStructure:

    def test_duplicate_sibling_names(self):
        with pytest.raises(InvalidSchemaStructure) as excinfo:
            flatten(
                schema({"name": "a", "type": "string"}, {"name": "a", "type": "number"}).fields,
                DIALECT,
                SOURCE,
            )
        assert excinfo.value.field_path == "a"

    def test_same_name_in_different_maps_is_allowed(self):
        result = flatten(
            schema(
                {"name": "home", "type": "map", "fields": [{"name": "city", "type": "string"}]},
                {"name": "work", "type": "map", "fields": [{"name": "city", "type": "string"}]},
            ).fields,
            DIALECT,
            SOURCE,
        )

        assert [c.alias for c in result.columns] == ["home_city", "work_city"]

    def test_flattened_aliases_must_not_collide(self):
        with pytest.raises(InvalidSchemaStructure, match="a_b"):
            flatten(
                schema(
                    {"name": "a", "type": "map", "fields": [{"name": "b", "type": "string"}]},
                    {"name": "a_b", "type": "string"},
                ).fields,
                DIALECT,
                SOURCE,
            )

    def test_reserved_alias_collision(self):
        with pytest.raises(InvalidSchemaStructure, match="reserved"):
            flatten(
                schema({"name": "document_name", "type": "string"}).fields,
                DIALECT,
                SOURCE,
                reserved=["document_name"],
            )

    @pytest.mark.parametrize("name", ["", "first name", "9lives", "a.b"])
    def test_invalid_identifiers(self, name):
        with pytest.raises(InvalidSchemaStructure):
            flatten(schema({"name": name, "type": "string"}).fields, DIALECT, SOURCE)

    def test_primitive_with_nested_fields(self):
        with pytest.raises(InvalidSchemaStructure) as excinfo:
            flatten(
                schema({"name": "x", "type": "string", "fields": [{"name": "y", "type": "string"}]}).fields,
                DIALECT,
                SOURCE,
            )
        assert "string" in str(excinfo.value)

    def test_map_with_element(self):
        with pytest.raises(InvalidSchemaStructure):
            flatten(
                schema({"name": "m", "type": "map", "element": {"type": "string"}}).fields,
                DIALECT,
                SOURCE,
            )


def test_unsupported_type_reports_nested_path():
    with pytest.raises(UnsupportedFieldType) as excinfo:
        flatten(
            schema({"name": "address", "type": "map", "fields": [
                {"name": "shape", "type": "polygon"},
            ]}).fields,
            DIALECT,
            SOURCE,
        )

    assert excinfo.value.field_path == "address.shape"
    assert "field=address.shape" in str(excinfo.value)


def test_geopoint_yields_two_numeric_columns():
    result = flatten(schema({"name": "loc", "type": "geopoint"}).fields, DIALECT, SOURCE)

    assert [(c.name, c.sql_type) for c in result.columns] == [
        ("loc.latitude", "DOUBLE"),
        ("loc.longitude", "DOUBLE"),
    ]


def test_array_of_maps_registers_one_child():
    result = flatten(
        schema({"name": "items", "type": "array", "element": {"type": "map", "fields": [
            {"name": "a", "type": "string"},
            {"name": "b", "type": "number"},
        ]}}).fields,
        DIALECT,
        SOURCE,
    )

    assert result.columns == []
    assert list(result.children) == ["items"]
    child = flatten_child(result.children["items"], DIALECT, '"items_member"', reserved=["document_name", "items_index"])
    assert [(c.name, c.sql_type) for c in child.columns] == [("a", "VARCHAR"), ("b", "DOUBLE")]


def test_array_with_element_and_fields():
    with pytest.raises(InvalidSchemaStructure) as excinfo:
        flatten(
            schema({"name": "items", "type": "array",
                    "element": {"type": "string"},
                    "fields": [{"name": "sku", "type": "string"}]}).fields,
            DIALECT,
            SOURCE,
        )

    assert excinfo.value.field_path == "items"
