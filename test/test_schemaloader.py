"""Tests for loading schema documents into schema trees."""

import os
import sys
import unittest

current_script_path = os.path.abspath(__file__)
project_root = os.path.dirname(os.path.dirname(current_script_path))
sys.path.append(project_root)

from schemaguard.config import LoaderConfig
from schemaguard.errors import LoadError
from schemaguard.pointer import Pointer
from schemaguard.schema import (ArraySchema, CombinedSchema, ConditionalSchema, EnumSchema,
                                FalseSchema, NotSchema, NumberSchema, ObjectSchema,
                                ReferenceSchema, StringSchema, TrueSchema, TypeSchema)
from schemaguard.schemaloader import SchemaLoader, load_schema


class TestSchemaShapes(unittest.TestCase):
    """Which node a schema object becomes."""

    def test_boolean_schemas(self):
        self.assertIsInstance(load_schema(True), TrueSchema)
        self.assertIsInstance(load_schema(False), FalseSchema)

    def test_empty_object_accepts_everything(self):
        self.assertIsInstance(load_schema({}), TrueSchema)

    def test_single_keyword_family(self):
        schema = load_schema({"minLength": 2, "maxLength": 5, "pattern": "^a"})
        self.assertIsInstance(schema, StringSchema)
        self.assertEqual(schema.min_length, 2)
        self.assertEqual(schema.max_length, 5)
        self.assertEqual(schema.pattern.pattern, "^a")

    def test_several_families_become_synthetic_all_of(self):
        schema = load_schema({"type": "string", "minLength": 1, "title": "Name"})
        self.assertIsInstance(schema, CombinedSchema)
        self.assertTrue(schema.synthetic)
        self.assertEqual([type(s) for s in schema.subschemas], [TypeSchema, StringSchema])
        self.assertEqual(schema.title, "Name")

    def test_type_list(self):
        schema = load_schema({"type": ["string", "null"]})
        self.assertEqual(schema.types, ("string", "null"))

    def test_enum(self):
        schema = load_schema({"enum": [1, "a", None]})
        self.assertIsInstance(schema, EnumSchema)
        self.assertEqual(schema.values, (1, "a", None))

    def test_object_keywords(self):
        schema = load_schema({
            "properties": {"a": {"type": "integer"}},
            "required": ["a"],
            "additionalProperties": False,
            "patternProperties": {"^x-": {}},
            "dependencies": {"a": ["b"], "c": {"required": ["d"]}},
            "propertyNames": {"maxLength": 3},
        })
        self.assertIsInstance(schema, ObjectSchema)
        self.assertIsInstance(schema.properties["a"], TypeSchema)
        self.assertEqual(schema.required, ("a",))
        self.assertIsInstance(schema.additional_properties, FalseSchema)
        self.assertEqual(schema.pattern_properties[0][0].pattern, "^x-")
        self.assertEqual(schema.property_dependencies["a"], ("b",))
        self.assertIsInstance(schema.schema_dependencies["c"], ObjectSchema)
        self.assertIsInstance(schema.property_names, StringSchema)

    def test_array_keywords(self):
        tuple_schema = load_schema({"items": [{"type": "string"}, True], "additionalItems": False})
        self.assertIsInstance(tuple_schema, ArraySchema)
        self.assertEqual(len(tuple_schema.item_schemas), 2)
        self.assertIsNone(tuple_schema.all_items)
        list_schema = load_schema({"items": {"type": "string"}, "uniqueItems": True, "contains": {}})
        self.assertIsInstance(list_schema.all_items, TypeSchema)
        self.assertTrue(list_schema.unique_items)
        self.assertIsInstance(list_schema.contains, TrueSchema)

    def test_combinators(self):
        schema = load_schema({"anyOf": [{"type": "string"}, {"type": "integer"}]})
        self.assertIsInstance(schema, CombinedSchema)
        self.assertFalse(schema.synthetic)
        self.assertEqual(schema.kind, "anyOf")
        self.assertIsInstance(load_schema({"not": {"type": "string"}}), NotSchema)
        conditional = load_schema({"if": {"minimum": 0}, "then": {"multipleOf": 2}})
        self.assertIsInstance(conditional, ConditionalSchema)
        self.assertIsNone(conditional.else_schema)

    def test_locations(self):
        schema = load_schema({"properties": {"a": {"items": {"type": "string"}}}})
        self.assertEqual(schema.properties["a"].all_items.location, Pointer(["properties", "a", "items"]))

    def test_draft4_exclusive_bounds(self):
        schema = load_schema({"minimum": 0, "exclusiveMinimum": True, "maximum": 10})
        self.assertIsInstance(schema, NumberSchema)
        self.assertIsNone(schema.minimum)
        self.assertEqual(schema.exclusive_minimum, 0)
        self.assertEqual(schema.maximum, 10)

    def test_draft6_exclusive_bounds(self):
        schema = load_schema({"exclusiveMaximum": 5})
        self.assertEqual(schema.exclusive_maximum, 5)
        self.assertIsNone(schema.maximum)


class TestLoadErrors(unittest.TestCase):
    """Malformed schemas are reported at the offending keyword."""

    def assertLoadError(self, document, pointer, message=None, **config):
        with self.assertRaises(LoadError) as ctx:
            load_schema(document, **config)
        self.assertEqual(ctx.exception.pointer_to_violation, pointer)
        if message is not None:
            self.assertEqual(ctx.exception.message, message)
        return ctx.exception

    def test_schema_must_be_object_or_boolean(self):
        self.assertLoadError(42, "#", "expected type is one of Boolean or JsonObject, found: Integer")

    def test_nested_wrong_keyword_type(self):
        self.assertLoadError({"properties": {"a": {"pattern": 5}}}, "#/properties/a/pattern",
                             "expected type: String, found: Integer")

    def test_invalid_regex(self):
        error = self.assertLoadError({"properties": {"a": {"pattern": "("}}}, "#/properties/a/pattern")
        self.assertTrue(error.message.startswith("invalid regular expression [(]"))

    def test_invalid_pattern_property(self):
        self.assertLoadError({"patternProperties": {"(": {}}}, "#/patternProperties/(")

    def test_unknown_type_name(self):
        self.assertLoadError({"type": ["string", "strin"]}, "#/type/1")

    def test_type_of_wrong_kind(self):
        self.assertLoadError({"type": 1}, "#/type", "expected type is one of String or JsonArray, found: Integer")

    def test_negative_count(self):
        self.assertLoadError({"minItems": -1}, "#/minItems", "minItems must be a non-negative integer, found: -1")

    def test_multiple_of_must_be_positive(self):
        self.assertLoadError({"multipleOf": 0}, "#/multipleOf")

    def test_empty_combinator(self):
        self.assertLoadError({"allOf": []}, "#/allOf", "expected a non-empty array of schemas")

    def test_items_of_wrong_kind(self):
        self.assertLoadError({"items": "string"}, "#/items",
                             "expected type is one of JsonObject or JsonArray or Boolean, found: String")

    def test_exclusive_bound_of_wrong_kind(self):
        self.assertLoadError({"exclusiveMinimum": "0"}, "#/exclusiveMinimum",
                             "expected type is one of Boolean or Number, found: String")

    def test_dependency_of_wrong_kind(self):
        self.assertLoadError({"dependencies": {"a": "b"}}, "#/dependencies/a")

    def test_error_inside_combinator_member(self):
        self.assertLoadError({"oneOf": [{}, {"maxLength": "x"}]}, "#/oneOf/1/maxLength")

    def test_depth_limit(self):
        document = {}
        for _ in range(20):
            document = {"not": document}
        with self.assertRaises(LoadError) as ctx:
            load_schema(document, max_depth=10)
        self.assertIn("maximum schema nesting depth 10 exceeded", ctx.exception.message)


class TestKeywordsAndFormats(unittest.TestCase):
    """Unknown keywords and format names."""

    def test_unknown_keywords_kept_as_metadata(self):
        schema = load_schema({"type": "string", "x-origin": {"table": "people"}})
        self.assertEqual(dict(schema.metadata), {"x-origin": {"table": "people"}})

    def test_unknown_keywords_rejected_when_strict(self):
        with self.assertRaises(LoadError) as ctx:
            load_schema({"properties": {"a": {"typ": "string"}}}, strict_keywords=True)
        self.assertEqual(str(ctx.exception), "#/properties/a/typ: unknown keyword [typ]")

    def test_metadata_is_read_only(self):
        schema = load_schema({"x-a": 1})
        with self.assertRaises(TypeError):
            schema.metadata["x-b"] = 2

    def test_known_format(self):
        schema = load_schema({"format": "date"})
        self.assertEqual(schema.format_name, "date")
        self.assertIsNotNone(schema.format_validator)

    def test_unknown_format_is_ignored(self):
        with self.assertLogs('schemaguard.schemaloader', level='WARNING'):
            schema = load_schema({"format": "zip-code"})
        self.assertIsNone(schema.format_validator)

    def test_unknown_format_rejected_when_strict(self):
        with self.assertRaises(LoadError) as ctx:
            load_schema({"format": "zip-code"}, strict_formats=True)
        self.assertEqual(str(ctx.exception), "#/format: unknown format [zip-code]")

    def test_custom_format(self):
        def zip_code(value):
            return None if value.isdigit() else f"[{value}] is not a zip code"

        schema = load_schema({"format": "zip-code"}, strict_formats=True, formats={"zip-code": zip_code})
        self.assertIs(schema.format_validator, zip_code)


class TestReferences(unittest.TestCase):
    """`$ref` resolution."""

    def test_local_reference(self):
        schema = load_schema({
            "definitions": {"name": {"type": "string"}},
            "properties": {"a": {"$ref": "#/definitions/name"}},
        })
        self.assertIsInstance(schema.properties["a"], TypeSchema)
        self.assertEqual(schema.properties["a"].location, Pointer(["definitions", "name"]))

    def test_repeated_reference_yields_same_node(self):
        schema = load_schema({
            "definitions": {"name": {"type": "string"}},
            "properties": {"a": {"$ref": "#/definitions/name"}, "b": {"$ref": "#/definitions/name"}},
        })
        self.assertIs(schema.properties["a"], schema.properties["b"])

    def test_sibling_keywords_of_reference_are_ignored(self):
        schema = load_schema({
            "definitions": {"n": {"type": "number"}},
            "properties": {"a": {"$ref": "#/definitions/n", "minimum": 5}},
        })
        self.assertIsInstance(schema.properties["a"], TypeSchema)

    def test_escaped_fragment(self):
        schema = load_schema({
            "definitions": {"a/b": {"type": "string"}, "c d": {"type": "integer"}},
            "properties": {
                "x": {"$ref": "#/definitions/a~1b"},
                "y": {"$ref": "#/definitions/c%20d"},
            },
        })
        self.assertEqual(schema.properties["x"].types, ("string",))
        self.assertEqual(schema.properties["y"].types, ("integer",))

    def test_percent_in_definition_name(self):
        """The referenced node keeps the location of its definition."""
        schema = load_schema({
            "definitions": {"a%25b": {"type": "string"}},
            "properties": {"x": {"$ref": "#/definitions/a%2525b"}},
        })
        target = schema.properties["x"]
        self.assertEqual(target.types, ("string",))
        self.assertEqual(target.location, Pointer(["definitions", "a%25b"]))
        self.assertEqual(target.location.to_uri_fragment(), "#/definitions/a%2525b")

    def test_self_reference(self):
        schema = load_schema({"type": "object", "properties": {"next": {"$ref": "#"}}})
        next_schema = schema.subschemas[1].properties["next"]
        self.assertIsInstance(next_schema, ReferenceSchema)
        self.assertIs(next_schema.resolve(), schema)
        self.assertTrue(next_schema.is_resolved)

    def test_mutual_references(self):
        schema = load_schema({
            "definitions": {
                "a": {"properties": {"b": {"$ref": "#/definitions/b"}}},
                "b": {"properties": {"a": {"$ref": "#/definitions/a"}}},
            },
            "properties": {"start": {"$ref": "#/definitions/a"}},
        })
        a = schema.properties["start"]
        b = a.properties["b"]
        self.assertIsInstance(b, ObjectSchema)
        self.assertIs(b.properties["a"].resolve(), a)

    def test_reference_to_itself_without_progress(self):
        with self.assertRaises(LoadError) as ctx:
            load_schema({"$ref": "#"})
        self.assertIn("cyclic reference without progress", ctx.exception.message)

    def test_reference_chain_without_progress(self):
        with self.assertRaises(LoadError):
            load_schema({
                "definitions": {"a": {"$ref": "#/definitions/b"}, "b": {"$ref": "#/definitions/a"}},
                "properties": {"x": {"$ref": "#/definitions/a"}},
            })

    def test_unresolvable_fragment(self):
        with self.assertRaises(LoadError) as ctx:
            load_schema({"properties": {"a": {"$ref": "#/definitions/missing"}}})
        self.assertEqual(ctx.exception.pointer_to_violation, "#/properties/a/$ref")
        self.assertEqual(ctx.exception.message, "unresolvable reference [#/definitions/missing]")

    def test_anchor_fragment_unsupported(self):
        with self.assertRaises(LoadError) as ctx:
            load_schema({"properties": {"a": {"$ref": "#foo"}}})
        self.assertEqual(ctx.exception.message, "unsupported reference fragment [#foo]")

    def test_error_in_referenced_schema_points_at_target(self):
        with self.assertRaises(LoadError) as ctx:
            load_schema({
                "definitions": {"bad": {"minLength": "1"}},
                "properties": {"a": {"$ref": "#/definitions/bad"}},
            })
        self.assertEqual(ctx.exception.pointer_to_violation, "#/definitions/bad/minLength")

    def test_external_reference_without_resolver(self):
        with self.assertRaises(LoadError) as ctx:
            load_schema({"$ref": "http://example.com/other.json"})
        self.assertIn("no reference resolver configured", ctx.exception.message)

    def test_external_reference(self):
        requested = []

        def resolver(uri):
            requested.append(uri)
            return {"definitions": {"id": {"type": "integer"}}}

        schema = load_schema({
            "properties": {
                "a": {"$ref": "http://example.com/common.json#/definitions/id"},
                "b": {"$ref": "http://example.com/common.json#/definitions/id"},
            }
        }, resolver)
        self.assertEqual(requested, ["http://example.com/common.json"])
        self.assertEqual(schema.properties["a"].types, ("integer",))
        self.assertIs(schema.properties["a"], schema.properties["b"])

    def test_relative_reference_uses_base_uri(self):
        requested = []

        def resolver(uri):
            requested.append(uri)
            return {"type": "string"}

        config = LoaderConfig(base_uri="http://example.com/schemas/root.json")
        SchemaLoader({"properties": {"a": {"$ref": "name.json"}}}, resolver, config).load()
        self.assertEqual(requested, ["http://example.com/schemas/name.json"])

    def test_id_rebases_nested_references(self):
        requested = []

        def resolver(uri):
            requested.append(uri)
            return {"type": "string"}

        load_schema({
            "$id": "http://example.com/root.json",
            "properties": {
                "a": {"$id": "nested/", "properties": {"b": {"$ref": "leaf.json"}}},
            },
        }, resolver)
        self.assertEqual(requested, ["http://example.com/nested/leaf.json"])

    def test_reference_to_embedded_id(self):
        schema = load_schema({
            "$id": "http://example.com/root.json",
            "definitions": {"inner": {"$id": "inner.json", "type": "boolean"}},
            "properties": {"a": {"$ref": "inner.json"}},
        })
        self.assertEqual(schema.properties["a"].types, ("boolean",))

    def test_resolver_failure_is_wrapped(self):
        def resolver(uri):
            raise OSError("connection refused")

        with self.assertRaises(LoadError) as ctx:
            load_schema({"properties": {"a": {"$ref": "http://example.com/x.json"}}}, resolver)
        self.assertEqual(ctx.exception.pointer_to_violation, "#/properties/a/$ref")
        self.assertIsInstance(ctx.exception.__cause__, OSError)
        self.assertIn("failed to resolve reference [http://example.com/x.json]", ctx.exception.message)


if __name__ == '__main__':
    unittest.main()
