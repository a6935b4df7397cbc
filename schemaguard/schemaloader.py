"""Loads decoded JSON Schema documents into schema trees.

The loader walks the schema document by recursive descent, one frame per
schema object. Keyword values are checked through the typed value model, so
every structural problem is reported as a LoadError at the exact location of
the offending keyword.
"""

# pylint: disable=too-many-branches, too-many-locals

import logging
import re
from typing import Any, Dict, List, Optional, Tuple, Type
from urllib.parse import unquote, urldefrag, urljoin

import jsonpointer
from jsonpointer import JsonPointer, JsonPointerException

from schemaguard.config import LoaderConfig
from schemaguard.errors import LoadError
from schemaguard.formats import lookup_format
from schemaguard.jsonvalue import (JsonArray, JsonBoolean, JsonNumber, JsonObject, JsonString,
                                   JsonValue)
from schemaguard.loadingstate import LoadingState, Resolver
from schemaguard.pointer import Pointer
from schemaguard.schema import (ALL_OF, ANY_OF, ONE_OF, ArraySchema, CombinedSchema,
                                ConditionalSchema, ConstSchema, EnumSchema, FalseSchema,
                                NotSchema, NumberSchema, ObjectSchema, ReferenceSchema,
                                Schema, StringSchema, TrueSchema, TypeSchema)

logger = logging.getLogger(__name__)

JSON_TYPES = ('null', 'boolean', 'object', 'array', 'number', 'integer', 'string')

STRING_KEYWORDS = ('minLength', 'maxLength', 'pattern', 'format')
NUMBER_KEYWORDS = ('minimum', 'maximum', 'exclusiveMinimum', 'exclusiveMaximum', 'multipleOf')
OBJECT_KEYWORDS = ('properties', 'required', 'additionalProperties', 'patternProperties',
                   'minProperties', 'maxProperties', 'dependencies', 'propertyNames')
ARRAY_KEYWORDS = ('items', 'additionalItems', 'minItems', 'maxItems', 'uniqueItems', 'contains')
COMBINATOR_KEYWORDS = (ALL_OF, ANY_OF, ONE_OF, 'not', 'if', 'then', 'else')
ANNOTATION_KEYWORDS = ('$schema', '$id', 'id', '$ref', '$comment', 'title', 'description',
                       'default', 'examples', 'definitions', '$defs', 'readOnly', 'writeOnly')

KNOWN_KEYWORDS = frozenset(('type', 'enum', 'const') + STRING_KEYWORDS + NUMBER_KEYWORDS
                           + OBJECT_KEYWORDS + ARRAY_KEYWORDS + COMBINATOR_KEYWORDS
                           + ANNOTATION_KEYWORDS)

# keywords whose values are plain JSON data, not schemas
VALUE_KEYWORDS = frozenset(('enum', 'const', 'default', 'examples'))


def reference_key(document_uri: str, fragment: str) -> str:
    return f"{document_uri}#{fragment}"


def id_of(raw: Any) -> Optional[str]:
    """The `$id` (or draft-4 `id`) of a decoded schema object, if it is a string."""
    if not isinstance(raw, dict):
        return None
    schema_id = raw['$id'] if '$id' in raw else raw.get('id')
    return schema_id if isinstance(schema_id, str) else None


def register_resources(raw: Any, base_uri: str, pointer: Pointer,
                       documents: Dict[str, Tuple[Any, Pointer]]) -> None:
    """Registers every subtree of a document that declares its own URI with `$id`."""
    if isinstance(raw, list):
        for index, item in enumerate(raw):
            register_resources(item, base_uri, pointer.child(index), documents)
        return
    if not isinstance(raw, dict):
        return
    schema_id = id_of(raw)
    if schema_id is not None:
        new_uri = urldefrag(urljoin(base_uri, schema_id))[0]
        if new_uri and new_uri != base_uri:
            if new_uri not in documents:
                documents[new_uri] = (raw, pointer)
                logger.debug("Registered schema resource %s at %s", new_uri, pointer)
            base_uri = new_uri
    for key, value in raw.items():
        if key not in VALUE_KEYWORDS:
            register_resources(value, base_uri, pointer.child(key), documents)


class SchemaLoader:
    """Builds a schema tree from one decoded schema document.

    Attributes:
        document: The decoded root schema document
        resolver: Fetches documents named by `$ref`s that leave the root document
        config: Loader options
    """

    def __init__(self, document: Any, resolver: Optional[Resolver] = None,
                 config: Optional[LoaderConfig] = None) -> None:
        self.document = document
        self.resolver = resolver
        self.config = config or LoaderConfig()
        self._depth = 0

    def load(self) -> Schema:
        """Loads the whole document.

        Raises:
            LoadError: on the first structural problem; no partial tree is returned
        """
        state = LoadingState.for_load(self.resolver, self.config)
        root_uri = urldefrag(self.config.base_uri)[0]
        root_id = id_of(self.document)
        if root_id is not None:
            root_uri = urldefrag(urljoin(root_uri, root_id))[0]
        state.registry.documents[root_uri] = (self.document, Pointer.root())
        register_resources(self.document, root_uri, Pointer.root(), state.registry.documents)
        root = JsonValue.of(self.document, state)
        self._depth = 0
        return self._load_referenced(root, root_uri, reference_key(root_uri, ''))

    def _load_schema(self, value: JsonValue, base_uri: str) -> Schema:
        self._depth += 1
        try:
            if self._depth > self.config.max_depth:
                raise value.state.error(f"maximum schema nesting depth {self.config.max_depth} exceeded")
            return value.can_be(
                JsonBoolean, lambda flag: TrueSchema(value.pointer) if flag else FalseSchema(value.pointer)
            ).or_(
                JsonObject, lambda obj: self._load_object(obj, base_uri)
            ).require_any()
        finally:
            self._depth -= 1

    def _load_object(self, obj: JsonObject, base_uri: str) -> Schema:
        base_uri = self._rebase(obj, base_uri)
        ref = obj.maybe('$ref')
        if ref is not None:
            return self._load_reference(ref, base_uri)

        annotations = self._annotations(obj)
        factories: List[Tuple[Type[Schema], Dict[str, Any]]] = []
        if obj.contains_key('type'):
            factories.append((TypeSchema, {'types': self._load_types(obj.require('type'))}))
        if obj.contains_key('enum'):
            factories.append((EnumSchema, {'values': obj.require('enum').require_array(
                lambda arr: [item.unwrap() for item in arr])}))
        if obj.contains_key('const'):
            factories.append((ConstSchema, {'value': obj.require('const').unwrap()}))
        if any(obj.contains_key(k) for k in STRING_KEYWORDS):
            factories.append((StringSchema, self._string_keywords(obj)))
        if any(obj.contains_key(k) for k in NUMBER_KEYWORDS):
            factories.append((NumberSchema, self._number_keywords(obj)))
        if any(obj.contains_key(k) for k in OBJECT_KEYWORDS):
            factories.append((ObjectSchema, self._object_keywords(obj, base_uri)))
        if any(obj.contains_key(k) for k in ARRAY_KEYWORDS):
            factories.append((ArraySchema, self._array_keywords(obj, base_uri)))
        for kind in (ALL_OF, ANY_OF, ONE_OF):
            if obj.contains_key(kind):
                factories.append((CombinedSchema, {
                    'kind': kind, 'subschemas': self._load_schema_list(obj.require(kind), base_uri)}))
        if obj.contains_key('not'):
            factories.append((NotSchema, {'subschema': self._load_schema(obj.require('not'), base_uri)}))
        if obj.contains_key('if'):
            factories.append((ConditionalSchema, {
                'if_schema': self._load_schema(obj.require('if'), base_uri),
                'then_schema': self._maybe_schema(obj, 'then', base_uri),
                'else_schema': self._maybe_schema(obj, 'else', base_uri)}))

        if not factories:
            return TrueSchema(obj.pointer, **annotations)
        if len(factories) == 1:
            schema_class, kwargs = factories[0]
            return schema_class(obj.pointer, **kwargs, **annotations)
        members = [schema_class(obj.pointer, **kwargs) for schema_class, kwargs in factories]
        return CombinedSchema(obj.pointer, ALL_OF, members, synthetic=True, **annotations)

    def _annotations(self, obj: JsonObject) -> Dict[str, Any]:
        metadata = {}
        for key, member in obj.items():
            if key in KNOWN_KEYWORDS:
                continue
            if self.config.strict_keywords:
                raise member.state.error(f"unknown keyword [{key}]")
            metadata[key] = member.unwrap()
        schema_id = self._id_member(obj)
        return {
            'title': self._maybe_string(obj, 'title'),
            'description': self._maybe_string(obj, 'description'),
            'default': obj.maybe('default').unwrap() if obj.contains_key('default') else None,
            'schema_id': schema_id.require_string() if schema_id is not None else None,
            'metadata': metadata,
        }

    @staticmethod
    def _id_member(obj: JsonObject) -> Optional[JsonValue]:
        if obj.contains_key('$id'):
            return obj.maybe('$id')
        return obj.maybe('id')

    @staticmethod
    def _maybe_string(obj: JsonObject, key: str) -> Optional[str]:
        member = obj.maybe(key)
        return member.require_string() if member is not None else None

    def _maybe_schema(self, obj: JsonObject, key: str, base_uri: str) -> Optional[Schema]:
        member = obj.maybe(key)
        return self._load_schema(member, base_uri) if member is not None else None

    @staticmethod
    def _maybe_non_negative(obj: JsonObject, key: str) -> Optional[int]:
        member = obj.maybe(key)
        if member is None:
            return None
        count = member.require_integer()
        if count < 0:
            raise member.state.error(f"{key} must be a non-negative integer, found: {count}")
        return count

    def _load_schema_list(self, value: JsonValue, base_uri: str) -> List[Schema]:
        items = value.require_array()
        if len(items) == 0:
            raise value.state.error("expected a non-empty array of schemas")
        return [self._load_schema(item, base_uri) for item in items]

    def _load_types(self, value: JsonValue) -> List[str]:
        def check(type_value: JsonValue) -> str:
            name = type_value.require_string()
            if name not in JSON_TYPES:
                raise type_value.state.error(f"unknown type [{name}], expected one of {', '.join(JSON_TYPES)}")
            return name

        return value.can_be(
            JsonString, lambda _: [check(value)]
        ).or_(
            JsonArray, lambda arr: [check(item) for item in arr]
        ).require_any()

    def _compile_pattern(self, value: JsonValue) -> re.Pattern:
        pattern = value.require_string()
        try:
            return re.compile(pattern)
        except re.error as e:
            raise value.state.error(f"invalid regular expression [{pattern}]: {e}", e) from e

    def _string_keywords(self, obj: JsonObject) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            'min_length': self._maybe_non_negative(obj, 'minLength'),
            'max_length': self._maybe_non_negative(obj, 'maxLength'),
        }
        if obj.contains_key('pattern'):
            kwargs['pattern'] = self._compile_pattern(obj.require('pattern'))
        format_value = obj.maybe('format')
        if format_value is not None:
            format_name = format_value.require_string()
            validator = lookup_format(format_name, self.config.formats)
            if validator is None:
                if self.config.strict_formats:
                    raise format_value.state.error(f"unknown format [{format_name}]")
                logger.warning("Ignoring unknown format [%s] at %s", format_name, format_value.pointer)
            kwargs['format_name'] = format_name
            kwargs['format_validator'] = validator
        return kwargs

    def _number_keywords(self, obj: JsonObject) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            'minimum': obj.maybe('minimum').require_number() if obj.contains_key('minimum') else None,
            'maximum': obj.maybe('maximum').require_number() if obj.contains_key('maximum') else None,
        }
        # draft-4 uses a boolean that turns the inclusive bound exclusive,
        # later drafts carry the exclusive bound itself
        for keyword, bound, target in (('exclusiveMinimum', 'minimum', 'exclusive_minimum'),
                                       ('exclusiveMaximum', 'maximum', 'exclusive_maximum')):
            member = obj.maybe(keyword)
            if member is None:
                continue

            def from_flag(flag: bool, bound=bound, target=target) -> None:
                if flag and kwargs[bound] is not None:
                    kwargs[target] = kwargs[bound]
                    kwargs[bound] = None

            def from_number(number, target=target) -> None:
                kwargs[target] = number

            member.can_be(JsonBoolean, from_flag).or_(JsonNumber, from_number).require_any()
        multiple_of = obj.maybe('multipleOf')
        if multiple_of is not None:
            divisor = multiple_of.require_number()
            if divisor <= 0:
                raise multiple_of.state.error(f"multipleOf must be greater than 0, found: {divisor}")
            kwargs['multiple_of'] = divisor
        return kwargs

    def _object_keywords(self, obj: JsonObject, base_uri: str) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            'min_properties': self._maybe_non_negative(obj, 'minProperties'),
            'max_properties': self._maybe_non_negative(obj, 'maxProperties'),
        }
        if obj.contains_key('properties'):
            kwargs['properties'] = {
                key: self._load_schema(member, base_uri)
                for key, member in obj.require('properties').require_object().items()}
        if obj.contains_key('required'):
            kwargs['required'] = obj.require('required').require_array(
                lambda arr: [item.require_string() for item in arr])
        kwargs['additional_properties'] = self._maybe_schema(obj, 'additionalProperties', base_uri)
        if obj.contains_key('patternProperties'):
            kwargs['pattern_properties'] = [
                (self._compile_pattern(JsonValue.of(key, member.state)), self._load_schema(member, base_uri))
                for key, member in obj.require('patternProperties').require_object().items()]
        if obj.contains_key('dependencies'):
            property_dependencies: Dict[str, List[str]] = {}
            schema_dependencies: Dict[str, Schema] = {}
            for key, member in obj.require('dependencies').require_object().items():
                def as_schema(_, member=member, key=key) -> None:
                    schema_dependencies[key] = self._load_schema(member, base_uri)

                member.can_be(
                    JsonArray, lambda arr, key=key: property_dependencies.__setitem__(
                        key, [item.require_string() for item in arr])
                ).or_(
                    JsonObject, as_schema
                ).or_(
                    JsonBoolean, as_schema
                ).require_any()
            kwargs['property_dependencies'] = property_dependencies
            kwargs['schema_dependencies'] = schema_dependencies
        kwargs['property_names'] = self._maybe_schema(obj, 'propertyNames', base_uri)
        return kwargs

    def _array_keywords(self, obj: JsonObject, base_uri: str) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            'min_items': self._maybe_non_negative(obj, 'minItems'),
            'max_items': self._maybe_non_negative(obj, 'maxItems'),
            'unique_items': obj.require('uniqueItems').require_boolean() if obj.contains_key('uniqueItems') else False,
            'additional_items': self._maybe_schema(obj, 'additionalItems', base_uri),
            'contains': self._maybe_schema(obj, 'contains', base_uri),
        }
        items = obj.maybe('items')
        if items is not None:
            def single(_) -> None:
                kwargs['all_items'] = self._load_schema(items, base_uri)

            def as_tuple(arr: JsonArray) -> None:
                kwargs['item_schemas'] = [self._load_schema(item, base_uri) for item in arr]

            items.can_be(JsonObject, single).or_(JsonArray, as_tuple).or_(JsonBoolean, single).require_any()
        return kwargs

    @staticmethod
    def _rebase(obj: JsonObject, base_uri: str) -> str:
        """Applies `$id` (or draft-4 `id`) to the base URI of this subtree."""
        schema_id = id_of(obj.unwrap())
        if schema_id is None:
            return base_uri
        new_uri = urldefrag(urljoin(base_uri, schema_id))[0]
        return new_uri or base_uri

    def _load_reference(self, ref_value: JsonValue, base_uri: str) -> Schema:
        ref = ref_value.require_string()
        document_uri, fragment = urldefrag(urljoin(base_uri, ref) if base_uri else ref)
        fragment = unquote(fragment)
        key = reference_key(document_uri, fragment)
        registry = ref_value.state.registry

        cached = registry.lookup(key)
        if cached is not None:
            return cached
        if registry.is_resolving(key):
            logger.debug("Cyclic reference %s at %s, deferring resolution", key, ref_value.pointer)
            placeholder = registry.placeholders.get(key)
            if placeholder is None:
                placeholder = ReferenceSchema(ref_value.pointer, key, registry)
                registry.placeholders[key] = placeholder
            return placeholder

        target = self._resolve_target(ref_value, document_uri, fragment)
        return self._load_referenced(target, document_uri, key)

    def _load_referenced(self, target: JsonValue, base_uri: str, key: str) -> Schema:
        registry = target.state.registry
        registry.push(key)
        try:
            schema = self._load_schema(target, base_uri)
        finally:
            registry.pop(key)
        self._check_progress(target, key, schema)
        registry.register(key, schema)
        return schema

    @staticmethod
    def _check_progress(target: JsonValue, key: str, schema: Schema) -> None:
        """Rejects reference chains that lead back to themselves without any other keyword."""
        registry = target.state.registry
        seen = {key}
        current: Optional[Schema] = schema
        while isinstance(current, ReferenceSchema):
            if current.key in seen:
                raise target.state.error(f"cyclic reference without progress [{key}]")
            seen.add(current.key)
            current = registry.lookup(current.key)

    def _resolve_target(self, ref_value: JsonValue, document_uri: str, fragment: str) -> JsonValue:
        registry = ref_value.state.registry
        if document_uri in registry.documents:
            document, document_pointer = registry.documents[document_uri]
        else:
            if registry.resolver is None:
                raise ref_value.state.error(
                    f"cannot resolve [{document_uri}]: no reference resolver configured")
            logger.debug("Resolving document %s for %s", document_uri, ref_value.pointer)
            try:
                document = registry.resolver(document_uri)
            except Exception as e:
                raise LoadError.wrap(ref_value.pointer, e,
                                     f"failed to resolve reference [{document_uri}]: {e}") from e
            document_pointer = Pointer.root()
            registry.documents[document_uri] = (document, document_pointer)
            register_resources(document, document_uri, document_pointer, registry.documents)

        if fragment and not fragment.startswith('/'):
            raise ref_value.state.error(f"unsupported reference fragment [#{fragment}]")
        try:
            raw = jsonpointer.resolve_pointer(document, fragment)
            target_pointer = Pointer(document_pointer.tokens + tuple(JsonPointer(fragment).parts))
        except JsonPointerException as e:
            raise ref_value.state.error(f"unresolvable reference [{document_uri}#{fragment}]", e) from e
        return JsonValue.of(raw, ref_value.state.at(target_pointer))


def load_schema(document: Any, resolver: Optional[Resolver] = None, **config_kwargs) -> Schema:
    """Loads a decoded schema document.

    Args:
        document: The decoded JSON Schema document
        resolver: Fetches documents referenced by URI, see `schemaguard.resolver`
        **config_kwargs: `LoaderConfig` fields

    Returns:
        The root of the schema tree

    Raises:
        LoadError: if the document is not a valid schema
    """
    return SchemaLoader(document, resolver, LoaderConfig(**config_kwargs)).load()
