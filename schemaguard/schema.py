"""Compiled schema nodes.

Nodes are built by `SchemaLoader` and never change after the load returns. The
only exception is the resolution slot of `ReferenceSchema`, which is filled the
first time a cyclic reference is followed.
"""

import threading
from re import Pattern
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Sequence, Tuple

from schemaguard.config import FormatValidator
from schemaguard.errors import LoadError
from schemaguard.pointer import Pointer

if TYPE_CHECKING:
    from schemaguard.loadingstate import ReferenceRegistry

ALL_OF = 'allOf'
ANY_OF = 'anyOf'
ONE_OF = 'oneOf'


class Schema:
    """Base of all schema nodes.

    Attributes:
        location: Pointer of the node in the schema document it was loaded from
        title, description, default, schema_id: annotation keywords, if present
        metadata: keywords the loader did not recognize, kept as decoded values
    """

    def __init__(self, location: Pointer, title: Optional[str] = None,
                 description: Optional[str] = None, default: Any = None,
                 schema_id: Optional[str] = None,
                 metadata: Optional[Mapping[str, Any]] = None) -> None:
        self.location = location
        self.title = title
        self.description = description
        self.default = default
        self.schema_id = schema_id
        self.metadata: Mapping[str, Any] = MappingProxyType(dict(metadata or {}))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(at {self.location})"


class TrueSchema(Schema):
    """Accepts everything; `true` and `{}`."""


class FalseSchema(Schema):
    """Rejects everything; `false`."""


class TypeSchema(Schema):
    def __init__(self, location: Pointer, types: Sequence[str], **annotations) -> None:
        super().__init__(location, **annotations)
        self.types: Tuple[str, ...] = tuple(types)


class EnumSchema(Schema):
    def __init__(self, location: Pointer, values: Sequence[Any], **annotations) -> None:
        super().__init__(location, **annotations)
        self.values: Tuple[Any, ...] = tuple(values)


class ConstSchema(Schema):
    def __init__(self, location: Pointer, value: Any, **annotations) -> None:
        super().__init__(location, **annotations)
        self.value = value


class StringSchema(Schema):
    def __init__(self, location: Pointer, min_length: Optional[int] = None,
                 max_length: Optional[int] = None, pattern: Optional[Pattern] = None,
                 format_name: Optional[str] = None,
                 format_validator: Optional[FormatValidator] = None, **annotations) -> None:
        super().__init__(location, **annotations)
        self.min_length = min_length
        self.max_length = max_length
        self.pattern = pattern
        self.format_name = format_name
        self.format_validator = format_validator


class NumberSchema(Schema):
    """Numeric range; draft-4 boolean exclusive bounds are normalized to numbers."""

    def __init__(self, location: Pointer, minimum=None, maximum=None,
                 exclusive_minimum=None, exclusive_maximum=None, multiple_of=None,
                 **annotations) -> None:
        super().__init__(location, **annotations)
        self.minimum = minimum
        self.maximum = maximum
        self.exclusive_minimum = exclusive_minimum
        self.exclusive_maximum = exclusive_maximum
        self.multiple_of = multiple_of


class ObjectSchema(Schema):
    def __init__(self, location: Pointer,
                 properties: Optional[Dict[str, Schema]] = None,
                 required: Sequence[str] = (),
                 additional_properties: Optional[Schema] = None,
                 pattern_properties: Sequence[Tuple[Pattern, Schema]] = (),
                 min_properties: Optional[int] = None,
                 max_properties: Optional[int] = None,
                 property_dependencies: Optional[Dict[str, Sequence[str]]] = None,
                 schema_dependencies: Optional[Dict[str, Schema]] = None,
                 property_names: Optional[Schema] = None,
                 **annotations) -> None:
        super().__init__(location, **annotations)
        self.properties: Mapping[str, Schema] = MappingProxyType(dict(properties or {}))
        self.required: Tuple[str, ...] = tuple(required)
        self.additional_properties = additional_properties
        self.pattern_properties: Tuple[Tuple[Pattern, Schema], ...] = tuple(pattern_properties)
        self.min_properties = min_properties
        self.max_properties = max_properties
        self.property_dependencies: Mapping[str, Tuple[str, ...]] = MappingProxyType(
            {key: tuple(value) for key, value in (property_dependencies or {}).items()})
        self.schema_dependencies: Mapping[str, Schema] = MappingProxyType(dict(schema_dependencies or {}))
        self.property_names = property_names


class ArraySchema(Schema):
    """`all_items` applies to every item; `item_schemas` is the tuple form of `items`."""

    def __init__(self, location: Pointer, all_items: Optional[Schema] = None,
                 item_schemas: Optional[Sequence[Schema]] = None,
                 additional_items: Optional[Schema] = None,
                 min_items: Optional[int] = None, max_items: Optional[int] = None,
                 unique_items: bool = False, contains: Optional[Schema] = None,
                 **annotations) -> None:
        super().__init__(location, **annotations)
        self.all_items = all_items
        self.item_schemas: Optional[Tuple[Schema, ...]] = None if item_schemas is None else tuple(item_schemas)
        self.additional_items = additional_items
        self.min_items = min_items
        self.max_items = max_items
        self.unique_items = unique_items
        self.contains = contains


class CombinedSchema(Schema):
    """allOf / anyOf / oneOf over ordered subschemas.

    A synthetic combination is the implicit conjunction of several keyword
    families found in one schema object; it reports its members' failures
    directly instead of as a combinator failure.
    """

    def __init__(self, location: Pointer, kind: str, subschemas: Sequence[Schema],
                 synthetic: bool = False, **annotations) -> None:
        super().__init__(location, **annotations)
        if kind not in (ALL_OF, ANY_OF, ONE_OF):
            raise ValueError(f"unknown combinator {kind}")
        self.kind = kind
        self.subschemas: Tuple[Schema, ...] = tuple(subschemas)
        self.synthetic = synthetic


class NotSchema(Schema):
    def __init__(self, location: Pointer, subschema: Schema, **annotations) -> None:
        super().__init__(location, **annotations)
        self.subschema = subschema


class ConditionalSchema(Schema):
    def __init__(self, location: Pointer, if_schema: Schema,
                 then_schema: Optional[Schema] = None,
                 else_schema: Optional[Schema] = None, **annotations) -> None:
        super().__init__(location, **annotations)
        self.if_schema = if_schema
        self.then_schema = then_schema
        self.else_schema = else_schema


class ReferenceSchema(Schema):
    """Placeholder for a `$ref` met while its own target was still loading.

    The target is looked up in the reference cache on first use. Resolution is
    write-once and guarded by a lock, so a loaded tree can be validated from
    several threads.
    """

    def __init__(self, location: Pointer, key: str, registry: 'ReferenceRegistry') -> None:
        super().__init__(location)
        self.key = key
        self._registry = registry
        self._referred: Optional[Schema] = None
        self._lock = threading.Lock()

    @property
    def is_resolved(self) -> bool:
        return self._referred is not None

    def resolve(self) -> Schema:
        """The schema this reference points to.

        Raises:
            LoadError: if the reference target never finished loading
        """
        if self._referred is None:
            with self._lock:
                if self._referred is None:
                    referred = self._registry.lookup(self.key)
                    if referred is None:
                        raise LoadError(self.location, f"unresolved reference [{self.key}]")
                    self._referred = referred
        return self._referred

    def __repr__(self) -> str:
        return f"ReferenceSchema({self.key!r} at {self.location})"
