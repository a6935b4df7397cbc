"""Typed wrapper over decoded JSON values.

A decoded document (None, bool, int, float, str, list, dict) is wrapped
eagerly into a tree of `JsonValue` variants. Every node keeps the loading state
it was created with, so a failed type assertion on any node is reported at that
node's own location in the schema document.

Dispatch over variants uses an ordered multiplexer:

    value.can_be(JsonString, handle_name).or_(JsonArray, handle_names).require_any()

The first clause whose declared type is the value's variant or one of its
supertypes wins, in registration order.
"""

from typing import (TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Optional,
                    Tuple, Type, TypeVar)

if TYPE_CHECKING:
    from schemaguard.loadingstate import LoadingState

R = TypeVar('R')


def identity(value):
    return value


def canonical(raw: Any) -> Any:
    """Hashable structural form of a decoded JSON value.

    Booleans stay distinct from numbers, 1 and 1.0 compare equal, object key
    order is irrelevant and array order is significant.
    """
    if raw is None:
        return ('null',)
    if isinstance(raw, bool):
        return ('boolean', raw)
    if isinstance(raw, (int, float)):
        return ('number', raw)
    if isinstance(raw, str):
        return ('string', raw)
    if isinstance(raw, (list, tuple)):
        return ('array', tuple(canonical(item) for item in raw))
    if isinstance(raw, dict):
        return ('object', frozenset((key, canonical(value)) for key, value in raw.items()))
    raise TypeError(f"not a decoded JSON value: {type(raw).__name__}")


def json_type_of(raw: Any) -> str:
    """JSON Schema type name of a decoded value ('integer' for whole ints)."""
    if raw is None:
        return 'null'
    if isinstance(raw, bool):
        return 'boolean'
    if isinstance(raw, int):
        return 'integer'
    if isinstance(raw, float):
        return 'number'
    if isinstance(raw, str):
        return 'string'
    if isinstance(raw, (list, tuple)):
        return 'array'
    if isinstance(raw, dict):
        return 'object'
    raise TypeError(f"not a decoded JSON value: {type(raw).__name__}")


class Multiplexer:
    """Ordered (type, handler) clauses over a single value."""

    def __init__(self, value: 'JsonValue', expected_type: Type['JsonValue'],
                 handler: Callable[[Any], R]):
        self._value = value
        self._clauses: List[Tuple[Type['JsonValue'], Callable[[Any], Any]]] = [
            (expected_type, handler)]

    def or_(self, expected_type: Type['JsonValue'], handler: Callable[[Any], R]) -> 'Multiplexer':
        self._clauses.append((expected_type, handler))
        return self

    @property
    def expected_types(self) -> List[Type['JsonValue']]:
        return [clazz for clazz, _ in self._clauses]

    def require_any(self):
        """Runs the first clause covering the value's variant and returns its result.

        Raises:
            LoadError: if no registered clause covers the variant
        """
        for clazz, handler in self._clauses:
            if isinstance(self._value, clazz):
                return handler(self._value.unwrap_for_handler())
        raise self._value.state.create_multiplex_failure(
            self._value.type_name, [clazz.type_name for clazz in self.expected_types])


class JsonValue:
    """Base of all variants; also the top type in dispatch."""

    type_name: Optional[str] = 'JsonValue'

    def __init__(self, raw: Any, state: 'LoadingState'):
        self._raw = raw
        self.state = state

    @staticmethod
    def of(raw: Any, state: 'LoadingState') -> 'JsonValue':
        """Wraps a decoded value and, recursively, all of its members."""
        if raw is None:
            return JsonNull(raw, state)
        if isinstance(raw, bool):
            return JsonBoolean(raw, state)
        if isinstance(raw, int):
            return JsonInteger(raw, state)
        if isinstance(raw, float):
            return JsonNumber(raw, state)
        if isinstance(raw, str):
            return JsonString(raw, state)
        if isinstance(raw, (list, tuple)):
            return JsonArray(raw, state)
        if isinstance(raw, dict):
            return JsonObject(raw, state)
        raise state.error(f"unsupported value of type {type(raw).__name__}")

    @property
    def pointer(self):
        return self.state.pointer

    def unwrap(self) -> Any:
        """The decoded Python value this node wraps."""
        return self._raw

    def unwrap_for_handler(self) -> Any:
        return self._raw

    def can_be(self, expected_type: Type['JsonValue'], handler: Callable[[Any], R]) -> Multiplexer:
        return Multiplexer(self, expected_type, handler)

    def _require(self, expected_type: Type['JsonValue'], mapper: Callable[[Any], R]) -> R:
        if isinstance(self, expected_type):
            return mapper(self.unwrap_for_handler())
        raise self.state.create_type_mismatch(self.type_name, expected_type.type_name)

    def require_string(self, mapper: Callable[[str], R] = identity) -> R:
        return self._require(JsonString, mapper)

    def require_boolean(self, mapper: Callable[[bool], R] = identity) -> R:
        return self._require(JsonBoolean, mapper)

    def require_number(self, mapper: Callable[[Any], R] = identity) -> R:
        return self._require(JsonNumber, mapper)

    def require_integer(self, mapper: Callable[[int], R] = identity) -> R:
        return self._require(JsonInteger, mapper)

    def require_object(self, mapper: Callable[['JsonObject'], R] = identity) -> R:
        return self._require(JsonObject, mapper)

    def require_array(self, mapper: Callable[['JsonArray'], R] = identity) -> R:
        return self._require(JsonArray, mapper)

    def __eq__(self, other) -> bool:
        if not isinstance(other, JsonValue):
            return NotImplemented
        return canonical(self._raw) == canonical(other._raw)

    def __hash__(self) -> int:
        return hash(canonical(self._raw))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._raw!r} at {self.pointer})"


class JsonNull(JsonValue):
    type_name = None


class JsonBoolean(JsonValue):
    type_name = 'Boolean'


class JsonNumber(JsonValue):
    type_name = 'Number'


class JsonInteger(JsonNumber):
    type_name = 'Integer'


class JsonString(JsonValue):
    type_name = 'String'


class JsonArray(JsonValue):
    type_name = 'JsonArray'

    def __init__(self, raw: list, state: 'LoadingState'):
        super().__init__(raw, state)
        self._items: Tuple[JsonValue, ...] = tuple(
            JsonValue.of(item, state.child_for(index)) for index, item in enumerate(raw))

    def unwrap_for_handler(self) -> 'JsonArray':
        return self

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> JsonValue:
        return self._items[index]

    def __iter__(self) -> Iterator[JsonValue]:
        return iter(self._items)


class JsonObject(JsonValue):
    type_name = 'JsonObject'

    def __init__(self, raw: dict, state: 'LoadingState'):
        super().__init__(raw, state)
        self._members: Dict[str, JsonValue] = {
            key: JsonValue.of(value, state.child_for(key)) for key, value in raw.items()}

    def unwrap_for_handler(self) -> 'JsonObject':
        return self

    def contains_key(self, key: str) -> bool:
        return key in self._members

    def require(self, key: str) -> JsonValue:
        """Member by key; a missing key is a LoadError at this object's location."""
        if key not in self._members:
            raise self.state.error(f"required key [{key}] not found")
        return self._members[key]

    def maybe(self, key: str) -> Optional[JsonValue]:
        return self._members.get(key)

    def keys(self) -> List[str]:
        return list(self._members)

    def items(self) -> List[Tuple[str, JsonValue]]:
        return list(self._members.items())

    def __len__(self) -> int:
        return len(self._members)
