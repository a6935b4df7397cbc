"""Pointer-tracking state shared by one schema load."""

from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Tuple

from schemaguard.config import LoaderConfig
from schemaguard.errors import LoadError
from schemaguard.pointer import Pointer, Token

if TYPE_CHECKING:
    from schemaguard.schema import ReferenceSchema, Schema

Resolver = Callable[[str], Any]


class ReferenceRegistry:
    """Reference cache and cycle bookkeeping for one load.

    Attributes:
        resolver: Fetches documents that are not part of the load yet
        schemas: Write-once mapping from reference key to the loaded schema
        resolving: Keys whose targets are currently being loaded, innermost last
        placeholders: One lazily resolved reference node per cyclic key
        documents: Decoded documents by URI, with the pointer of their root
    """

    def __init__(self, resolver: Optional[Resolver] = None) -> None:
        self.resolver = resolver
        self.schemas: Dict[str, 'Schema'] = {}
        self.resolving: List[str] = []
        self.placeholders: Dict[str, 'ReferenceSchema'] = {}
        self.documents: Dict[str, Tuple[Any, Pointer]] = {}

    def lookup(self, key: str) -> Optional['Schema']:
        return self.schemas.get(key)

    def register(self, key: str, schema: 'Schema') -> None:
        if key in self.schemas:
            raise LoadError(schema.location, f"reference [{key}] is already registered")
        self.schemas[key] = schema

    def is_resolving(self, key: str) -> bool:
        return key in self.resolving

    def push(self, key: str) -> None:
        self.resolving.append(key)

    def pop(self, key: str) -> None:
        popped = self.resolving.pop()
        if popped != key:
            raise LoadError(None, f"reference stack out of order: [{popped}] popped, [{key}] expected")


class LoadingState:
    """The location the loader is at, plus what the whole load shares.

    Child states share the registry and config of their parent; only the
    pointer differs.
    """

    def __init__(self, pointer: Pointer, registry: ReferenceRegistry,
                 config: Optional[LoaderConfig] = None) -> None:
        self.pointer = pointer
        self.registry = registry
        self.config = config or LoaderConfig()

    @classmethod
    def for_load(cls, resolver: Optional[Resolver] = None,
                 config: Optional[LoaderConfig] = None) -> 'LoadingState':
        return cls(Pointer.root(), ReferenceRegistry(resolver), config)

    def child_for(self, token: Token) -> 'LoadingState':
        return LoadingState(self.pointer.child(token), self.registry, self.config)

    def at(self, pointer: Pointer) -> 'LoadingState':
        """A state for another location, sharing this load's registry."""
        return LoadingState(pointer, self.registry, self.config)

    def create_type_mismatch(self, actual_type: Optional[str], expected_type: str) -> LoadError:
        return LoadError.type_mismatch(self.pointer, actual_type, expected_type)

    def create_multiplex_failure(self, actual_type: Optional[str],
                                 expected_types: Sequence[str]) -> LoadError:
        return LoadError.multiplex_failure(self.pointer, actual_type, expected_types)

    def error(self, message: str, cause: Optional[BaseException] = None) -> LoadError:
        return LoadError(self.pointer, message, cause)
