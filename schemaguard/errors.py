"""Load-time and validation-time diagnostics.

Both error kinds are stamped with the pointer of the location they describe:
a `LoadError` points into the schema document, a `ValidationError` points into
the instance being validated.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence

from schemaguard.pointer import Pointer

UNKNOWN_LOCATION = "<unknown location>"


def format_pointer(pointer: Optional[Pointer]) -> str:
    """Renders a pointer as URI fragment, or the placeholder if absent."""
    return UNKNOWN_LOCATION if pointer is None else pointer.to_uri_fragment()


def actual_type_description(actual_type: Optional[str]) -> str:
    return "null" if actual_type is None else actual_type


def type_mismatch_message(actual_type: Optional[str], expected_type: str) -> str:
    return f"expected type: {expected_type}, found: {actual_type_description(actual_type)}"


def multiplex_failure_message(actual_type: Optional[str], expected_types: Sequence[str]) -> str:
    return (f"expected type is one of {' or '.join(expected_types)}, "
            f"found: {actual_type_description(actual_type)}")


class LoadError(Exception):
    """Raised while interpreting a schema document.

    A load error aborts the load that raised it; no partially built schema is
    ever returned.

    Attributes:
        pointer: Location in the schema document, or None if unknown
        message: Message without the location prefix
        cause: Optional underlying exception
    """

    def __init__(self, pointer: Optional[Pointer], message: str,
                 cause: Optional[BaseException] = None) -> None:
        self.pointer = pointer
        self.message = message
        self.cause = cause
        super().__init__(f"{format_pointer(pointer)}: {message}")
        if cause is not None:
            self.__cause__ = cause

    @property
    def pointer_to_violation(self) -> str:
        return format_pointer(self.pointer)

    @classmethod
    def type_mismatch(cls, pointer: Optional[Pointer], actual_type: Optional[str],
                      expected_type: str) -> 'LoadError':
        return cls(pointer, type_mismatch_message(actual_type, expected_type))

    @classmethod
    def multiplex_failure(cls, pointer: Optional[Pointer], actual_type: Optional[str],
                          expected_types: Sequence[str]) -> 'LoadError':
        return cls(pointer, multiplex_failure_message(actual_type, expected_types))

    @classmethod
    def wrap(cls, pointer: Optional[Pointer], cause: BaseException,
             message: Optional[str] = None) -> 'LoadError':
        """Wraps a lower-level failure, keeping the pointer of an inner LoadError."""
        if isinstance(cause, LoadError) and cause.pointer is not None:
            pointer = cause.pointer
        return cls(pointer, message or str(cause), cause)


class ValidationError(Exception):
    """Tree-shaped report of what is wrong with an instance.

    Leaf violations have no children. Combinator and structural failures
    carry the violations of their members as children, in evaluation order.
    """

    def __init__(self, pointer: Pointer, message: str,
                 children: Iterable['ValidationError'] = (),
                 keyword: Optional[str] = None,
                 schema_location: Optional[Pointer] = None) -> None:
        self.pointer = pointer
        self.message = message
        self.children = tuple(children)
        self.keyword = keyword
        self.schema_location = schema_location
        super().__init__(f"{format_pointer(pointer)}: {message}")

    @classmethod
    def collect(cls, pointer: Pointer, failures: Sequence['ValidationError'],
                schema_location: Optional[Pointer] = None) -> Optional['ValidationError']:
        """Folds member failures: none, the single failure, or a parent over all of them."""
        if not failures:
            return None
        if len(failures) == 1:
            return failures[0]
        return cls(pointer, f"{sum(f.violation_count for f in failures)} schema violations found",
                   failures, schema_location=schema_location)

    @property
    def pointer_to_violation(self) -> str:
        return format_pointer(self.pointer)

    @property
    def violation_count(self) -> int:
        if not self.children:
            return 1
        return sum(child.violation_count for child in self.children)

    def all_messages(self) -> List[str]:
        """Flattened leaf messages, each prefixed with its location."""
        if not self.children:
            return [str(self)]
        messages: List[str] = []
        for child in self.children:
            messages.extend(child.all_messages())
        return messages

    def to_json(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "pointerToViolation": self.pointer_to_violation,
            "keyword": self.keyword,
            "message": str(self),
            "causingExceptions": [child.to_json() for child in self.children],
        }
        if self.schema_location is not None:
            result["schemaLocation"] = self.schema_location.to_uri_fragment()
        return result

    def __eq__(self, other) -> bool:
        if not isinstance(other, ValidationError):
            return NotImplemented
        return (self.pointer == other.pointer and self.message == other.message
                and self.keyword == other.keyword and self.children == other.children)

    def __hash__(self) -> int:
        return hash((self.pointer, self.message, self.keyword))

    def __repr__(self) -> str:
        return f"ValidationError({str(self)!r}, children={len(self.children)})"
