"""JSON Pointer paths rendered as URI fragments."""

from typing import Iterable, Tuple, Union
from urllib.parse import quote, unquote

import jsonpointer
from jsonpointer import JsonPointer, JsonPointerException

Token = Union[str, int]

# characters allowed in a URI fragment besides unreserved ones (RFC 3986)
_FRAGMENT_SAFE = "/~!$&'()*+,;=:@"


class Pointer:
    """An immutable sequence of reference tokens from a document root."""

    __slots__ = ('_tokens',)

    def __init__(self, tokens: Iterable[Token] = ()):
        self._tokens: Tuple[Token, ...] = tuple(tokens)

    @classmethod
    def root(cls) -> 'Pointer':
        return _ROOT

    @classmethod
    def from_uri_fragment(cls, fragment: str) -> 'Pointer':
        """Parses '#/a/0', '/a/0' or '' into a pointer.

        Raises:
            JsonPointerException: if the fragment is not a valid JSON pointer
        """
        if fragment.startswith('#'):
            fragment = fragment[1:]
        fragment = unquote(fragment)
        if not fragment:
            return _ROOT
        return cls(JsonPointer(fragment).parts)

    @property
    def tokens(self) -> Tuple[Token, ...]:
        return self._tokens

    def child(self, token: Token) -> 'Pointer':
        return Pointer(self._tokens + (token,))

    def to_json_pointer(self) -> str:
        return ''.join('/' + jsonpointer.escape(str(t)) for t in self._tokens)

    def to_uri_fragment(self) -> str:
        return '#' + ''.join(
            '/' + quote(jsonpointer.escape(str(t)), safe=_FRAGMENT_SAFE) for t in self._tokens)

    def __len__(self) -> int:
        return len(self._tokens)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Pointer):
            return NotImplemented
        return tuple(map(str, self._tokens)) == tuple(map(str, other._tokens))

    def __hash__(self) -> int:
        return hash(tuple(map(str, self._tokens)))

    def __str__(self) -> str:
        return self.to_uri_fragment()

    def __repr__(self) -> str:
        return f"Pointer({self.to_uri_fragment()!r})"


_ROOT = Pointer()

__all__ = ['Pointer', 'Token', 'JsonPointerException']
