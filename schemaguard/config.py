"""Loader configuration."""

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

FormatValidator = Callable[[str], Optional[str]]

DEFAULT_MAX_DEPTH = 100


@dataclass
class LoaderConfig:
    """Options of a schema load.

    strict_formats: an unknown `format` name is a LoadError instead of being ignored
    strict_keywords: an unrecognized keyword is a LoadError instead of metadata
    max_depth: nesting limit for schema frames while loading
    base_uri: URI the root document was retrieved from, for relative `$ref`s
    formats: additional or overriding format validators by name
    """
    strict_formats: bool = False
    strict_keywords: bool = False
    max_depth: int = DEFAULT_MAX_DEPTH
    base_uri: str = ""
    formats: Dict[str, FormatValidator] = field(default_factory=dict)
