"""Small string and sequence helpers."""

import re
from collections.abc import Iterator, Sequence
from typing import TypeVar

T = TypeVar("T")

# Word boundaries inside camelCase / PascalCase ("fooBar", "HTTPServer")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_DELIMITERS = re.compile(r"[\s_\-]+")


def kebab_case(value: str) -> str:
    """Convert to lowercase dash-joined form.

    "Science Fiction" -> "science-fiction", "HomeImprovement" -> "home-improvement"
    """
    value = _CAMEL_BOUNDARY.sub("-", value.strip())
    return _DELIMITERS.sub("-", value).strip("-").lower()


def pad_number(value: int, width: int = 2) -> str:
    """Zero-pad a number to at least `width` digits."""
    return str(value).zfill(width)


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of at most `size` items."""
    if size < 1:
        raise ValueError(f"chunk size must be at least 1, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])
