"""
Field-path filters for the document store query engine.

A filter maps dotted field paths (``data.users``, ``data.study.0.id``) to the
value each path must equal. Matching follows the usual document-database
rules:

- a path that crosses an array descends into every embedded object of that
  array, and a numeric segment also selects the element at that position;
- an array value matches when it equals the filter value or contains it;
- a ``None`` filter value matches documents where the path is missing;
- booleans never equal numbers, and ints equal floats of the same value.
"""

import json
from typing import Any, Optional, Sequence

from session_service.store.base import InvalidFilterError


MAX_PATH_DEPTH = 32

CompiledFilter = list[tuple[list[str], Any]]


# =============================================================================
# Validation
# =============================================================================


def parse_field_path(path: Any) -> list[str]:
    """
    Split and validate a dotted field path.

    Raises:
        InvalidFilterError: For empty paths, empty segments, operator-like
            segments (leading ``$``), control characters, or excessive depth.
    """
    if not isinstance(path, str) or not path.strip():
        raise InvalidFilterError("field path must be a non-empty string")

    segments = path.split(".")
    if len(segments) > MAX_PATH_DEPTH:
        raise InvalidFilterError(f"field path '{path}' is deeper than {MAX_PATH_DEPTH} levels")

    for segment in segments:
        if not segment:
            raise InvalidFilterError(f"field path '{path}' has an empty segment")
        if segment.startswith("$"):
            raise InvalidFilterError(f"field path '{path}' uses unsupported operator '{segment}'")
        if any(ord(char) < 32 for char in segment):
            raise InvalidFilterError(f"field path '{path}' contains control characters")
    return segments


def validate_value(value: Any) -> Any:
    """
    Check that a filter value is plain JSON data.

    Raises:
        InvalidFilterError: If the value cannot be represented as JSON.
    """
    try:
        json.dumps(value, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise InvalidFilterError(f"filter value is not valid JSON data: {e}") from e
    return value


def compile_filter(filter: dict[str, Any]) -> CompiledFilter:
    """Validate a filter and split its paths once for repeated matching."""
    if not isinstance(filter, dict):
        raise InvalidFilterError("filter must be a mapping of field paths to values")
    return [(parse_field_path(path), validate_value(value)) for path, value in filter.items()]


# =============================================================================
# Matching
# =============================================================================


def values_equal(left: Any, right: Any) -> bool:
    """Compare two JSON values structurally, keeping booleans apart from numbers."""
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    if isinstance(left, dict) and isinstance(right, dict):
        return left.keys() == right.keys() and all(
            values_equal(left[key], right[key]) for key in left
        )
    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(
            values_equal(a, b) for a, b in zip(left, right)
        )
    return type(left) is type(right) and left == right


def array_index(segment: str) -> Optional[int]:
    """Return the position a segment names, or None for field-name segments.

    Only canonical ASCII integers (``0``, ``12``; not ``01`` or superscript digits) select
    array elements.
    """
    if not (segment.isascii() and segment.isdigit()):
        return None
    if segment != "0" and segment.startswith("0"):
        return None
    return int(segment)


def resolve_path(value: Any, segments: Sequence[str]) -> list[Any]:
    """Collect every value reachable from ``value`` along ``segments``."""
    if not segments:
        return [value]

    head, rest = segments[0], segments[1:]
    if isinstance(value, dict):
        if head in value:
            return resolve_path(value[head], rest)
        return []

    if isinstance(value, list):
        found = []
        index = array_index(head)
        if index is not None and index < len(value):
            found.extend(resolve_path(value[index], rest))
        for item in value:
            if isinstance(item, dict):
                found.extend(resolve_path(item, segments))
        return found

    return []


def _candidate_matches(candidate: Any, expected: Any) -> bool:
    if values_equal(candidate, expected):
        return True
    if isinstance(candidate, list):
        return any(values_equal(item, expected) for item in candidate)
    return False


def document_matches(document: dict[str, Any], compiled: CompiledFilter) -> bool:
    """Return True if the document satisfies every clause of a compiled filter."""
    for segments, expected in compiled:
        candidates = resolve_path(document, segments)
        if not candidates:
            if expected is None:
                continue
            return False
        if not any(_candidate_matches(candidate, expected) for candidate in candidates):
            return False
    return True
