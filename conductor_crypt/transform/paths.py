"""Path expressions addressing single leaves of a JSON tree.

Supported syntax is a small JSONPath subset::

    $.customerInfo.ssn
    $['customer info']["ssn"]
    $.cards[0].number
    $.cards[-1].number

Wildcards, filters and recursive descent are not supported. A path without
the leading ``$`` is read relative to the root.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Dict, List, Tuple, Union

from ..errors import InvalidPathError, NonStringLeaf, PathNotFound

JsonValue = Union[Dict[str, Any], List[Any], str, int, float, bool, None]

Segment = Union[str, int]

_IDENT = re.compile(r"[^.\[\]'\"\s]+")
_INDEX = re.compile(r"\[\s*(-?\d+)\s*\]")
_QUOTED = re.compile(r"\[\s*(['\"])(.*?)\1\s*\]")


@lru_cache(maxsize=1024)
def parse_path(expr: str) -> Tuple[Segment, ...]:
    """Parse ``expr`` into a tuple of member names and list indexes."""
    if not isinstance(expr, str) or not expr.strip():
        raise InvalidPathError(f"Empty path expression: {expr!r}")
    text = expr.strip()
    if not text.startswith("$"):
        text = "$" + ("" if text.startswith("[") else ".") + text

    pos = 1
    segments: list[Segment] = []
    while pos < len(text):
        char = text[pos]
        if char == ".":
            if text.startswith("..", pos):
                raise InvalidPathError(f"Recursive descent is not supported: {expr!r}")
            match = _IDENT.match(text, pos + 1)
            if not match:
                raise InvalidPathError(f"Expected member name at offset {pos + 1}: {expr!r}")
            name = match.group(0)
            if name == "*":
                raise InvalidPathError(f"Wildcards are not supported: {expr!r}")
            segments.append(name)
            pos = match.end()
        elif char == "[":
            match = _INDEX.match(text, pos)
            if match:
                segments.append(int(match.group(1)))
                pos = match.end()
                continue
            match = _QUOTED.match(text, pos)
            if match:
                segments.append(match.group(2))
                pos = match.end()
                continue
            raise InvalidPathError(f"Unsupported bracket expression at offset {pos}: {expr!r}")
        else:
            raise InvalidPathError(f"Unexpected character {char!r} at offset {pos}: {expr!r}")

    if not segments:
        raise InvalidPathError(f"Path does not address a field: {expr!r}")
    return tuple(segments)


def _step(node: JsonValue, segment: Segment, expr: str) -> JsonValue:
    if isinstance(node, dict):
        if isinstance(segment, str) and segment in node:
            return node[segment]
    elif isinstance(node, list):
        if isinstance(segment, int) and -len(node) <= segment < len(node):
            return node[segment]
    raise PathNotFound(f"No value at {expr!r}")


def read_value(document: JsonValue, expr: str) -> JsonValue:
    """Return the value addressed by ``expr``.

    Raises:
        PathNotFound: If any segment is missing.
    """
    node = document
    for segment in parse_path(expr):
        node = _step(node, segment, expr)
    return node


def read_string(document: JsonValue, expr: str) -> str:
    """Return the string leaf addressed by ``expr``.

    Raises:
        PathNotFound: If any segment is missing.
        NonStringLeaf: If the addressed value is not a string.
    """
    value = read_value(document, expr)
    if not isinstance(value, str):
        raise NonStringLeaf(f"Value at {expr!r} is {type(value).__name__}, not str")
    return value


def write_value(document: JsonValue, expr: str, value: JsonValue) -> None:
    """Replace the existing value addressed by ``expr`` in place.

    Only existing leaves are rewritten; missing parents are never created.
    """
    segments = parse_path(expr)
    parent = document
    for segment in segments[:-1]:
        parent = _step(parent, segment, expr)
    last = segments[-1]
    _step(parent, last, expr)
    parent[last] = value  # type: ignore[index]


def normalize(expr: str) -> str:
    """Return the canonical ``$.a['b c'][0]`` form of ``expr``."""
    parts = ["$"]
    for segment in parse_path(expr):
        if isinstance(segment, int):
            parts.append(f"[{segment}]")
        elif _IDENT.fullmatch(segment):
            parts.append(f".{segment}")
        else:
            parts.append(f"['{segment}']")
    return "".join(parts)
