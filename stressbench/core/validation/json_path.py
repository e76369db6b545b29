"""
Minimal JSON path resolution.

Supports the dotted subset used by validation rules::

    data.items[0].id
    $.data.items[2][1]
    success

A path that parses but does not resolve yields ``UNDEFINED``; only a
syntactically malformed path raises ``JsonPathError``.
"""

from __future__ import annotations

import re
from typing import Any, List, Tuple, Union

from stressbench.core.error_handling import JsonPathError
from stressbench.core.validation.comparable import UNDEFINED

_SEGMENT_RE = re.compile(r"^(?P<key>[^\[\]]*)(?P<indices>(?:\[[^\[\]]*\])*)$")
_INDEX_RE = re.compile(r"\[([^\[\]]*)\]")

PathStep = Union[str, int]


def parse_path(path: str) -> List[PathStep]:
    """
    Split a path into key and index steps.

    Raises:
        JsonPathError: On empty segments, unbalanced brackets or
            non-integer indices
    """
    if path is None:
        return []
    clean = path.strip()
    if clean in ("", "$"):
        return []
    if clean.startswith("$."):
        clean = clean[2:]
    elif clean.startswith("$["):
        clean = clean[1:]

    steps: List[PathStep] = []
    for segment in clean.split("."):
        match = _SEGMENT_RE.match(segment)
        if match is None:
            raise JsonPathError(f"malformed segment {segment!r} in path {path!r}")
        key = match.group("key")
        indices = _INDEX_RE.findall(match.group("indices"))
        if not key and not indices:
            raise JsonPathError(f"empty segment in path {path!r}")
        if key:
            steps.append(key)
        for raw_index in indices:
            try:
                index = int(raw_index.strip())
            except ValueError:
                raise JsonPathError(
                    f"invalid array index {raw_index!r} in path {path!r}"
                ) from None
            steps.append(index)
    return steps


def _step(current: Any, step: PathStep) -> Tuple[bool, Any]:
    if isinstance(step, int):
        if isinstance(current, list) and 0 <= step < len(current):
            return True, current[step]
        return False, UNDEFINED
    if isinstance(current, dict):
        if step in current:
            return True, current[step]
        return False, UNDEFINED
    if isinstance(current, list) and step.isdigit():
        index = int(step)
        if index < len(current):
            return True, current[index]
    return False, UNDEFINED


def resolve_path(data: Any, path: str) -> Any:
    """
    Resolve ``path`` against decoded JSON ``data``.

    Returns:
        The resolved value, or ``UNDEFINED`` when any step is missing
    """
    current = data
    for step in parse_path(path):
        if current is None or current is UNDEFINED:
            return UNDEFINED
        found, current = _step(current, step)
        if not found:
            return UNDEFINED
    return current
