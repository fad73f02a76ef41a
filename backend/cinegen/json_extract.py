"""Extract JSON payloads from free-form language model output."""

from __future__ import annotations

import json
import re
from typing import Any, Iterator

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", flags=re.IGNORECASE)
_CLOSERS = {"{": "}", "[": "]"}


class AdapterParseError(RuntimeError):
    """Raised when text output carries no extractable JSON payload of the expected shape."""


def _balanced_end(text: str, start: int) -> int:
    """Return the index just past the bracket group opened at `start`, or -1."""
    stack: list[str] = []
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in ("}", "]"):
            if not stack or stack.pop() != char:
                return -1
            if not stack:
                return index + 1
    return -1


def _balanced_candidates(text: str, opener: str) -> Iterator[str]:
    position = text.find(opener)
    while position != -1:
        end = _balanced_end(text, position)
        if end != -1:
            yield text[position:end]
        position = text.find(opener, position + 1)


def _candidates(text: str, opener: str) -> Iterator[str]:
    stripped = text.strip()
    if stripped:
        yield stripped
    for block in _FENCED_BLOCK.findall(stripped):
        if block.strip():
            yield block.strip()
    yield from _balanced_candidates(stripped, opener)


def _extract(text: str, opener: str, expected: type) -> Any:
    for candidate in _candidates(text, opener):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, expected):
            return parsed
    return None


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the first JSON object found in raw, fenced or prose-wrapped output."""
    parsed = _extract(text or "", "{", dict)
    if parsed is None:
        raise AdapterParseError("Model output does not contain a JSON object")
    return parsed


def extract_json_array(text: str) -> list[Any]:
    """Parse the first JSON array found in raw, fenced or prose-wrapped output."""
    parsed = _extract(text or "", "[", list)
    if parsed is None:
        raise AdapterParseError("Model output does not contain a JSON array")
    return parsed
