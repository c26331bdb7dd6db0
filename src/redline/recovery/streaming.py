"""Helpers for inspecting a response while it is still streaming in."""

from __future__ import annotations

import re

_CORRECTED_OPEN = re.compile(r'"corrected"\s*:\s*"')
_SIMPLE_ESCAPES = {"n": "\n", "t": "\t", '"': '"', "\\": "\\", "/": "/"}


def extract_partial_corrected(buffer: str) -> str | None:
    """Return the (possibly unfinished) ``corrected`` string value, if started."""
    match = _CORRECTED_OPEN.search(buffer)
    if match is None:
        return None
    out: list[str] = []
    i = match.end()
    while i < len(buffer):
        char = buffer[i]
        if char == "\\":
            if i + 1 >= len(buffer):
                break
            nxt = buffer[i + 1]
            out.append(_SIMPLE_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        if char == '"':
            break
        out.append(char)
        i += 1
    return "".join(out)


def bracket_imbalance(buffer: str) -> tuple[int, int]:
    """Return ``(brace_depth, bracket_depth)`` counted outside string literals."""
    brace = bracket = 0
    in_string = escaped = False
    for char in buffer:
        if escaped:
            escaped = False
            continue
        if char == "\\" and in_string:
            escaped = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            brace += 1
        elif char == "}":
            brace -= 1
        elif char == "[":
            bracket += 1
        elif char == "]":
            bracket -= 1
    return brace, bracket
