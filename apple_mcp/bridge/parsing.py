"""Pure helpers for reading AppleScript's printed values.

``osascript -ss`` prints records and lists in AppleScript source form::

    {{subject:"Lunch?", sender:"Ann <ann@example.com>", mailbox:"INBOX"}, {...}}

None of these helpers touch osascript; they take text and return plain
Python values, and never raise on malformed input.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterator
from typing import Any

_ESCAPE = re.compile(r"\\(.)", re.DOTALL)
_ESCAPED_CHARS = {"n": "\n", "t": "\t", "r": "\r"}
_KEY = re.compile(r"[A-Za-z_][A-Za-z0-9_ ]*")

TRUNCATION_MARKER = "..."


def escape_applescript_string(value: str) -> str:
    """Escape a value for embedding inside an AppleScript string literal."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def unquote(value: str) -> str:
    """Strip one pair of surrounding double quotes and undo backslash escapes.

    Unquoted values are returned unchanged.
    """
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return _ESCAPE.sub(lambda m: _ESCAPED_CHARS.get(m.group(1), m.group(1)), value[1:-1])
    return value


def split_top_level(text: str, sep: str = ",") -> list[str]:
    """Split on ``sep`` outside of quoted strings and nested braces.

    Commas inside an *unquoted* value still split; only ``-ss`` style quoted
    strings are protected.
    """
    parts: list[str] = []
    depth = 0
    in_quote = False
    escaped = False
    start = 0
    for i, ch in enumerate(text):
        if in_quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_quote = False
            continue
        if ch == '"':
            in_quote = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth = max(depth - 1, 0)
        elif ch == sep and depth == 0:
            parts.append(text[start:i])
            start = i + 1
    parts.append(text[start:])
    return parts


def iter_groups(text: str) -> Iterator[str]:
    """Yield the body of every innermost ``{...}`` group, in order.

    Outer list braces wrapping a sequence of records are skipped, as are
    braces inside quoted strings and unbalanced closers.
    """
    stack: list[list[Any]] = []  # [start index, has nested group]
    in_quote = False
    escaped = False
    for i, ch in enumerate(text):
        if in_quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_quote = False
            continue
        if ch == '"':
            in_quote = True
        elif ch == "{":
            if stack:
                stack[-1][1] = True
            stack.append([i, False])
        elif ch == "}" and stack:
            start, has_child = stack.pop()
            if not has_child:
                yield text[start + 1:i]


def parse_group(body: str) -> dict[str, str]:
    """Turn ``subject:"Hi", sender:"x"`` into ``{"subject": "Hi", "sender": "x"}``.

    Each piece is split on its first colon.  A piece that does not start with
    a key continues the previous value, so unquoted dates such as
    ``Monday, 1 January 2024 at 10:00:00`` stay whole; before the first key
    such pieces are ignored.  AppleScript's ``|bar quoted|`` keys lose their
    bars.
    """
    fields: dict[str, str] = {}
    last: str | None = None
    for piece in split_top_level(body):
        key, sep, value = piece.partition(":")
        key = key.strip().strip("|").strip()
        if not sep or not _KEY.fullmatch(key):
            if last is not None:
                fields[last] = f"{fields[last]}, {unquote(piece.strip())}"
            continue
        fields[key] = unquote(value.strip())
        last = key
    return fields


def parse_groups(text: str) -> list[dict[str, str]]:
    """Parse every innermost brace group of ``text`` into a key/value dict."""
    return [parse_group(body) for body in iter_groups(text)]


def parse_structured(text: str) -> list[dict[str, Any]] | None:
    """Strict parse: JSON object or list of objects, else None.

    Only attempted when the first non-blank character opens a structured
    value; AppleScript record output also starts with ``{`` and simply fails
    here.
    """
    stripped = text.strip()
    if not stripped or stripped[0] not in "{[":
        return None
    try:
        value = json.loads(stripped)
    except json.JSONDecodeError:
        return None
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list):
        return [item for item in value if isinstance(item, dict)]
    return None


def parse_list(text: str) -> list[str]:
    """Parse a printed AppleScript list of strings.

    Accepts both ``{"INBOX", "Sent"}`` (``-ss``) and ``INBOX, Sent`` output.
    """
    stripped = text.strip()
    if stripped.startswith("{") and stripped.endswith("}"):
        stripped = stripped[1:-1]
    if not stripped.strip():
        return []
    items = (unquote(part.strip()) for part in split_top_level(stripped))
    return [item for item in items if item]


def truncate_preview(text: str, limit: int, marker: str = TRUNCATION_MARKER) -> str:
    """Cut ``text`` to exactly ``limit`` characters, ending with ``marker``."""
    if len(text) <= limit:
        return text
    if limit <= len(marker):
        return text[:limit]
    return text[: limit - len(marker)] + marker
