"""Three-level parsing of procedural-dialect output into typed records."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any, Protocol, TypeVar

from apple_mcp.bridge.parsing import parse_groups, parse_structured

logger = logging.getLogger(__name__)

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class RecordSpec(Protocol[T_co]):
    """Describes how raw key/value fields become one domain record.

    ``build`` must default every missing field to a placeholder so a record
    is never emitted half-populated.
    """

    identifying_fields: tuple[str, ...]

    def build(self, fields: Mapping[str, Any]) -> T_co:
        ...

    def diagnostic(self, raw: str) -> T_co:
        ...


class ParseLevel(str, Enum):
    """Which parsing level produced the records (for logs and tests)."""

    STRUCTURED = "structured"
    GROUPED = "grouped"
    RAW = "raw"
    EMPTY = "empty"


def has_identifying_field(fields: Mapping[str, Any], spec: RecordSpec[Any]) -> bool:
    return any(fields.get(name) for name in spec.identifying_fields)


def parse_output(text: str, spec: RecordSpec[T]) -> tuple[list[T], ParseLevel]:
    """Parse ``text`` with decreasing strictness, stopping at the first hit.

    1. Strict structured parse (JSON) when the text opens with ``{`` or ``[``;
       objects without an identifying field are dropped.
    2. Grouped parse of ``{key:value, ...}`` groups; groups without an
       identifying field are formatting artifacts and are dropped.
    3. Raw fallback: one diagnostic record when the text mentions an
       identifying field name but nothing could be parsed.

    Never raises; unparseable text without field names yields no records.
    """
    # ``{}`` is also AppleScript's empty list, so structured items need an
    # identifying field just like groups do.
    structured = parse_structured(text) or []
    records = [spec.build(item) for item in structured if has_identifying_field(item, spec)]
    if records:
        return records, ParseLevel.STRUCTURED

    records = [spec.build(group) for group in parse_groups(text) if has_identifying_field(group, spec)]
    if records:
        return records, ParseLevel.GROUPED

    if any(name in text for name in spec.identifying_fields):
        logger.warning("Could not parse automation output; returning raw output for debugging")
        return [spec.diagnostic(text)], ParseLevel.RAW

    return [], ParseLevel.EMPTY
