"""Tests for parse_output — the three parsing levels."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar

from apple_mcp.bridge import ParseLevel, parse_output


# ── Helpers ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Item:
    title: str
    owner: str
    raw: bool = False


class ItemSpec:
    identifying_fields: ClassVar[tuple[str, ...]] = ("title", "owner")

    def build(self, fields: Mapping[str, Any]) -> Item:
        return Item(title=str(fields.get("title") or "Untitled"), owner=str(fields.get("owner") or "nobody"))

    def diagnostic(self, raw: str) -> Item:
        return Item(title="raw", owner="debug", raw=True)


SPEC = ItemSpec()


# ── Levels ─────────────────────────────────────────────────────────────────────


class TestStructuredLevel:
    def test_json_output_is_preferred(self) -> None:
        records, level = parse_output('[{"title": "A", "owner": "ann"}]', SPEC)
        assert level is ParseLevel.STRUCTURED
        assert records == [Item("A", "ann")]


class TestGroupedLevel:
    def test_one_record_per_group_with_identifying_field(self) -> None:
        text = '{{title:"A", owner:"ann"}, {title:"B"}, {other:"x"}}'
        records, level = parse_output(text, SPEC)
        assert level is ParseLevel.GROUPED
        assert records == [Item("A", "ann"), Item("B", "nobody")]

    def test_missing_fields_get_placeholders(self) -> None:
        records, _ = parse_output('{owner:"ann"}', SPEC)
        assert records == [Item("Untitled", "ann")]


class TestRawLevel:
    def test_field_name_without_groups_gives_one_diagnostic(self) -> None:
        records, level = parse_output("title: broken output without braces", SPEC)
        assert level is ParseLevel.RAW
        assert len(records) == 1
        assert records[0].raw

    def test_any_identifying_field_name_triggers_raw(self) -> None:
        records, level = parse_output("owner=ann", SPEC)
        assert level is ParseLevel.RAW
        assert len(records) == 1

    def test_empty_groups_but_field_name_present(self) -> None:
        records, level = parse_output('{{title:""}}', SPEC)
        assert level is ParseLevel.RAW
        assert len(records) == 1


class TestEmptyLevel:
    def test_unrelated_text_yields_nothing(self) -> None:
        assert parse_output("missing value", SPEC) == ([], ParseLevel.EMPTY)

    def test_empty_output_yields_nothing(self) -> None:
        assert parse_output("", SPEC) == ([], ParseLevel.EMPTY)
