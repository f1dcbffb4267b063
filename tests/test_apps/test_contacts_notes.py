"""Tests for the Contacts and Notes collaborators."""

import asyncio
from unittest.mock import MagicMock

import pytest

from apple_mcp.apps.contacts import ContactsClient, normalize_phone, phones_match
from apple_mcp.apps.notes import NotesClient
from apple_mcp.apps.types import Note
from apple_mcp.bridge import AutomationBridge


class TestPhoneMatching:
    def test_normalize_keeps_digits(self) -> None:
        assert normalize_phone("+1 (555) 010-9999") == "15550109999"

    @pytest.mark.parametrize(
        ("a", "b", "expected"),
        [
            ("+1 555 010 9999", "5550109999", True),
            ("555-010-9999", "+15550109999", True),
            ("5550109999", "5550108888", False),
            ("123", "123", True),
            ("123", "0123", False),
            ("", "", False),
        ],
    )
    def test_suffix_match(self, a: str, b: str, expected: bool) -> None:
        assert phones_match(a, b) is expected


class TestContactsClient:
    async def test_find_number(self, bridge: AutomationBridge, jxa: MagicMock) -> None:
        jxa.evaluate.return_value = ["+1 555 010 9999", None]
        assert await ContactsClient(bridge).find_number("Ann") == ["+1 555 010 9999"]

    async def test_find_contact_by_phone(self, bridge: AutomationBridge, jxa: MagicMock) -> None:
        jxa.evaluate.return_value = {"Ann Example": ["+1 (555) 010-9999"], "Bob": ["555 010 1111"]}
        contacts = ContactsClient(bridge)
        assert await contacts.find_contact_by_phone("+15550109999") == "Ann Example"
        assert await contacts.find_contact_by_phone("+15550102222") is None

    async def test_email_handles_never_query_contacts(self, bridge: AutomationBridge, jxa: MagicMock) -> None:
        assert await ContactsClient(bridge).find_contact_by_phone("ann@example.com") is None
        jxa.evaluate.assert_not_awaited()

    async def test_concurrent_lookups_fetch_address_book_once(
        self, bridge: AutomationBridge, jxa: MagicMock
    ) -> None:
        jxa.evaluate.return_value = {"Ann": ["5550109999"]}
        contacts = ContactsClient(bridge)
        names = await asyncio.gather(*(contacts.find_contact_by_phone("5550109999") for _ in range(5)))
        assert names == ["Ann"] * 5
        assert jxa.evaluate.await_count == 1

    async def test_non_dict_result_is_empty(self, bridge: AutomationBridge, jxa: MagicMock) -> None:
        jxa.evaluate.return_value = None
        assert await ContactsClient(bridge).get_all_numbers() == {}


class TestNotesClient:
    async def test_get_all_notes(self, bridge: AutomationBridge, jxa: MagicMock) -> None:
        jxa.evaluate.return_value = [{"name": "Groceries", "content": "milk"}, {"content": "orphan"}]
        assert await NotesClient(bridge).get_all_notes() == [
            Note("Groceries", "milk"),
            Note("Untitled", "orphan"),
        ]

    async def test_find_note_passes_search_text(self, bridge: AutomationBridge, jxa: MagicMock) -> None:
        jxa.evaluate.return_value = []
        assert await NotesClient(bridge).find_note("milk") == []
        assert jxa.evaluate.await_args.args[1:] == ("milk",)
