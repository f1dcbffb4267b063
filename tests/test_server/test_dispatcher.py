"""Tests for ToolDispatcher — collaborators are stubbed unless noted."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from mcp.types import Tool

from apple_mcp.apps.reminders import OpenResult
from apple_mcp.apps.types import ChatMessage, EmailMessage, Reminder, ReminderList, ScheduledMessage
from apple_mcp.bridge import AutomationBridge, ScriptError, ScriptResult
from apple_mcp.errors import AutomationQueryFailed, ModuleLoadFailed
from apple_mcp.server.dispatcher import ToolDispatcher, ToolResponse, format_error
from apple_mcp.server.loader import ModuleLoader
from apple_mcp.server.profiles import PROFILES, ClientProfile
from apple_mcp.server.tools import TOOLS

from conftest import FakeAppleScript

# ── Helpers ────────────────────────────────────────────────────────────────────


class StubLoader:
    """Loader double handing out one MagicMock client per collaborator."""

    def __init__(self) -> None:
        self.clients: dict[str, MagicMock] = {}
        self.loaded: list[str] = []

    def client(self, name: str) -> MagicMock:
        return self.clients.setdefault(name, MagicMock())

    async def load(self, name: str) -> Any:
        self.loaded.append(name)
        client = self.client(name)
        return lambda *args, **kwargs: client


@pytest.fixture
def loader() -> StubLoader:
    return StubLoader()


def _dispatcher(loader: Any, profile: ClientProfile = PROFILES["default"]) -> ToolDispatcher:
    return ToolDispatcher(loader, MagicMock(), profile)


def _email(i: int) -> EmailMessage:
    return EmailMessage(
        subject=f"Subject {i}", sender=f"s{i}@example.com", date_sent="Mon", content="c" * 300, mailbox="INBOX",
    )


# ── Envelope ───────────────────────────────────────────────────────────────────


class TestEnvelope:
    async def test_unknown_tool(self, loader: StubLoader) -> None:
        assert await _dispatcher(loader).dispatch("webSearch", {"query": "x"}) == ToolResponse(
            "Unknown tool: webSearch", is_error=True
        )

    @pytest.mark.parametrize("tool", TOOLS, ids=lambda tool: tool.name)
    async def test_every_advertised_tool_is_routed(self, loader: StubLoader, tool: Tool) -> None:
        response = await _dispatcher(loader).dispatch(tool.name, {})
        assert not response.text.startswith("Unknown tool")

    async def test_invalid_arguments_become_error(self, loader: StubLoader) -> None:
        response = await _dispatcher(loader).dispatch("mail", {"operation": "search"})
        assert response.is_error
        assert response.text == "Search term is required for search operation"
        assert loader.loaded == []

    async def test_collaborator_errors_become_error(self, loader: StubLoader) -> None:
        loader.client("notes").get_all_notes = AsyncMock(side_effect=AutomationQueryFailed("Notes is busy"))
        response = await _dispatcher(loader).dispatch("notes", {})
        assert response == ToolResponse("Notes is busy", is_error=True)

    async def test_load_failure_fails_only_that_request(self) -> None:
        loader = MagicMock()
        loader.load = AsyncMock(side_effect=ModuleLoadFailed("Error loading notes module: boom"))
        response = await _dispatcher(loader).dispatch("notes", {})
        assert response == ToolResponse("Error loading notes module: boom", is_error=True)

    async def test_verbose_profile_includes_stack(self, loader: StubLoader) -> None:
        loader.client("notes").get_all_notes = AsyncMock(side_effect=RuntimeError("kaput"))
        response = await _dispatcher(loader, PROFILES["claude"]).dispatch("notes", {})
        assert response.is_error
        assert response.text.startswith("Error: kaput\nStack: Traceback")

    def test_format_error_without_message(self) -> None:
        assert format_error(ValueError(), PROFILES["cursor"]) == "ValueError"


# ── contacts / notes ───────────────────────────────────────────────────────────


class TestContactsTool:
    async def test_lookup_by_name(self, loader: StubLoader) -> None:
        loader.client("contacts").find_number = AsyncMock(return_value=["+1555", "+1666"])
        response = await _dispatcher(loader).dispatch("contacts", {"name": "Ann"})
        assert response.text == "Ann: +1555, +1666"

    async def test_no_match(self, loader: StubLoader) -> None:
        loader.client("contacts").find_number = AsyncMock(return_value=[])
        response = await _dispatcher(loader).dispatch("contacts", {"name": "Zed"})
        assert response.text.startswith('No contact found for "Zed"')
        assert not response.is_error

    async def test_listing_is_capped(self, loader: StubLoader) -> None:
        everyone = {f"Person {i:03d}": ["+15550100000"] for i in range(100)}
        loader.client("contacts").get_all_numbers = AsyncMock(return_value=everyone)
        profile = ClientProfile("tiny", max_response_size=1_000)
        response = await _dispatcher(loader, profile).dispatch("contacts", {})
        assert len(response.text) < 1_000
        assert response.text.startswith("Person 000: +15550100000\n")
        assert "more contacts available]" in response.text


class TestNotesTool:
    async def test_search(self, loader: StubLoader) -> None:
        from apple_mcp.apps.types import Note

        loader.client("notes").find_note = AsyncMock(return_value=[Note("A", "1"), Note("B", "2")])
        response = await _dispatcher(loader).dispatch("notes", {"searchText": "x"})
        assert response.text == "A:\n1\n\nB:\n2"

    async def test_empty(self, loader: StubLoader) -> None:
        loader.client("notes").get_all_notes = AsyncMock(return_value=[])
        assert (await _dispatcher(loader).dispatch("notes", {})).text == "No notes exist."


# ── messages ───────────────────────────────────────────────────────────────────


class TestMessagesTool:
    async def test_send(self, loader: StubLoader) -> None:
        loader.client("messages").send_message = AsyncMock()
        response = await _dispatcher(loader).dispatch(
            "messages", {"operation": "send", "phoneNumber": "+1555", "message": "hi"}
        )
        assert response.text == "Message sent to +1555"

    async def test_read(self, loader: StubLoader) -> None:
        loader.client("messages").read_messages = AsyncMock(return_value=[
            ChatMessage("hello", "2026-10-01T09:30:00+00:00", "+1555", False),
            ChatMessage("hi", "2026-10-01T09:31:00+00:00", "+1555", True),
        ])
        response = await _dispatcher(loader).dispatch("messages", {"operation": "read", "phoneNumber": "+1555"})
        assert response.text == "[2026-10-01 09:30:00] +1555: hello\n[2026-10-01 09:31:00] Me: hi"

    async def test_schedule(self, loader: StubLoader) -> None:
        loader.client("messages").schedule_message = AsyncMock(
            return_value=ScheduledMessage("job", "+1555", "hi", "2026-12-01T10:00:00+00:00")
        )
        response = await _dispatcher(loader).dispatch("messages", {
            "operation": "schedule", "phoneNumber": "+1555", "message": "hi",
            "scheduledTime": "2026-12-01T10:00:00Z",
        })
        assert response.text == "Message scheduled to be sent to +1555 at 2026-12-01T10:00:00+00:00"

    async def test_unread_resolves_names_concurrently(self, loader: StubLoader) -> None:
        loader.client("messages").get_unread_messages = AsyncMock(return_value=[
            ChatMessage("one", "2026-10-01T09:00:00", "+1555", False),
            ChatMessage("two", "2026-10-01T10:00:00", "+1666", False),
            ChatMessage("three", "2026-10-01T11:00:00", "bob@example.com", False),
        ])
        names = {"+1555": "Ann", "+1666": None}

        async def find(phone: str) -> str | None:
            if phone == "bob@example.com":
                raise AutomationQueryFailed("Contacts unavailable")
            return names[phone]

        loader.client("contacts").find_contact_by_phone = AsyncMock(side_effect=find)
        response = await _dispatcher(loader).dispatch("messages", {"operation": "unread"})
        assert response.text.startswith("Found 3 unread message(s):\n")
        assert "From Ann:\none" in response.text
        assert "From +1666:\ntwo" in response.text
        assert "From bob@example.com:\nthree" in response.text
        assert loader.client("contacts").find_contact_by_phone.await_count == 3

    async def test_no_unread(self, loader: StubLoader) -> None:
        loader.client("messages").get_unread_messages = AsyncMock(return_value=[])
        response = await _dispatcher(loader).dispatch("messages", {"operation": "unread"})
        assert response.text == "No unread messages found"
        assert "contacts" not in loader.loaded


# ── mail ───────────────────────────────────────────────────────────────────────


class TestMailTool:
    async def test_unread_format(self, loader: StubLoader) -> None:
        loader.client("mail").get_unread_mails = AsyncMock(return_value=[_email(1)])
        response = await _dispatcher(loader).dispatch("mail", {"operation": "unread", "account": "Work"})
        assert response.text.startswith('Found 1 unread email(s) in account "Work":\n\n')
        assert "[Mon] From: s1@example.com\nMailbox: INBOX\nSubject: Subject 1\n" in response.text
        loader.client("mail").get_unread_mails.assert_awaited_once_with(10, "Work", None)

    async def test_search_preview_is_shorter(self, loader: StubLoader) -> None:
        loader.client("mail").search_mails = AsyncMock(return_value=[_email(1)])
        response = await _dispatcher(loader).dispatch("mail", {"operation": "search", "searchTerm": "x"})
        preview = response.text.rsplit("\n", 1)[1]
        assert len(preview) == 200
        assert preview.endswith("...")

    async def test_search_reply_omits_unused_scope(self, loader: StubLoader) -> None:
        loader.client("mail").search_mails = AsyncMock(return_value=[_email(1)])
        arguments = {"operation": "search", "searchTerm": "x", "account": "Work", "mailbox": "INBOX"}
        response = await _dispatcher(loader).dispatch("mail", arguments)
        assert response.text.startswith('Found 1 email(s) for "x":\n\n')
        assert "Work" not in response.text
        loader.client("mail").search_mails.assert_awaited_once_with("x", 10)

    async def test_search_without_results(self, loader: StubLoader) -> None:
        loader.client("mail").search_mails = AsyncMock(return_value=[])
        response = await _dispatcher(loader).dispatch(
            "mail", {"operation": "search", "searchTerm": "x", "account": "Work"}
        )
        assert response == ToolResponse('No emails found for "x"')

    async def test_no_unread(self, loader: StubLoader) -> None:
        loader.client("mail").get_unread_mails = AsyncMock(return_value=[])
        response = await _dispatcher(loader).dispatch(
            "mail", {"operation": "unread", "account": "Work", "mailbox": "INBOX"}
        )
        assert response.text == 'No unread emails found in account "Work" and mailbox "INBOX"'

    async def test_mailboxes_and_accounts(self, loader: StubLoader) -> None:
        mail = loader.client("mail")
        mail.get_mailboxes = AsyncMock(return_value=["INBOX", "Sent"])
        mail.get_mailboxes_for_account = AsyncMock(return_value=[])
        mail.get_accounts = AsyncMock(return_value=["iCloud"])
        dispatcher = _dispatcher(loader)
        assert (await dispatcher.dispatch("mail", {"operation": "mailboxes"})).text == "Found 2 mailboxes:\n\nINBOX\nSent"
        assert "Make sure the account name is correct" in (
            await dispatcher.dispatch("mail", {"operation": "mailboxes", "account": "X"})
        ).text
        assert (await dispatcher.dispatch("mail", {"operation": "accounts"})).text == "Found 1 email accounts:\n\niCloud"


class TestMailEndToEnd:
    """Real loader and MailClient over the fake osascript runners."""

    @pytest.fixture
    def dispatcher(self, bridge: AutomationBridge) -> ToolDispatcher:
        loader = ModuleLoader()
        loader.force_safe_mode()
        return ToolDispatcher(loader, bridge, PROFILES["default"])

    async def test_unread_limit_two_from_five_groups(
        self, dispatcher: ToolDispatcher, applescript: FakeAppleScript
    ) -> None:
        groups = ", ".join(f'{{subject:"S{i}", sender:"p{i}@example.com"}}' for i in range(5))
        applescript.replies.append(ScriptResult("{" + groups + "}"))
        response = await dispatcher.dispatch("mail", {"operation": "unread", "limit": 2})
        assert not response.is_error
        assert response.text.startswith("Found 2 unread email(s):")
        assert "Subject: S0" in response.text and "Subject: S1" in response.text
        assert "S2" not in response.text

    async def test_send_fallback_is_not_an_error(
        self, dispatcher: ToolDispatcher, applescript: FakeAppleScript, jxa: MagicMock
    ) -> None:
        applescript.replies.append(ScriptResult(error=ScriptError("can't send", dialect="AppleScript")))
        jxa.evaluate.return_value = "JXA send completed"
        response = await dispatcher.dispatch(
            "mail", {"operation": "send", "to": "ann@example.com", "subject": "Hi", "body": "Body"}
        )
        assert response == ToolResponse('Email sent to ann@example.com with subject "Hi"')


# ── reminders ──────────────────────────────────────────────────────────────────


class TestRemindersTool:
    async def test_list(self, loader: StubLoader) -> None:
        reminders = loader.client("reminders")
        reminders.get_all_lists = AsyncMock(return_value=[ReminderList("Home", "L1")])
        reminders.get_all_reminders = AsyncMock(return_value=[Reminder("Pay rent", list_name="Home")])
        response = await _dispatcher(loader).dispatch("reminders", {"operation": "list"})
        assert response.text.splitlines()[0] == "Found 1 lists and 1 reminders."

    async def test_open_not_found_is_error(self, loader: StubLoader) -> None:
        loader.client("reminders").open_reminder = AsyncMock(
            return_value=OpenResult(False, 'No reminder found matching "x"')
        )
        response = await _dispatcher(loader).dispatch("reminders", {"operation": "open", "searchText": "x"})
        assert response == ToolResponse('No reminder found matching "x"', is_error=True)

    async def test_create(self, loader: StubLoader) -> None:
        loader.client("reminders").create_reminder = AsyncMock(return_value=Reminder("Pay rent"))
        response = await _dispatcher(loader).dispatch(
            "reminders", {"operation": "create", "name": "Pay rent", "listName": "Home"}
        )
        assert response.text == 'Created reminder "Pay rent" in list "Home".'

    async def test_list_by_id(self, loader: StubLoader) -> None:
        loader.client("reminders").get_reminders_from_list_by_id = AsyncMock(return_value=[{"name": "A"}])
        response = await _dispatcher(loader).dispatch(
            "reminders", {"operation": "listById", "listId": "L1", "props": ["name"]}
        )
        assert response.text == 'Found 1 reminders in list with ID "L1".\n{"name": "A"}'
        loader.client("reminders").get_reminders_from_list_by_id.assert_awaited_once_with("L1", ["name"])
