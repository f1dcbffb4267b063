"""Tool catalogue advertised over MCP and per-tool argument validation.

Each ``parse_*_args`` function turns the raw ``arguments`` object of a
``tools/call`` request into a frozen dataclass, raising
:class:`~apple_mcp.errors.InvalidArguments` when a required field is missing
or a field has the wrong type.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from mcp.types import Tool

from apple_mcp.errors import InvalidArguments

DEFAULT_LIMIT = 10

MESSAGES_OPERATIONS = ("send", "read", "schedule", "unread")
MAIL_OPERATIONS = ("unread", "search", "send", "mailboxes", "accounts")
REMINDERS_OPERATIONS = ("list", "search", "open", "create", "listById")

_LIMIT_SCHEMA = {"type": "integer", "minimum": 1, "description": "Maximum number of results (default 10)"}

TOOLS: list[Tool] = [
    Tool(
        name="contacts",
        description="Search and retrieve contacts from Apple Contacts app",
        inputSchema={
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "description": "Name to search for (optional - if not provided, returns all contacts)",
                },
            },
        },
    ),
    Tool(
        name="notes",
        description="Search and retrieve notes from Apple Notes app",
        inputSchema={
            "type": "object",
            "properties": {
                "searchText": {
                    "type": "string",
                    "description": "Text to search for in notes (optional - if not provided, returns all notes)",
                },
            },
        },
    ),
    Tool(
        name="messages",
        description="Interact with Apple Messages app - send, read, schedule messages and check unread messages",
        inputSchema={
            "type": "object",
            "properties": {
                "operation": {"type": "string", "enum": list(MESSAGES_OPERATIONS)},
                "phoneNumber": {
                    "type": "string",
                    "description": "Phone number to send or read messages (required for send, read, schedule)",
                },
                "message": {"type": "string", "description": "Message text (required for send and schedule)"},
                "limit": _LIMIT_SCHEMA,
                "scheduledTime": {
                    "type": "string",
                    "description": "ISO-8601 time to send the message (required for schedule)",
                },
            },
            "required": ["operation"],
        },
    ),
    Tool(
        name="mail",
        description=(
            "Interact with Apple Mail app - read unread emails, search emails, send emails, "
            "and list mailboxes and accounts"
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "operation": {"type": "string", "enum": list(MAIL_OPERATIONS)},
                "account": {"type": "string", "description": "Email account to use (optional)"},
                "mailbox": {"type": "string", "description": "Mailbox to use within the account (optional)"},
                "limit": _LIMIT_SCHEMA,
                "searchTerm": {"type": "string", "description": "Text to search for (required for search)"},
                "to": {"type": "string", "description": "Recipient address (required for send)"},
                "subject": {"type": "string", "description": "Email subject (required for send)"},
                "body": {"type": "string", "description": "Email body (required for send)"},
                "cc": {"type": "string", "description": "CC address (optional)"},
                "bcc": {"type": "string", "description": "BCC address (optional)"},
            },
            "required": ["operation"],
        },
    ),
    Tool(
        name="reminders",
        description="Search, create, and open reminders in Apple Reminders app",
        inputSchema={
            "type": "object",
            "properties": {
                "operation": {"type": "string", "enum": list(REMINDERS_OPERATIONS)},
                "searchText": {"type": "string", "description": "Text to search for (required for search and open)"},
                "name": {"type": "string", "description": "Reminder title (required for create)"},
                "listName": {"type": "string", "description": "List to create the reminder in (optional)"},
                "listId": {"type": "string", "description": "List identifier (required for listById)"},
                "props": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Reminder properties to return for listById (optional)",
                },
                "notes": {"type": "string", "description": "Reminder notes (optional)"},
                "dueDate": {"type": "string", "description": "ISO-8601 due date (optional)"},
            },
            "required": ["operation"],
        },
    ),
]


# ── Argument records ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ContactsArgs:
    name: str | None = None


@dataclass(frozen=True)
class NotesArgs:
    search_text: str | None = None


@dataclass(frozen=True)
class MessagesArgs:
    operation: str
    phone_number: str | None = None
    message: str | None = None
    limit: int = DEFAULT_LIMIT
    scheduled_time: datetime | None = None


@dataclass(frozen=True)
class MailArgs:
    operation: str
    account: str | None = None
    mailbox: str | None = None
    limit: int = DEFAULT_LIMIT
    search_term: str | None = None
    to: str | None = None
    subject: str | None = None
    body: str | None = None
    cc: str | None = None
    bcc: str | None = None


@dataclass(frozen=True)
class RemindersArgs:
    operation: str
    search_text: str | None = None
    name: str | None = None
    list_name: str | None = None
    list_id: str | None = None
    props: tuple[str, ...] | None = None
    notes: str | None = None
    due_date: str | None = None


# ── Field helpers ──────────────────────────────────────────────────────────────

def _object(arguments: Any, tool: str) -> Mapping[str, Any]:
    if arguments is None:
        return {}
    if not isinstance(arguments, Mapping):
        raise InvalidArguments(f"Invalid arguments for {tool} tool")
    return arguments


def _str(args: Mapping[str, Any], key: str) -> str | None:
    """Optional string field; empty strings count as absent."""
    value = args.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidArguments(f"{key} must be a string")
    return value or None


def _limit(args: Mapping[str, Any]) -> int:
    value = args.get("limit")
    if value is None:
        return DEFAULT_LIMIT
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidArguments("limit must be a positive integer")
    return value


def _operation(args: Mapping[str, Any], allowed: tuple[str, ...]) -> str:
    operation = args.get("operation")
    if operation not in allowed:
        raise InvalidArguments(
            f"Unknown operation: {operation}. Expected one of: {', '.join(allowed)}"
        )
    return operation


def _datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise InvalidArguments(f"scheduledTime is not an ISO-8601 time: {value!r}") from exc


# ── Parsers ────────────────────────────────────────────────────────────────────

def parse_contacts_args(arguments: Any) -> ContactsArgs:
    args = _object(arguments, "contacts")
    return ContactsArgs(name=_str(args, "name"))


def parse_notes_args(arguments: Any) -> NotesArgs:
    args = _object(arguments, "notes")
    return NotesArgs(search_text=_str(args, "searchText"))


def parse_messages_args(arguments: Any) -> MessagesArgs:
    args = _object(arguments, "messages")
    operation = _operation(args, MESSAGES_OPERATIONS)
    phone, message = _str(args, "phoneNumber"), _str(args, "message")
    scheduled = _str(args, "scheduledTime")

    if operation in ("send", "schedule") and not (phone and message):
        raise InvalidArguments(f"Phone number and message are required for {operation} operation")
    if operation == "schedule" and not scheduled:
        raise InvalidArguments(
            "Phone number, message, and scheduled time are required for schedule operation"
        )
    if operation == "read" and not phone:
        raise InvalidArguments("Phone number is required for read operation")

    return MessagesArgs(
        operation=operation,
        phone_number=phone,
        message=message,
        limit=_limit(args),
        scheduled_time=_datetime(scheduled) if scheduled else None,
    )


def parse_mail_args(arguments: Any) -> MailArgs:
    args = _object(arguments, "mail")
    operation = _operation(args, MAIL_OPERATIONS)
    parsed = MailArgs(
        operation=operation,
        account=_str(args, "account"),
        mailbox=_str(args, "mailbox"),
        limit=_limit(args),
        search_term=_str(args, "searchTerm"),
        to=_str(args, "to"),
        subject=_str(args, "subject"),
        body=_str(args, "body"),
        cc=_str(args, "cc"),
        bcc=_str(args, "bcc"),
    )
    if operation == "search" and not parsed.search_term:
        raise InvalidArguments("Search term is required for search operation")
    if operation == "send" and not (parsed.to and parsed.subject and parsed.body):
        raise InvalidArguments("Recipient (to), subject, and body are required for send operation")
    return parsed


def parse_reminders_args(arguments: Any) -> RemindersArgs:
    args = _object(arguments, "reminders")
    operation = _operation(args, REMINDERS_OPERATIONS)

    props = args.get("props")
    if props is not None and (
        not isinstance(props, list) or not all(isinstance(p, str) for p in props)
    ):
        raise InvalidArguments("props must be a list of strings")

    parsed = RemindersArgs(
        operation=operation,
        search_text=_str(args, "searchText"),
        name=_str(args, "name"),
        list_name=_str(args, "listName"),
        list_id=_str(args, "listId"),
        props=tuple(props) if props else None,
        notes=_str(args, "notes"),
        due_date=_str(args, "dueDate"),
    )
    if operation in ("search", "open") and not parsed.search_text:
        raise InvalidArguments(f"searchText is required for {operation} operation")
    if operation == "create" and not parsed.name:
        raise InvalidArguments("name is required for create operation")
    if operation == "listById" and not parsed.list_id:
        raise InvalidArguments("listId is required for listById operation")
    return parsed
