"""Routes ``tools/call`` requests to the app collaborators.

Every tool follows the same path: validate arguments, obtain the
collaborator's client class from the loader (importing it on demand in safe
mode), call it, and render the result as one block of text.  Nothing raised
below this layer escapes it; failures become error responses formatted for
the connected client.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import traceback
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from apple_mcp.apps.types import ChatMessage, EmailMessage
from apple_mcp.bridge import AutomationBridge
from apple_mcp.bridge.parsing import truncate_preview
from apple_mcp.config import BridgeConfig
from apple_mcp.errors import AppleMCPError, AutomationError, UnknownTool
from apple_mcp.server.loader import ModuleLoader
from apple_mcp.server.profiles import ClientProfile
from apple_mcp.server.tools import (
    ContactsArgs,
    MailArgs,
    MessagesArgs,
    NotesArgs,
    RemindersArgs,
    parse_contacts_args,
    parse_mail_args,
    parse_messages_args,
    parse_notes_args,
    parse_reminders_args,
)

logger = logging.getLogger(__name__)

UNREAD_PREVIEW = 500
SEARCH_PREVIEW = 200
# Share of max_response_size the full contact listing may use.
_CONTACTS_SHARE = 0.8


@dataclass(frozen=True)
class ToolResponse:
    text: str
    is_error: bool = False


def format_error(exc: BaseException, profile: ClientProfile) -> str:
    """Render ``exc`` for the client: message only, or message plus traceback."""
    message = str(exc) or type(exc).__name__
    if not profile.verbose_errors:
        return message
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip()
    return f"Error: {message}\nStack: {stack}"


def _when(value: str) -> str:
    """ISO-8601 → ``YYYY-MM-DD HH:MM:SS``; anything else is shown as-is."""
    try:
        return datetime.fromisoformat(value).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return value


def _scope(account: str | None, mailbox: str | None) -> str:
    text = f' in account "{account}"' if account else ""
    if mailbox:
        text += f' and mailbox "{mailbox}"'
    return text


def _format_email(email: EmailMessage, preview: int) -> str:
    return (
        f"[{email.date_sent}] From: {email.sender}\n"
        f"Mailbox: {email.mailbox}\n"
        f"Subject: {email.subject}\n"
        f"{truncate_preview(email.content, preview)}"
    )


class ToolDispatcher:
    """Serves the five tools on top of a loader and a shared bridge.

    Usage::

        dispatcher = ToolDispatcher(loader, bridge, profile)
        response = await dispatcher.dispatch("mail", {"operation": "unread", "limit": 2})
    """

    def __init__(
        self,
        loader: ModuleLoader,
        bridge: AutomationBridge,
        profile: ClientProfile,
        config: BridgeConfig | None = None,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._loader = loader
        self._bridge = bridge
        self._profile = profile
        self._config = config or BridgeConfig()
        self._scheduler = scheduler
        self._handlers: dict[str, Callable[[Any], Awaitable[ToolResponse]]] = {
            "contacts": self._contacts,
            "notes": self._notes,
            "messages": self._messages,
            "mail": self._mail,
            "reminders": self._reminders,
        }

    async def dispatch(self, name: str, arguments: Any) -> ToolResponse:
        try:
            handler = self._handlers.get(name)
            if handler is None:
                raise UnknownTool(f"Unknown tool: {name}")
            return await handler(arguments)
        except UnknownTool as exc:
            logger.warning("%s", exc)
            return ToolResponse(str(exc), is_error=True)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Tool %s failed: %s", name, exc,
                exc_info=not isinstance(exc, AppleMCPError),
            )
            return ToolResponse(format_error(exc, self._profile), is_error=True)

    async def _client(self, name: str) -> Any:
        client_class = await self._loader.load(name)
        return client_class(self._bridge, self._config)

    # ── contacts ───────────────────────────────────────────────────────────────

    async def _contacts(self, arguments: Any) -> ToolResponse:
        args: ContactsArgs = parse_contacts_args(arguments)
        contacts = await self._client("contacts")

        if args.name:
            numbers = await contacts.find_number(args.name)
            if numbers:
                return ToolResponse(f"{args.name}: {', '.join(numbers)}")
            return ToolResponse(
                f'No contact found for "{args.name}". Try a different name or use '
                "no name parameter to list all contacts."
            )

        everyone: dict[str, list[str]] = await contacts.get_all_numbers()
        allowance = int(self._profile.max_response_size * _CONTACTS_SHARE)
        lines: list[str] = []
        size = 0
        for name, numbers in everyone.items():
            line = f"{name}: {', '.join(numbers)}\n"
            if size + len(line) > allowance:
                remaining = len(everyone) - len(lines)
                lines.append(f"\n[Response truncated - {remaining} more contacts available]")
                break
            lines.append(line)
            size += len(line)
        return ToolResponse("".join(lines) or "No contacts with phone numbers found.")

    # ── notes ──────────────────────────────────────────────────────────────────

    async def _notes(self, arguments: Any) -> ToolResponse:
        args: NotesArgs = parse_notes_args(arguments)
        notes = await self._client("notes")

        if args.search_text:
            found = await notes.find_note(args.search_text)
            empty = f'No notes found for "{args.search_text}"'
        else:
            found = await notes.get_all_notes()
            empty = "No notes exist."
        if not found:
            return ToolResponse(empty)
        return ToolResponse("\n\n".join(f"{note.name}:\n{note.content}" for note in found))

    # ── messages ───────────────────────────────────────────────────────────────

    async def _messages(self, arguments: Any) -> ToolResponse:
        args: MessagesArgs = parse_messages_args(arguments)
        messages_class = await self._loader.load("messages")
        messages = messages_class(self._bridge, self._config, scheduler=self._scheduler)

        if args.operation == "send":
            await messages.send_message(args.phone_number, args.message)
            return ToolResponse(f"Message sent to {args.phone_number}")

        if args.operation == "read":
            history: list[ChatMessage] = await messages.read_messages(args.phone_number, args.limit)
            if not history:
                return ToolResponse("No messages found")
            return ToolResponse("\n".join(
                f"[{_when(m.date)}] {'Me' if m.is_from_me else m.sender}: {m.content}"
                for m in history
            ))

        if args.operation == "schedule":
            scheduled = await messages.schedule_message(
                args.phone_number, args.message, args.scheduled_time
            )
            return ToolResponse(
                f"Message scheduled to be sent to {args.phone_number} at {scheduled.scheduled_time}"
            )

        unread: list[ChatMessage] = await messages.get_unread_messages(args.limit)
        if not unread:
            return ToolResponse("No unread messages found")
        named = await self._with_display_names(unread)
        return ToolResponse(
            f"Found {len(named)} unread message(s):\n"
            + "\n\n".join(f"[{_when(m.date)}] From {m.display_name}:\n{m.content}" for m in named)
        )

    async def _with_display_names(self, messages: list[ChatMessage]) -> list[ChatMessage]:
        """Resolve every sender through Contacts in one concurrent batch."""
        contacts = await self._client("contacts")

        async def resolve(message: ChatMessage) -> ChatMessage:
            if message.is_from_me:
                return dataclasses.replace(message, display_name="Me")
            try:
                name = await contacts.find_contact_by_phone(message.sender)
            except AutomationError as exc:
                logger.warning("Contact lookup for %s failed: %s", message.sender, exc)
                name = None
            return dataclasses.replace(message, display_name=name or message.sender)

        return list(await asyncio.gather(*(resolve(m) for m in messages)))

    # ── mail ───────────────────────────────────────────────────────────────────

    async def _mail(self, arguments: Any) -> ToolResponse:
        args: MailArgs = parse_mail_args(arguments)
        mail = await self._client("mail")

        if args.operation == "unread":
            scope = _scope(args.account, args.mailbox)
            emails = await mail.get_unread_mails(args.limit, args.account, args.mailbox)
            if not emails:
                return ToolResponse(f"No unread emails found{scope}")
            return ToolResponse(
                f"Found {len(emails)} unread email(s){scope}:\n\n"
                + "\n\n".join(_format_email(e, UNREAD_PREVIEW) for e in emails)
            )

        if args.operation == "search":
            emails = await mail.search_mails(args.search_term, args.limit)
            if not emails:
                return ToolResponse(f'No emails found for "{args.search_term}"')
            return ToolResponse(
                f'Found {len(emails)} email(s) for "{args.search_term}":\n\n'
                + "\n\n".join(_format_email(e, SEARCH_PREVIEW) for e in emails)
            )

        if args.operation == "send":
            return ToolResponse(
                await mail.send_mail(args.to, args.subject, args.body, args.cc, args.bcc)
            )

        if args.operation == "mailboxes":
            if args.account:
                boxes = await mail.get_mailboxes_for_account(args.account)
                if not boxes:
                    return ToolResponse(
                        f'No mailboxes found for account "{args.account}". '
                        "Make sure the account name is correct."
                    )
                return ToolResponse(
                    f'Found {len(boxes)} mailboxes for account "{args.account}":\n\n' + "\n".join(boxes)
                )
            boxes = await mail.get_mailboxes()
            if not boxes:
                return ToolResponse(
                    "No mailboxes found. Make sure Mail app is running and properly configured."
                )
            return ToolResponse(f"Found {len(boxes)} mailboxes:\n\n" + "\n".join(boxes))

        accounts = await mail.get_accounts()
        if not accounts:
            return ToolResponse(
                "No email accounts found. Make sure Mail app is configured with at least one account."
            )
        return ToolResponse(f"Found {len(accounts)} email accounts:\n\n" + "\n".join(accounts))

    # ── reminders ──────────────────────────────────────────────────────────────

    async def _reminders(self, arguments: Any) -> ToolResponse:
        args: RemindersArgs = parse_reminders_args(arguments)
        reminders = await self._client("reminders")

        if args.operation == "list":
            lists = await reminders.get_all_lists()
            items = await reminders.get_all_reminders()
            lines = [f"Found {len(lists)} lists and {len(items)} reminders."]
            lines += [f"- List: {lst.name} (id: {lst.id})" for lst in lists]
            lines += [
                f"- {r.name} [{r.list_name}]" + (" (completed)" if r.completed else "")
                for r in items
            ]
            return ToolResponse("\n".join(lines))

        if args.operation == "search":
            found = await reminders.search_reminders(args.search_text)
            if not found:
                return ToolResponse(f'No reminders found matching "{args.search_text}".')
            return ToolResponse(
                f'Found {len(found)} reminders matching "{args.search_text}".\n'
                + "\n".join(f"- {r.name} [{r.list_name}]" for r in found)
            )

        if args.operation == "open":
            result = await reminders.open_reminder(args.search_text)
            if not result.success:
                return ToolResponse(result.message, is_error=True)
            return ToolResponse(f"Opened Reminders app. Found reminder: {result.reminder.name}")

        if args.operation == "create":
            created = await reminders.create_reminder(
                args.name, args.list_name, args.notes, args.due_date
            )
            where = f' in list "{args.list_name}"' if args.list_name else ""
            return ToolResponse(f'Created reminder "{created.name}"{where}.')

        rows = await reminders.get_reminders_from_list_by_id(
            args.list_id, list(args.props) if args.props else None
        )
        if not rows:
            return ToolResponse(f'No reminders found in list with ID "{args.list_id}".')
        return ToolResponse(
            f'Found {len(rows)} reminders in list with ID "{args.list_id}".\n'
            + "\n".join(json.dumps(row, ensure_ascii=False) for row in rows)
        )
