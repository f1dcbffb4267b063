"""Messages.app collaborator — send via AppleScript, read from chat.db.

Reading goes straight to the Messages SQLite database because neither
scripting dialect exposes message history.  The database is opened
read-only; the process needs Full Disk Access for it.
"""

from __future__ import annotations

import asyncio
import logging
import re
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from apple_mcp.apps.targets import MESSAGES
from apple_mcp.apps.types import ChatMessage, ScheduledMessage
from apple_mcp.bridge import AutomationBridge, ObjectModelQuery
from apple_mcp.bridge.parsing import escape_applescript_string
from apple_mcp.config import BridgeConfig
from apple_mcp.errors import AppleMCPError, AutomationQueryFailed, InvalidArguments

logger = logging.getLogger(__name__)

_APPLE_EPOCH = datetime(2001, 1, 1, tzinfo=timezone.utc)
# chat.db stores nanoseconds since macOS 10.13, seconds before that.
_NANOSECOND_THRESHOLD = 10**11

_SELECT = """
SELECT m.text AS text, m.date AS date, m.is_from_me AS is_from_me, h.id AS handle
FROM message m
JOIN handle h ON m.handle_id = h.ROWID
WHERE m.text IS NOT NULL AND m.text != ''
"""

JXA_SEND = """
function (phone, text) {
  const app = Application("Messages");
  const sms = app.accounts.whose({serviceType: "SMS"})();
  if (sms.length === 0) throw new Error("No SMS service available");
  const buddy = sms[0].participants.whose({handle: phone})();
  if (buddy.length === 0) throw new Error("No SMS participant for " + phone);
  app.send(text, {to: buddy[0]});
  return "sent via SMS";
}
"""


def apple_timestamp_to_iso(value: float | int | None) -> str:
    """Convert a chat.db ``date`` column to a local ISO-8601 string."""
    if not value:
        return ""
    seconds = value / 1e9 if value > _NANOSECOND_THRESHOLD else value
    return (_APPLE_EPOCH + timedelta(seconds=seconds)).astimezone().isoformat(timespec="seconds")


def handle_variants(phone: str) -> list[str]:
    """Every form a handle may take in chat.db (``+15550100``, ``5550100``, ...)."""
    if "@" in phone:
        return [phone]
    digits = re.sub(r"\D", "", phone)
    variants = {phone, digits, f"+{digits}"}
    if len(digits) == 10:
        variants.add(f"+1{digits}")
    if len(digits) == 11 and digits.startswith("1"):
        variants.add(digits[1:])
    return sorted(v for v in variants if v and v != "+")


def send_script(phone: str, message: str) -> str:
    return f"""tell application "Messages"
    set targetService to 1st account whose service type = iMessage
    set targetBuddy to participant "{escape_applescript_string(phone)}" of targetService
    send "{escape_applescript_string(message)}" to targetBuddy
    return "success"
end tell"""


class MessagesClient:
    """Messages.app client.

    ``scheduler`` is owned by the caller, which starts and shuts it down;
    without one, scheduled sends are refused.
    """

    def __init__(
        self,
        bridge: AutomationBridge,
        config: BridgeConfig | None = None,
        *,
        scheduler: AsyncIOScheduler | None,
    ) -> None:
        self._bridge = bridge
        self._db_path = Path((config or BridgeConfig()).chat_db)
        self._scheduler = scheduler

    async def send_message(self, phone: str, message: str) -> None:
        """Send over iMessage, retrying over SMS when iMessage fails."""
        await self._bridge.command(
            MESSAGES,
            script=send_script(phone, message),
            fallback=ObjectModelQuery(JXA_SEND, (phone, message)),
        )
        logger.info("Sent message to %s", phone)

    async def read_messages(self, phone: str, limit: int = 10) -> list[ChatMessage]:
        """Most recent messages exchanged with ``phone``, newest first."""
        variants = handle_variants(phone)
        placeholders = ", ".join("?" for _ in variants)
        sql = _SELECT + f" AND h.id IN ({placeholders}) ORDER BY m.date DESC LIMIT ?"
        return await asyncio.to_thread(self._query, sql, (*variants, limit))

    async def get_unread_messages(self, limit: int = 10) -> list[ChatMessage]:
        sql = _SELECT + " AND m.is_read = 0 AND m.is_from_me = 0 ORDER BY m.date DESC LIMIT ?"
        return await asyncio.to_thread(self._query, sql, (limit,))

    async def schedule_message(
        self, phone: str, message: str, scheduled_time: datetime
    ) -> ScheduledMessage:
        """Send ``message`` at ``scheduled_time``; lost if the process exits first."""
        now = datetime.now(scheduled_time.tzinfo) if scheduled_time.tzinfo else datetime.now()
        if scheduled_time <= now:
            raise InvalidArguments("Scheduled time must be in the future")

        if self._scheduler is None:
            raise AppleMCPError("Message scheduling is unavailable: no scheduler is running")
        job_id = uuid.uuid4().hex
        self._scheduler.add_job(
            self._send_scheduled, "date", run_date=scheduled_time,
            args=[phone, message], id=job_id,
        )
        logger.info("Scheduled message to %s at %s", phone, scheduled_time.isoformat())
        return ScheduledMessage(
            id=job_id,
            phone_number=phone,
            message=message,
            scheduled_time=scheduled_time.isoformat(),
        )

    async def _send_scheduled(self, phone: str, message: str) -> None:
        try:
            await self.send_message(phone, message)
        except Exception as exc:  # noqa: BLE001
            logger.error("Scheduled message to %s failed: %s", phone, exc, exc_info=True)

    def _query(self, sql: str, params: tuple[object, ...]) -> list[ChatMessage]:
        try:
            conn = sqlite3.connect(f"file:{self._db_path}?mode=ro", uri=True)
        except sqlite3.Error as exc:
            raise AutomationQueryFailed(
                f"Cannot open Messages database at {self._db_path}. "
                "Grant Full Disk Access to the terminal running this server.",
                exc,
            ) from exc
        conn.row_factory = sqlite3.Row
        try:
            rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise AutomationQueryFailed(f"Error reading Messages database: {exc}", exc) from exc
        finally:
            conn.close()
        return [
            ChatMessage(
                content=str(row["text"]),
                date=apple_timestamp_to_iso(row["date"]),
                sender=str(row["handle"]),
                is_from_me=bool(row["is_from_me"]),
            )
            for row in rows
        ]
