"""Records returned by the app collaborators.

Every field of every record has a value; parsers substitute the
placeholders below instead of leaving anything empty.
"""

from dataclasses import dataclass

NO_SUBJECT = "No subject"
UNKNOWN_SENDER = "Unknown sender"
UNKNOWN_DATE = "Unknown date"
CONTENT_UNAVAILABLE = "[Content not available]"
UNKNOWN_MAILBOX = "Unknown mailbox"


@dataclass(frozen=True)
class EmailMessage:
    """A Mail.app message as seen through AppleScript or JXA.

    ``date_sent`` is whatever text the app printed; ``content`` is a preview
    bounded by the bridge's preview length.
    """

    subject: str = NO_SUBJECT
    sender: str = UNKNOWN_SENDER
    date_sent: str = UNKNOWN_DATE
    content: str = CONTENT_UNAVAILABLE
    is_read: bool = False
    mailbox: str = UNKNOWN_MAILBOX


@dataclass(frozen=True)
class Note:
    name: str
    content: str


@dataclass(frozen=True)
class Reminder:
    name: str
    id: str = ""
    body: str = ""
    completed: bool = False
    due_date: str | None = None
    list_name: str = ""


@dataclass(frozen=True)
class ReminderList:
    name: str
    id: str


@dataclass(frozen=True)
class ChatMessage:
    """One row from the Messages database."""

    content: str
    date: str                 # ISO-8601, local time
    sender: str               # phone number or email handle
    is_from_me: bool
    display_name: str | None = None


@dataclass(frozen=True)
class ScheduledMessage:
    id: str
    phone_number: str
    message: str
    scheduled_time: str       # ISO-8601
