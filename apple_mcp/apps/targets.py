"""The scriptable apps, as targets the bridge can probe and query.

Kept apart from the collaborator modules: the CLI's ``check`` command and
every collaborator import these without importing each other.
"""

from apple_mcp.bridge import AppTarget

CONTACTS = AppTarget("Contacts", probes=("count every person", "return its version"))
NOTES = AppTarget("Notes", probes=("count every note", "return its version"))
MESSAGES = AppTarget("Messages", probes=("count every chat", "return its version"))
MAIL = AppTarget("Mail", probes=("count every mailbox", "return its version"))
REMINDERS = AppTarget("Reminders", probes=("count every list", "return its version"))

ALL_TARGETS: tuple[AppTarget, ...] = (CONTACTS, NOTES, MESSAGES, MAIL, REMINDERS)
