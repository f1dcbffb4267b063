"""Reminders.app collaborator."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from apple_mcp.apps.targets import REMINDERS
from apple_mcp.apps.types import Reminder, ReminderList
from apple_mcp.bridge import AutomationBridge
from apple_mcp.config import BridgeConfig

logger = logging.getLogger(__name__)

_REMINDER_FIELDS = ("name", "id", "body", "completed", "dueDate", "listName")

JXA_LISTS = """
function () {
  const app = Application("Reminders");
  return app.lists().map(function (l) { return {name: l.name(), id: l.id()}; });
}
"""

# Shared by every reminder query: serialise one reminder object.
_JXA_TO_RECORD = """
  function toRecord(r, listName) {
    const due = r.dueDate();
    return {
      name: r.name(),
      id: r.id(),
      body: r.body() || "",
      completed: r.completed(),
      dueDate: due ? due.toISOString() : null,
      listName: listName,
    };
  }
"""

JXA_ALL_REMINDERS = """
function () {
  const app = Application("Reminders");""" + _JXA_TO_RECORD + """
  const out = [];
  for (const list of app.lists()) {
    const listName = list.name();
    for (const r of list.reminders()) {
      try { out.push(toRecord(r, listName)); } catch (e) {}
    }
  }
  return out;
}
"""

JXA_SEARCH = """
function (text) {
  const app = Application("Reminders");""" + _JXA_TO_RECORD + """
  const out = [];
  for (const list of app.lists()) {
    const listName = list.name();
    const found = list.reminders.whose({_or: [
      {name: {_contains: text}},
      {body: {_contains: text}},
    ]})();
    for (const r of found) {
      try { out.push(toRecord(r, listName)); } catch (e) {}
    }
  }
  return out;
}
"""

JXA_OPEN = """
function (text) {
  const app = Application("Reminders");
  for (const list of app.lists()) {
    const found = list.reminders.whose({name: {_contains: text}})();
    if (found.length > 0) {
      app.activate();
      app.show(found[0]);
      return {name: found[0].name(), id: found[0].id(), listName: list.name()};
    }
  }
  app.activate();
  return null;
}
"""

JXA_CREATE = """
function (name, listName, notes, dueDate) {
  const app = Application("Reminders");
  let list = null;
  if (listName) {
    const matches = app.lists.whose({name: listName})();
    list = matches.length > 0 ? matches[0] : null;
    if (list === null) {
      list = app.List({name: listName});
      app.lists.push(list);
    }
  } else {
    list = app.defaultList();
  }
  const props = {name: name};
  if (notes) props.body = notes;
  if (dueDate) props.dueDate = new Date(dueDate);
  const reminder = app.Reminder(props);
  list.reminders.push(reminder);
  return {name: reminder.name(), id: reminder.id(), listName: list.name(),
          body: notes || "", completed: false, dueDate: dueDate || null};
}
"""

JXA_LIST_BY_ID = """
function (listId, props) {
  const app = Application("Reminders");
  const list = app.lists.byId(listId);
  return list.reminders().map(function (r) {
    const out = {};
    for (const p of props) {
      try {
        const v = r[p]();
        out[p] = (v instanceof Date) ? v.toISOString() : v;
      } catch (e) { out[p] = null; }
    }
    return out;
  });
}
"""


def _reminder(item: dict[str, Any]) -> Reminder:
    return Reminder(
        name=str(item.get("name") or "Untitled"),
        id=str(item.get("id") or ""),
        body=str(item.get("body") or ""),
        completed=bool(item.get("completed", False)),
        due_date=str(item["dueDate"]) if item.get("dueDate") else None,
        list_name=str(item.get("listName") or ""),
    )


def _reminders(raw: Any) -> list[Reminder]:
    if not isinstance(raw, list):
        return []
    return [_reminder(item) for item in raw if isinstance(item, dict)]


@dataclass(frozen=True)
class OpenResult:
    success: bool
    message: str
    reminder: Reminder | None = None


class RemindersClient:
    def __init__(self, bridge: AutomationBridge, config: BridgeConfig | None = None) -> None:
        self._bridge = bridge

    async def get_all_lists(self) -> list[ReminderList]:
        raw = await self._bridge.evaluate(REMINDERS, JXA_LISTS)
        if not isinstance(raw, list):
            return []
        return [
            ReminderList(name=str(item.get("name", "")), id=str(item.get("id", "")))
            for item in raw
            if isinstance(item, dict)
        ]

    async def get_all_reminders(self) -> list[Reminder]:
        return _reminders(await self._bridge.evaluate(REMINDERS, JXA_ALL_REMINDERS))

    async def search_reminders(self, text: str) -> list[Reminder]:
        return _reminders(await self._bridge.evaluate(REMINDERS, JXA_SEARCH, text))

    async def open_reminder(self, text: str) -> OpenResult:
        """Bring Reminders to the front, showing the first reminder matching ``text``."""
        raw = await self._bridge.evaluate(REMINDERS, JXA_OPEN, text)
        if not isinstance(raw, dict):
            return OpenResult(False, f'No reminder found matching "{text}"')
        return OpenResult(True, "Opened Reminders app", _reminder(raw))

    async def create_reminder(
        self,
        name: str,
        list_name: str | None = None,
        notes: str | None = None,
        due_date: str | None = None,
    ) -> Reminder:
        """Create a reminder; a missing ``list_name`` list is created on the fly.

        ``due_date`` is an ISO-8601 string interpreted by JavaScript's ``Date``.
        """
        raw = await self._bridge.evaluate(REMINDERS, JXA_CREATE, name, list_name, notes, due_date)
        logger.info("Created reminder %r in list %r", name, list_name or "(default)")
        if isinstance(raw, dict):
            return _reminder(raw)
        return Reminder(name=name, body=notes or "", due_date=due_date, list_name=list_name or "")

    async def get_reminders_from_list_by_id(
        self, list_id: str, props: list[str] | None = None
    ) -> list[dict[str, Any]]:
        """Raw property dicts for every reminder of one list.

        ``props`` defaults to every reminder field this module knows about.
        """
        wanted = [p for p in (props or _REMINDER_FIELDS) if p != "listName"]
        raw = await self._bridge.evaluate(REMINDERS, JXA_LIST_BY_ID, list_id, wanted)
        if not isinstance(raw, list):
            return []
        return [item for item in raw if isinstance(item, dict)]
