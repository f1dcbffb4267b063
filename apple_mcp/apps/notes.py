"""Notes.app collaborator."""

from __future__ import annotations

from typing import Any

from apple_mcp.apps.targets import NOTES
from apple_mcp.apps.types import Note
from apple_mcp.bridge import AutomationBridge
from apple_mcp.config import BridgeConfig


JXA_ALL_NOTES = """
function () {
  const app = Application("Notes");
  return app.notes().map(function (n) {
    try { return {name: n.name(), content: n.plaintext()}; } catch (e) { return null; }
  }).filter(function (n) { return n !== null; });
}
"""

JXA_FIND_NOTES = """
function (text) {
  const app = Application("Notes");
  const found = app.notes.whose({_or: [
    {name: {_contains: text}},
    {plaintext: {_contains: text}},
  ]})();
  return found.map(function (n) { return {name: n.name(), content: n.plaintext()}; });
}
"""


def _notes(raw: Any) -> list[Note]:
    if not isinstance(raw, list):
        return []
    return [
        Note(name=str(item.get("name") or "Untitled"), content=str(item.get("content") or ""))
        for item in raw
        if isinstance(item, dict)
    ]


class NotesClient:
    def __init__(self, bridge: AutomationBridge, config: BridgeConfig | None = None) -> None:
        self._bridge = bridge

    async def get_all_notes(self) -> list[Note]:
        return _notes(await self._bridge.evaluate(NOTES, JXA_ALL_NOTES))

    async def find_note(self, text: str) -> list[Note]:
        """Notes whose title or plain-text body contains ``text``."""
        return _notes(await self._bridge.evaluate(NOTES, JXA_FIND_NOTES, text))
