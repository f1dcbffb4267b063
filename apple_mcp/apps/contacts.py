"""Contacts.app collaborator — phone number lookups in both directions."""

from __future__ import annotations

import asyncio
import logging
import re

from apple_mcp.apps.targets import CONTACTS
from apple_mcp.bridge import AutomationBridge
from apple_mcp.config import BridgeConfig

logger = logging.getLogger(__name__)

# Shorter digit strings match too many unrelated numbers.
_MIN_MATCH_DIGITS = 7

JXA_ALL_NUMBERS = """
function () {
  const app = Application("Contacts");
  const out = {};
  for (const person of app.people()) {
    try {
      const phones = person.phones().map(function (p) { return p.value(); });
      if (phones.length === 0) continue;
      const name = person.name();
      out[name] = (out[name] || []).concat(phones);
    } catch (e) {}
  }
  return out;
}
"""

JXA_FIND_NUMBER = """
function (name) {
  const app = Application("Contacts");
  const people = app.people.whose({name: {_contains: name}})();
  let numbers = [];
  for (const person of people) {
    try {
      numbers = numbers.concat(person.phones().map(function (p) { return p.value(); }));
    } catch (e) {}
  }
  return numbers;
}
"""


def normalize_phone(phone: str) -> str:
    """Digits only: ``+1 (555) 010-9999`` → ``15550109999``."""
    return re.sub(r"\D", "", phone)


def phones_match(a: str, b: str) -> bool:
    """True when one number's digits end with the other's (country codes vary)."""
    da, db = normalize_phone(a), normalize_phone(b)
    if len(da) < _MIN_MATCH_DIGITS or len(db) < _MIN_MATCH_DIGITS:
        return bool(da) and da == db
    return da.endswith(db) or db.endswith(da)


class ContactsClient:
    """Name ↔ phone lookups over Contacts.app.

    The full address book is fetched at most once per client instance, so a
    batch of ``find_contact_by_phone`` calls awaited together costs one JXA
    round trip.
    """

    def __init__(self, bridge: AutomationBridge, config: BridgeConfig | None = None) -> None:
        self._bridge = bridge
        self._numbers: dict[str, list[str]] | None = None
        self._lock = asyncio.Lock()

    async def get_all_numbers(self) -> dict[str, list[str]]:
        async with self._lock:
            if self._numbers is None:
                raw = await self._bridge.evaluate(CONTACTS, JXA_ALL_NUMBERS)
                self._numbers = {}
                if isinstance(raw, dict):
                    self._numbers = {
                        str(name): [str(n) for n in numbers]
                        for name, numbers in raw.items()
                        if isinstance(numbers, list)
                    }
                logger.debug("Loaded %d contact(s) with phone numbers", len(self._numbers))
            return self._numbers

    async def find_number(self, name: str) -> list[str]:
        raw = await self._bridge.evaluate(CONTACTS, JXA_FIND_NUMBER, name)
        if not isinstance(raw, list):
            return []
        return [str(n) for n in raw if n]

    async def find_contact_by_phone(self, phone: str) -> str | None:
        """Display name for ``phone``, or None when no contact matches."""
        if not normalize_phone(phone):
            return None  # email handles never match a phone number
        for name, numbers in (await self.get_all_numbers()).items():
            if any(phones_match(phone, number) for number in numbers):
                return name
        return None
