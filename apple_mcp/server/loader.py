"""Collaborator module loading and the eager/safe startup state machine.

At startup every collaborator module is imported in a fixed order while a
single timer runs.  Whichever settles first decides the process mode:

    UNINITIALIZED → EAGER_LOADING → EAGER_LOADED   (all imports finished)
                                  → SAFE_MODE      (an import raised, or the timer fired)

SAFE_MODE drops every handle loaded so far; modules are then imported on
first use and memoized.  Failed on-demand imports are never memoized, so the
next request retries.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from types import ModuleType
from typing import Any

from apple_mcp.errors import ModuleLoadFailed

logger = logging.getLogger(__name__)

DEFAULT_EAGER_TIMEOUT = 5.0

#: name → (module path, client class).  Order is the eager import order.
COLLABORATORS: dict[str, tuple[str, str]] = {
    "contacts": ("apple_mcp.apps.contacts", "ContactsClient"),
    "notes": ("apple_mcp.apps.notes", "NotesClient"),
    "messages": ("apple_mcp.apps.messages", "MessagesClient"),
    "mail": ("apple_mcp.apps.mail", "MailClient"),
    "reminders": ("apple_mcp.apps.reminders", "RemindersClient"),
}


class LoaderState(str, Enum):
    UNINITIALIZED = "uninitialized"
    EAGER_LOADING = "eager_loading"
    EAGER_LOADED = "eager_loaded"
    SAFE_MODE = "safe_mode"


class LoaderEvent(str, Enum):
    START = "start"
    ALL_LOADED = "all_loaded"
    LOAD_FAILED = "load_failed"
    TIMEOUT = "timeout"
    FORCE_SAFE = "force_safe"


_TRANSITIONS: dict[tuple[LoaderState, LoaderEvent], LoaderState] = {
    (LoaderState.UNINITIALIZED, LoaderEvent.START): LoaderState.EAGER_LOADING,
    (LoaderState.EAGER_LOADING, LoaderEvent.ALL_LOADED): LoaderState.EAGER_LOADED,
    (LoaderState.EAGER_LOADING, LoaderEvent.LOAD_FAILED): LoaderState.SAFE_MODE,
    (LoaderState.EAGER_LOADING, LoaderEvent.TIMEOUT): LoaderState.SAFE_MODE,
    (LoaderState.UNINITIALIZED, LoaderEvent.FORCE_SAFE): LoaderState.SAFE_MODE,
    (LoaderState.EAGER_LOADING, LoaderEvent.FORCE_SAFE): LoaderState.SAFE_MODE,
    (LoaderState.EAGER_LOADED, LoaderEvent.FORCE_SAFE): LoaderState.SAFE_MODE,
}


def next_state(state: LoaderState, event: LoaderEvent) -> LoaderState:
    """Pure transition function; events with no transition leave the state unchanged."""
    return _TRANSITIONS.get((state, event), state)


class ModuleLoader:
    """Owns the loader state and the memoized collaborator handles.

    A handle is the collaborator's client class, resolved from its module.
    ``importer`` and ``sleep`` are injectable so the startup race can be
    driven deterministically in tests.

    Usage::

        loader = ModuleLoader()
        await loader.start(timeout=5.0)
        MailClient = await loader.load("mail")
    """

    def __init__(
        self,
        collaborators: Mapping[str, tuple[str, str]] = COLLABORATORS,
        *,
        importer: Callable[[str], ModuleType] = importlib.import_module,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._collaborators = dict(collaborators)
        self._importer = importer
        self._sleep = sleep
        self._handles: dict[str, Any | None] = {name: None for name in self._collaborators}
        self.state = LoaderState.UNINITIALIZED

    @property
    def safe_mode(self) -> bool:
        return self.state is LoaderState.SAFE_MODE

    @property
    def handles(self) -> dict[str, Any | None]:
        return dict(self._handles)

    def handle(self, name: str) -> Any | None:
        return self._handles.get(name)

    # ── State machine ──────────────────────────────────────────────────────────

    def apply(self, event: LoaderEvent) -> LoaderState:
        """Feed one event to the state machine; entering SAFE_MODE drops all handles."""
        previous = self.state
        self.state = next_state(previous, event)
        if self.state is not previous:
            logger.debug("Loader %s --%s--> %s", previous.value, event.value, self.state.value)
            if self.state is LoaderState.SAFE_MODE:
                self._handles = {name: None for name in self._collaborators}
        return self.state

    async def start(self, timeout: float = DEFAULT_EAGER_TIMEOUT) -> LoaderState:
        """Race eager import of every collaborator against ``timeout`` seconds."""
        if self.apply(LoaderEvent.START) is not LoaderState.EAGER_LOADING:
            return self.state

        logger.info("Attempting to eagerly load modules...")
        eager = asyncio.create_task(self._load_all())
        timer = asyncio.create_task(self._sleep(timeout))
        done, _ = await asyncio.wait({eager, timer}, return_when=asyncio.FIRST_COMPLETED)

        if eager in done:
            timer.cancel()
            exc = eager.exception()
            if exc is None:
                logger.info("All modules loaded successfully, using eager loading mode")
                self.apply(LoaderEvent.ALL_LOADED)
            else:
                logger.error("Error during eager loading: %s", exc)
                logger.warning("Switching to safe mode (lazy loading)...")
                self.apply(LoaderEvent.LOAD_FAILED)
        else:
            eager.cancel()
            logger.warning(
                "Loading timeout (%.1fs) reached. Switching to safe mode (lazy loading)...",
                timeout,
            )
            self.apply(LoaderEvent.TIMEOUT)
        return self.state

    def force_safe_mode(self) -> None:
        self.apply(LoaderEvent.FORCE_SAFE)

    # ── Loading ────────────────────────────────────────────────────────────────

    async def load(self, name: str) -> Any:
        """Return the memoized handle for ``name``, importing it on first use.

        Raises:
            ModuleLoadFailed: for unknown names or when the import raises.
        """
        if name not in self._collaborators:
            raise ModuleLoadFailed(f"Unknown module: {name}")
        handle = self._handles.get(name)
        if handle is not None:
            return handle

        if self.safe_mode:
            logger.info("Loading %s module on demand (safe mode)...", name)
        try:
            handle = await asyncio.to_thread(self._resolve, name)
        except Exception as exc:  # noqa: BLE001
            logger.error("Error loading %s module: %s", name, exc, exc_info=True)
            raise ModuleLoadFailed(f"Error loading {name} module: {exc}") from exc
        self._handles[name] = handle
        return handle

    async def _load_all(self) -> None:
        for name in self._collaborators:
            handle = await asyncio.to_thread(self._resolve, name)
            if self.state is not LoaderState.EAGER_LOADING:
                return  # the timer already decided
            self._handles[name] = handle
            logger.info("- %s module loaded successfully", name)

    def _resolve(self, name: str) -> Any:
        module_path, attribute = self._collaborators[name]
        module = self._importer(module_path)
        return getattr(module, attribute)
