"""Runtime settings read from the environment (``.env`` is loaded by the CLI)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_DEFAULT_CHAT_DB = Path.home() / "Library" / "Messages" / "chat.db"


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s %r; using %r", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s %r; using %d", name, raw, default)
        return default


@dataclass(frozen=True)
class BridgeConfig:
    """Knobs for the osascript bridge and the startup loader."""

    osascript: str = "osascript"
    settle_delay: float = 2.0          # seconds to wait after launching an app
    preview_length: int = 500          # max characters kept from a message body
    script_timeout: float | None = None
    eager_timeout: float = 5.0
    chat_db: Path = _DEFAULT_CHAT_DB

    @classmethod
    def from_env(cls) -> BridgeConfig:
        """Build a BridgeConfig from ``APPLE_MCP_*`` environment variables."""
        chat_db = os.environ.get("APPLE_MCP_CHAT_DB", "").strip()
        return cls(
            osascript=os.environ.get("APPLE_MCP_OSASCRIPT", "osascript"),
            settle_delay=_env_float("APPLE_MCP_SETTLE_DELAY", 2.0) or 0.0,
            preview_length=_env_int("APPLE_MCP_PREVIEW_LENGTH", 500),
            script_timeout=_env_float("APPLE_MCP_SCRIPT_TIMEOUT", None),
            eager_timeout=_env_float("APPLE_MCP_EAGER_TIMEOUT", 5.0) or 5.0,
            chat_db=Path(chat_db).expanduser() if chat_db else _DEFAULT_CHAT_DB,
        )
