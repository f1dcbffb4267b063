"""Per-client behaviour, selected once at startup with ``--client``."""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "default"


@dataclass(frozen=True)
class ClientProfile:
    """Immutable settings for the MCP client on the other end of stdio.

    ``strict_frames`` additionally requires every outgoing frame to parse as
    JSON; ``force_safe_mode`` skips holding eagerly loaded modules because the
    client is sensitive to startup latency variance.
    """

    name: str
    max_response_size: int = 200_000
    verbose_errors: bool = False
    strict_frames: bool = False
    force_safe_mode: bool = False
    quiet_logging: bool = False
    exit_on_signal: bool = False


PROFILES: dict[str, ClientProfile] = {
    "default": ClientProfile("default"),
    "claude": ClientProfile("claude", verbose_errors=True),
    "cursor": ClientProfile(
        "cursor",
        max_response_size=100_000,
        strict_frames=True,
        force_safe_mode=True,
        quiet_logging=True,
        exit_on_signal=True,
    ),
}


def resolve_profile(name: str | None) -> ClientProfile:
    """Look up a profile by name; unknown or empty names get the default."""
    key = (name or DEFAULT_PROFILE).strip().lower()
    profile = PROFILES.get(key)
    if profile is None:
        logger.warning("Unknown client %r; using the default profile", name)
        return PROFILES[DEFAULT_PROFILE]
    return profile
