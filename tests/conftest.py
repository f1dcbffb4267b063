"""Shared pytest fixtures — osascript is never spawned."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from apple_mcp.bridge import AutomationBridge, ScriptError, ScriptResult


class FakeAppleScript:
    """Procedural runner double.

    Reachability scripts (liveness, activate, probes) are answered from the
    flags below; every other script pops the next entry of ``replies``.
    """

    dialect = "AppleScript"

    def __init__(self) -> None:
        self.replies: list[ScriptResult] = []
        self.scripts: list[str] = []
        self.running = True
        self.can_launch = True
        self.probes_ok = True

    async def run(self, script: str) -> ScriptResult:
        self.scripts.append(script)
        if '"System Events"' in script:
            return ScriptResult("true" if self.running else "false")
        if script.endswith("to activate"):
            if self.can_launch:
                return ScriptResult("")
            return ScriptResult(error=ScriptError("not found", dialect=self.dialect))
        if "count every" in script or "return its version" in script:
            if self.probes_ok:
                return ScriptResult("1")
            return ScriptResult(error=ScriptError("not authorized", dialect=self.dialect))
        if not self.replies:
            return ScriptResult("")
        return self.replies.pop(0)

    @property
    def queries(self) -> list[str]:
        """Scripts other than reachability checks."""
        return [
            s for s in self.scripts
            if '"System Events"' not in s
            and not s.endswith("to activate")
            and "count every" not in s
            and "return its version" not in s
        ]


@pytest.fixture
def applescript() -> FakeAppleScript:
    return FakeAppleScript()


@pytest.fixture
def jxa() -> MagicMock:
    runner = MagicMock()
    runner.dialect = "JavaScript"
    runner.evaluate = AsyncMock(return_value=None)
    return runner


@pytest.fixture
def bridge(applescript: FakeAppleScript, jxa: MagicMock) -> AutomationBridge:
    return AutomationBridge(applescript, jxa, settle_delay=0.0, sleep=AsyncMock())
