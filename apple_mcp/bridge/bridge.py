"""AutomationBridge — dual-dialect execution against one macOS application.

Every call first makes sure the app is running and answers a minimal probe,
then runs the procedural (AppleScript) script.  The object-model (JXA)
fallback is only consulted when the procedural script failed or was not
supplied; results from the two dialects are never merged, so every record
comes from exactly one path.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from apple_mcp.bridge.parsing import escape_applescript_string, unquote
from apple_mcp.bridge.records import RecordSpec, parse_output
from apple_mcp.bridge.runner import AppleScriptRunner, JXARunner, ScriptError, ScriptRunner
from apple_mcp.config import BridgeConfig
from apple_mcp.errors import ApplicationUnreachable, AutomationQueryFailed

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUCCESS_SENTINEL = "success"


class ObjectModelRunner(ScriptRunner, Protocol):
    async def evaluate(self, function_source: str, *args: Any) -> Any:
        ...


@dataclass(frozen=True)
class AppTarget:
    """A scriptable application plus the probes that prove it will answer.

    Probes run in order inside ``tell application``; the first that succeeds
    ends the capability check.
    """

    name: str
    probes: tuple[str, ...] = ("return its version",)

    def tell(self, body: str) -> str:
        return f'tell application "{escape_applescript_string(self.name)}"\n{body}\nend tell'


@dataclass(frozen=True)
class ObjectModelQuery:
    """A JXA function (as source text) and the JSON-serialisable args it takes."""

    function_source: str
    args: tuple[Any, ...] = ()


class AutomationBridge:
    """Runs automation intents against macOS apps with an AppleScript → JXA fallback.

    Usage::

        bridge = AutomationBridge.from_config(BridgeConfig.from_env())
        emails = await bridge.query(MAIL, script=..., spec=..., limit=10,
                                    fallback=ObjectModelQuery(JXA_UNREAD, (10,)))
    """

    def __init__(
        self,
        procedural: ScriptRunner | None = None,
        object_model: ObjectModelRunner | None = None,
        *,
        settle_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._procedural = procedural or AppleScriptRunner()
        self._object_model = object_model or JXARunner()
        self._settle_delay = settle_delay
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: BridgeConfig) -> AutomationBridge:
        return cls(
            AppleScriptRunner(config.osascript, timeout=config.script_timeout),
            JXARunner(config.osascript, timeout=config.script_timeout),
            settle_delay=config.settle_delay,
        )

    # ── Reachability ───────────────────────────────────────────────────────────

    async def ensure_reachable(self, target: AppTarget) -> None:
        """Launch the app if needed, then run its capability probes.

        Raises:
            ApplicationUnreachable: if the app cannot be launched or refuses
                every probe.
        """
        name = escape_applescript_string(target.name)
        running = await self._procedural.run(
            f'tell application "System Events" to return application process "{name}" exists'
        )
        if not (running.ok and running.output.strip() == "true"):
            logger.info("%s is not running, attempting to launch...", target.name)
            launched = await self._procedural.run(f'tell application "{name}" to activate')
            if not launched.ok:
                raise ApplicationUnreachable(
                    f"Could not activate {target.name}. Please start it manually.",
                    launched.error,
                ) from launched.error
            await self._sleep(self._settle_delay)

        last_error: ScriptError | None = None
        for probe in target.probes:
            result = await self._procedural.run(target.tell(probe))
            if result.ok:
                return
            last_error = result.error
            logger.warning("%s probe %r failed: %s", target.name, probe, last_error)

        raise ApplicationUnreachable(
            f"{target.name} is running but does not respond to scripting. "
            f"Please check automation permissions and configuration. Error: {last_error}",
            last_error,
        ) from last_error

    # ── Queries ────────────────────────────────────────────────────────────────

    async def query(
        self,
        target: AppTarget,
        *,
        script: str | None,
        spec: RecordSpec[T],
        limit: int,
        fallback: ObjectModelQuery | None = None,
    ) -> list[T]:
        """Run a read-only intent and return at most ``limit`` typed records.

        A procedural run that succeeds but yields nothing returns ``[]``; only
        a failed (or absent) procedural script reaches the JXA fallback.

        Raises:
            ApplicationUnreachable: from the reachability checks.
            AutomationQueryFailed: when every applicable path errored.
        """
        await self.ensure_reachable(target)

        last_error: ScriptError | None = None
        if script is not None:
            try:
                output = (await self._procedural.run(script)).unwrap()
            except ScriptError as exc:
                last_error = exc
                logger.warning("AppleScript query against %s failed: %s", target.name, exc)
            else:
                records, level = parse_output(output, spec)
                logger.debug(
                    "%s: %d record(s) via AppleScript (%s parse)",
                    target.name, len(records), level.value,
                )
                return records[:limit]

        if fallback is None:
            raise AutomationQueryFailed(
                f"Error querying {target.name}: {last_error}", last_error
            ) from last_error

        logger.info("Trying JXA approach for %s...", target.name)
        try:
            raw = await self._object_model.evaluate(fallback.function_source, *fallback.args)
        except ScriptError as exc:
            raise AutomationQueryFailed(f"Error querying {target.name}: {exc}", exc) from exc

        items = raw if isinstance(raw, list) else []
        records = [spec.build(item) for item in items if isinstance(item, dict)]
        logger.debug("%s: %d record(s) via JXA", target.name, len(records))
        return records[:limit]

    async def command(
        self,
        target: AppTarget,
        *,
        script: str,
        fallback: ObjectModelQuery | None = None,
        sentinel: str = SUCCESS_SENTINEL,
    ) -> str:
        """Run a side-effecting intent; retry once via JXA on any failure.

        The AppleScript must print ``sentinel``.  When both dialects fail the
        JXA error is surfaced, since it usually says more than AppleScript's.

        Returns the sentinel, or the JXA function's return value as text.
        """
        await self.ensure_reachable(target)

        result = await self._procedural.run(script)
        if result.ok and unquote(result.output.strip()) == sentinel:
            return sentinel
        first_error = result.error or ScriptError(
            f"Unexpected AppleScript result: {result.output[:200]!r}",
            dialect=self._procedural.dialect,
        )
        logger.warning("AppleScript command against %s failed: %s", target.name, first_error)

        if fallback is None:
            raise AutomationQueryFailed(str(first_error), first_error) from first_error

        try:
            value = await self._object_model.evaluate(fallback.function_source, *fallback.args)
        except ScriptError as exc:
            raise AutomationQueryFailed(str(exc), exc) from exc
        return "" if value is None else str(value)

    async def evaluate(self, target: AppTarget, function_source: str, *args: Any) -> Any:
        """Object-model-only call for intents with no procedural variant."""
        await self.ensure_reachable(target)
        try:
            return await self._object_model.evaluate(function_source, *args)
        except ScriptError as exc:
            raise AutomationQueryFailed(f"Error querying {target.name}: {exc}", exc) from exc

    async def run_text(self, target: AppTarget, script: str) -> str:
        """Procedural-only call returning the raw printed result."""
        await self.ensure_reachable(target)
        try:
            return (await self._procedural.run(script)).unwrap()
        except ScriptError as exc:
            raise AutomationQueryFailed(f"Error querying {target.name}: {exc}", exc) from exc
