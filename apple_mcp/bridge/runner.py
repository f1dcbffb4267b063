"""osascript runners — one per automation dialect.

Both runners share the same contract: ``run(script)`` never raises, it
returns a ``ScriptResult`` that either carries the trimmed stdout or the
``ScriptError`` that explains why the call failed.  The bridge decides what
to do with a failure; the runners only describe it.
"""

from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import anyio

logger = logging.getLogger(__name__)

APPLESCRIPT = "AppleScript"
JAVASCRIPT = "JavaScript"


class ScriptError(Exception):
    """Raised when a single osascript invocation fails."""

    def __init__(self, message: str, *, dialect: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.dialect = dialect
        self.returncode = returncode


@dataclass(frozen=True)
class ScriptResult:
    """Output of one automation attempt: a payload or the error that replaced it."""

    output: str = ""
    error: ScriptError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> str:
        """Return the payload, or raise the captured ScriptError."""
        if self.error is not None:
            raise self.error
        return self.output


@runtime_checkable
class ScriptRunner(Protocol):
    """Executes a script body in one automation dialect."""

    dialect: str

    async def run(self, script: str) -> ScriptResult:
        ...


class OsascriptRunner:
    """Runs scripts through ``osascript`` as a subprocess.

    ``extra_args`` is inserted before ``-e`` so each dialect can pick its
    language flag and output mode.
    """

    dialect = APPLESCRIPT

    def __init__(
        self,
        executable: str = "osascript",
        *,
        timeout: float | None = None,
        extra_args: tuple[str, ...] = (),
    ) -> None:
        self._executable = executable
        self._timeout = timeout
        self._extra_args = extra_args

    def command(self, script: str) -> list[str]:
        return [self._executable, *self._extra_args, "-e", script]

    async def run(self, script: str) -> ScriptResult:
        logger.debug("%s → %.200s", self.dialect, script.strip())
        try:
            if self._timeout is not None:
                with anyio.fail_after(self._timeout):
                    proc = await anyio.run_process(self.command(script), check=False)
            else:
                proc = await anyio.run_process(self.command(script), check=False)
        except TimeoutError:
            return ScriptResult(error=ScriptError(
                f"{self.dialect} timed out after {self._timeout}s", dialect=self.dialect,
            ))
        except FileNotFoundError:
            return ScriptResult(error=ScriptError(
                f"{self._executable} not found. This tool requires macOS with "
                "scripting support.",
                dialect=self.dialect,
            ))
        except OSError as exc:
            return ScriptResult(error=ScriptError(
                f"{self.dialect} execution failed: {exc}", dialect=self.dialect,
            ))
        return self._result(proc)

    def _result(self, proc: subprocess.CompletedProcess[bytes]) -> ScriptResult:
        stdout = proc.stdout.decode("utf-8", errors="replace").strip() if proc.stdout else ""
        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", errors="replace").strip() if proc.stderr else ""
            return ScriptResult(error=ScriptError(
                f"{self.dialect} error (code {proc.returncode}): "
                f"{stderr or 'Unknown error'}",
                dialect=self.dialect,
                returncode=proc.returncode,
            ))
        return ScriptResult(output=stdout)


class AppleScriptRunner(OsascriptRunner):
    """Procedural dialect.

    ``-ss`` prints results in recompilable source form, so string values come
    back quoted and escaped (``{subject:"Hi, there", ...}``) instead of bare.
    """

    dialect = APPLESCRIPT

    def __init__(self, executable: str = "osascript", *, timeout: float | None = None) -> None:
        super().__init__(executable, timeout=timeout, extra_args=("-ss",))


class JXARunner(OsascriptRunner):
    """Object-model dialect (JavaScript for Automation)."""

    dialect = JAVASCRIPT

    def __init__(self, executable: str = "osascript", *, timeout: float | None = None) -> None:
        super().__init__(executable, timeout=timeout, extra_args=("-l", JAVASCRIPT))

    async def evaluate(self, function_source: str, *args: Any) -> Any:
        """Call a JS function with JSON-encoded args and decode its JSON result.

        Raises:
            ScriptError: if osascript fails or the output is not JSON.
        """
        output = (await self.run(build_jxa_call(function_source, *args))).unwrap()
        if not output:
            return None
        try:
            return json.loads(output)
        except json.JSONDecodeError as exc:
            raise ScriptError(
                f"JXA returned non-JSON output: {output[:200]!r}", dialect=self.dialect,
            ) from exc


def build_jxa_call(function_source: str, *args: Any) -> str:
    """Wrap a JS function so its return value is printed as JSON."""
    encoded = ", ".join(json.dumps(arg) for arg in args)
    return (
        "function run() {\n"
        f"  const fn = {function_source.strip()};\n"
        f"  const out = fn({encoded});\n"
        "  return JSON.stringify(out === undefined ? null : out);\n"
        "}"
    )
