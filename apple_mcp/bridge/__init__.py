"""osascript execution, dual-dialect fallback and output parsing."""

from apple_mcp.bridge.bridge import AppTarget, AutomationBridge, ObjectModelQuery
from apple_mcp.bridge.records import ParseLevel, RecordSpec, parse_output
from apple_mcp.bridge.runner import (
    AppleScriptRunner,
    JXARunner,
    ScriptError,
    ScriptResult,
    ScriptRunner,
)

__all__ = [
    "AppTarget",
    "AppleScriptRunner",
    "AutomationBridge",
    "JXARunner",
    "ObjectModelQuery",
    "ParseLevel",
    "RecordSpec",
    "ScriptError",
    "ScriptResult",
    "ScriptRunner",
    "parse_output",
]
