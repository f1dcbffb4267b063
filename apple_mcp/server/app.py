"""Server wiring: loader race, MCP handlers, guarded stdio transport."""

from __future__ import annotations

import asyncio
import io
import logging
import os
import signal
import sys

import anyio
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from apple_mcp import __version__
from apple_mcp.bridge import AutomationBridge
from apple_mcp.config import BridgeConfig
from apple_mcp.errors import AppleMCPError
from apple_mcp.server.dispatcher import ToolDispatcher
from apple_mcp.server.guard import GuardedStream, GuardedWriter, OutputGuard
from apple_mcp.server.loader import ModuleLoader
from apple_mcp.server.profiles import ClientProfile
from apple_mcp.server.tools import TOOLS

logger = logging.getLogger(__name__)

SERVER_NAME = "Apple MCP tools"


class ToolCallFailed(AppleMCPError):
    """Carries an error response's text out of a ``call_tool`` handler."""


def build_server(dispatcher: ToolDispatcher) -> Server:
    """Low-level MCP server whose two handlers delegate to ``dispatcher``.

    Error responses are raised as ToolCallFailed; the SDK turns any exception
    from a ``call_tool`` handler into a result with ``isError: true`` and the
    exception text as its only content item.
    """
    server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return TOOLS

    @server.call_tool()
    async def call_tool(name: str, arguments: dict | None) -> list[types.TextContent]:
        response = await dispatcher.dispatch(name, arguments or {})
        if response.is_error:
            raise ToolCallFailed(response.text)
        return [types.TextContent(type="text", text=response.text)]

    return server


def _install_signal_handlers(profile: ClientProfile) -> None:
    if not profile.exit_on_signal:
        return

    def _exit_now(sig: signal.Signals) -> None:
        logger.info("Received %s - shutting down...", sig.name)
        logging.shutdown()
        os._exit(0)

    loop = asyncio.get_running_loop()
    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _exit_now, sig)
    except (NotImplementedError, AttributeError):
        pass


async def serve(profile: ClientProfile, config: BridgeConfig) -> None:
    """Run the MCP server on stdio until the client disconnects.

    Stray writes to ``sys.stdout`` are filtered from the first moment, so
    nothing printed while collaborator modules import can corrupt the
    protocol stream.
    """
    guard = OutputGuard(profile)
    real_stdout = sys.stdout
    frames = GuardedWriter(
        anyio.wrap_file(io.TextIOWrapper(real_stdout.buffer, encoding="utf-8")), guard
    )
    sys.stdout = GuardedStream(real_stdout, guard)
    _install_signal_handlers(profile)

    scheduler = AsyncIOScheduler()
    try:
        logger.info("Starting apple-mcp %s for client: %s", __version__, profile.name)
        loader = ModuleLoader()
        await loader.start(config.eager_timeout)
        if profile.force_safe_mode:
            logger.info("Client %s forces safe mode (lazy loading)", profile.name)
            loader.force_safe_mode()

        scheduler.start()
        dispatcher = ToolDispatcher(
            loader, AutomationBridge.from_config(config), profile, config, scheduler=scheduler
        )
        server = build_server(dispatcher)

        logger.info("Connecting stdio transport (%s mode)...", loader.state.value)
        async with stdio_server(stdout=frames) as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
        logger.info("Client disconnected")
    finally:
        if scheduler.running:
            scheduler.shutdown(wait=False)
        sys.stdout = real_stdout
