"""CLI command implementations."""

from __future__ import annotations

import asyncio
import logging
import sys

import click
from rich import box
from rich.console import Console
from rich.table import Table

from apple_mcp.apps.targets import ALL_TARGETS
from apple_mcp.bridge import AppTarget, AutomationBridge
from apple_mcp.config import BridgeConfig
from apple_mcp.errors import AutomationError
from apple_mcp.server.profiles import PROFILES, resolve_profile

logger = logging.getLogger(__name__)
# stdout is reserved for protocol frames, even for diagnostics.
console = Console(stderr=True, width=120)

CHECK_TARGETS: tuple[AppTarget, ...] = ALL_TARGETS


@click.command()
@click.option(
    "--client",
    envvar="APPLE_MCP_CLIENT",
    default="default",
    show_default=True,
    help=f"Client profile: {', '.join(PROFILES)}.",
)
def serve(client: str) -> None:
    """Run the MCP server on stdio."""
    from apple_mcp.cli.main import configure_logging
    from apple_mcp.server.app import serve as serve_stdio

    profile = resolve_profile(client)
    configure_logging(quiet=profile.quiet_logging)
    config = BridgeConfig.from_env()
    try:
        asyncio.run(serve_stdio(profile, config))
    except KeyboardInterrupt:
        logger.info("Interrupted — goodbye")
    except Exception as exc:  # noqa: BLE001
        logger.critical("Failed to run MCP server: %s", exc, exc_info=True)
        sys.exit(1)


@click.command()
def check() -> None:
    """Probe each app through osascript and report which ones respond."""
    from apple_mcp.cli.main import configure_logging

    configure_logging(quiet=True)
    config = BridgeConfig.from_env()
    results = asyncio.run(_check_async(AutomationBridge.from_config(config)))

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("App", width=12)
    table.add_column("Status", width=8)
    table.add_column("Detail", max_width=90)
    for name, error in results:
        if error is None:
            table.add_row(name, "[green]ok[/green]", "")
        else:
            table.add_row(name, "[red]failed[/red]", f"[dim]{error}[/dim]")

    chat_db = config.chat_db
    table.add_row(
        "chat.db",
        "[green]ok[/green]" if chat_db.is_file() else "[yellow]missing[/yellow]",
        str(chat_db),
    )
    console.print(table)

    if any(error is not None for _, error in results):
        sys.exit(1)


async def _check_async(bridge: AutomationBridge) -> list[tuple[str, str | None]]:
    results: list[tuple[str, str | None]] = []
    for target in CHECK_TARGETS:
        console.print(f"Checking [bold]{target.name}[/bold]...")
        try:
            await bridge.ensure_reachable(target)
        except AutomationError as exc:
            results.append((target.name, str(exc)))
        else:
            results.append((target.name, None))
    return results
