"""CLI entry point for apple-mcp."""

import logging
import os

import click
from dotenv import load_dotenv

from apple_mcp import __version__

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s — %(message)s"


def configure_logging(quiet: bool = False) -> None:
    """Log to stderr; stdout belongs to the protocol.

    ``APPLE_MCP_LOG_LEVEL`` overrides the profile's default level.
    """
    default = "WARNING" if quiet else "INFO"
    level = os.environ.get("APPLE_MCP_LOG_LEVEL", default).strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        level = default
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


@click.group()
@click.version_option(__version__, prog_name="apple-mcp")
def cli() -> None:
    """Expose Mail, Messages, Contacts, Notes and Reminders as MCP tools."""
    load_dotenv()


# Import and register commands after cli is defined to avoid circular imports.
from apple_mcp.cli.commands import check, serve  # noqa: E402

cli.add_command(serve)
cli.add_command(check)
