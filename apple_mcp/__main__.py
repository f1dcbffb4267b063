"""Allow ``python -m apple_mcp`` to start the stdio server."""

from apple_mcp.cli.main import cli

if __name__ == "__main__":
    cli(prog_name="apple-mcp")
