"""apple-mcp — macOS app automation exposed as MCP tools."""

__version__ = "1.0.0"
