"""MCP server: client profiles, module loader, output guard and dispatcher."""
