"""Command-line entry points (``apple-mcp serve``, ``apple-mcp check``)."""
