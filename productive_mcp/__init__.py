"""Productive.io client: CLI, MCP stdio server and MCP HTTP server."""

__version__ = "0.4.0"
