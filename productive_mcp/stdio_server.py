#!/usr/bin/env python3
"""
Productive MCP Server - STDIO Mode

This is the stdio-based server for Claude Desktop and other local MCP
clients. Credentials come from PRODUCTIVE_API_TOKEN, PRODUCTIVE_ORG_ID
and PRODUCTIVE_USER_ID. For HTTP/SSE access, use server.py instead.
"""

import asyncio
import logging

from mcp.server.stdio import stdio_server

from productive_mcp.config import configure_logging, load_credentials_from_env, validate_credentials
from productive_mcp.tools import create_server

logger = logging.getLogger(__name__)


async def main():
    configure_logging()
    # Validate credentials before starting server
    credentials = validate_credentials(load_credentials_from_env())
    server = create_server(lambda: credentials)

    logger.info(f"Starting stdio server for organization {credentials.organization_id}")
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
