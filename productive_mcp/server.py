#!/usr/bin/env python3
"""
Productive MCP Server - HTTP/SSE Mode

Each SSE connection gets its own MCP server bound to the credentials in
its `Authorization: Bearer base64(org:token[:user])` header. A connection
without a valid header is refused with 401, unless MCP_ALLOW_ENV_CREDENTIALS
is set, in which case header-less connections use the PRODUCTIVE_*
environment credentials.
"""

import logging

import uvicorn
from mcp.server.sse import SseServerTransport
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Mount, Route

from productive_mcp import __version__, config
from productive_mcp.auth import parse_auth_header
from productive_mcp.dispatcher import Dispatcher
from productive_mcp.tools import SERVER_NAME, create_server

logger = logging.getLogger(__name__)

dispatcher = Dispatcher()

# SSE Transport setup
sse = SseServerTransport("/messages/")


def request_credentials(request: Request):
    header = request.headers.get("authorization")
    if header:
        return parse_auth_header(header)
    if config.ALLOW_ENV_CREDENTIALS:
        return config.load_credentials_from_env()
    return None


async def handle_sse(request: Request):
    """Handle SSE connections."""
    credentials = request_credentials(request)
    if credentials is None:
        logger.info("Rejected SSE connection without valid credentials")
        return JSONResponse(
            {"error": "Missing or invalid credentials. Send Authorization: Bearer base64(org_id:api_token[:user_id])"},
            status_code=401,
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"SSE connection for organization {credentials.organization_id}")
    server = create_server(lambda: credentials, dispatcher)
    async with sse.connect_sse(request.scope, request.receive, request._send) as streams:
        await server.run(streams[0], streams[1], server.create_initialization_options())
    return Response()


async def health_check(request: Request):
    """Health check endpoint."""
    return JSONResponse({"status": "healthy", "server": SERVER_NAME, "version": __version__, "port": config.MCP_PORT})


def create_app() -> Starlette:
    return Starlette(
        routes=[
            Route("/health", health_check, methods=["GET"]),
            Route("/sse", handle_sse, methods=["GET"]),
            Mount("/messages/", app=sse.handle_post_message),
        ],
    )


app = create_app()


def run():
    config.configure_logging()
    print(f"🚀 Productive MCP Server starting on port {config.MCP_PORT}")
    print(f"📡 SSE endpoint: http://localhost:{config.MCP_PORT}/sse")
    print(f"💬 Messages endpoint: http://localhost:{config.MCP_PORT}/messages/")
    print(f"🔗 Productive API: {config.API_BASE_URL}")
    uvicorn.run(app, host=config.MCP_HOST, port=config.MCP_PORT)


if __name__ == "__main__":
    run()
