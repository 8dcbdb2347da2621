"""
Environment configuration shared by the CLI and both MCP servers.
"""

import os
import sys
import logging
from typing import Optional

from productive_mcp.schemas import Credentials

# Configuration
API_BASE_URL = os.getenv("PRODUCTIVE_BASE_URL", "https://api.productive.io/api/v2")
MCP_HOST = os.getenv("MCP_HOST", "127.0.0.1")
MCP_PORT = int(os.getenv("MCP_PORT", "3000"))
# Let HTTP connections without a Bearer header use the PRODUCTIVE_* credentials
ALLOW_ENV_CREDENTIALS = os.getenv("MCP_ALLOW_ENV_CREDENTIALS", "").lower() in ("1", "true", "yes")
LOG_LEVEL = os.getenv("PRODUCTIVE_LOG_LEVEL", "WARNING")

REQUEST_TIMEOUT = 30.0
DEFAULT_PER_PAGE = 20

INVALID_VALUES = ["YOUR_API_TOKEN", "SET_YOUR_API_TOKEN_HERE", "PLACEHOLDER", "", "null", "None", "undefined"]


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging. Logs go to stderr so stdout stays free for output and JSON-RPC."""
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def load_credentials_from_env() -> Optional[Credentials]:
    """
    Build credentials from PRODUCTIVE_* environment variables.

    Returns:
        Credentials, or None when token or organization is unset
    """
    token = os.getenv("PRODUCTIVE_API_TOKEN")
    org_id = os.getenv("PRODUCTIVE_ORG_ID")
    user_id = os.getenv("PRODUCTIVE_USER_ID") or None
    if not token or not org_id:
        return None
    return Credentials(api_token=token, organization_id=org_id, user_id=user_id)


def validate_credentials(credentials: Optional[Credentials]) -> Credentials:
    """
    Validate credentials before a server starts.

    Exits the process if the token or organization ID is missing or still
    a placeholder. This runs at startup rather than import time so the
    modules stay importable for tests and tooling.
    """
    if credentials is None or credentials.api_token in INVALID_VALUES:
        print("ERROR: Invalid or missing PRODUCTIVE_API_TOKEN", file=sys.stderr)
        print("Create a token in Productive under Settings > API integrations", file=sys.stderr)
        sys.exit(1)

    if credentials.organization_id in INVALID_VALUES or not credentials.organization_id.isdigit():
        print("ERROR: Invalid PRODUCTIVE_ORG_ID. Must be a numeric organization ID", file=sys.stderr)
        sys.exit(1)

    return credentials
