"""
Bearer token handling for the HTTP server.

A token is base64("<organization_id>:<api_token>[:<user_id>]"), so one
Authorization header carries everything needed to call Productive on the
connecting user's behalf.
"""

import base64
import binascii
import logging
from typing import Optional

from productive_mcp.schemas import Credentials

logger = logging.getLogger(__name__)


def create_auth_token(credentials: Credentials) -> str:
    """
    Encode credentials into a Bearer token.

    Example:
        >>> create_auth_token(Credentials(api_token="tok", organization_id="42"))
        'NDI6dG9r'
    """
    parts = [credentials.organization_id, credentials.api_token]
    if credentials.user_id:
        parts.append(credentials.user_id)
    return base64.b64encode(":".join(parts).encode("utf-8")).decode("ascii")


def parse_auth_token(token: str) -> Optional[Credentials]:
    """
    Decode a Bearer token.

    Returns:
        Credentials if the token is valid base64 of org:token[:user], None otherwise
    """
    try:
        decoded = base64.b64decode(token.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        logger.info("Bearer token is not valid base64")
        return None

    parts = decoded.split(":")
    if len(parts) not in (2, 3) or not parts[0] or not parts[1]:
        logger.info("Bearer token does not contain org:token")
        return None

    user_id = parts[2] if len(parts) == 3 and parts[2] else None
    return Credentials(organization_id=parts[0], api_token=parts[1], user_id=user_id)


def parse_auth_header(header: Optional[str]) -> Optional[Credentials]:
    """Credentials from an `Authorization: Bearer ...` header, or None."""
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return parse_auth_token(token)
