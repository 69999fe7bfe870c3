"""HTTP basic authentication for every dashboard route."""

import base64
import binascii
import secrets
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from backup_dashboard._utils import logger
from .config import Settings
from .dependencies import get_settings
from .exceptions import AuthenticationRequiredError

security = HTTPBasic(realm="Backup Dashboard", auto_error=False)


def check_credentials(settings: Settings, username: str, password: str) -> bool:
    """Constant-time comparison against the configured admin credentials."""
    if not settings.admin_user or not settings.admin_pass:
        return False
    user_ok = secrets.compare_digest(username.encode(), settings.admin_user.encode())
    pass_ok = secrets.compare_digest(password.encode(), settings.admin_pass.encode())
    return user_ok and pass_ok


def parse_basic_header(header: Optional[str]) -> Optional[HTTPBasicCredentials]:
    """Decode an ``Authorization: Basic ...`` header value."""
    if not header:
        return None
    scheme, _, encoded = header.partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, separator, password = decoded.partition(":")
    if not separator:
        return None
    return HTTPBasicCredentials(username=username, password=password)


async def require_admin(
    request: Request,
    credentials: Optional[HTTPBasicCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> str:
    """Reject the request unless it carries the admin credentials."""
    if credentials is None or not check_credentials(settings, credentials.username, credentials.password):
        audit = getattr(request.app.state, "audit", None)
        if audit is not None:
            audit.record("Authentication failed")
        raise AuthenticationRequiredError()

    logger.debug(f"Authentication successful for user: {credentials.username}")
    return credentials.username
