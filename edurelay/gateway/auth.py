"""Bearer-token authentication for the gateway.

Tokens are Supabase session JWTs; they are validated against the
Supabase auth API with a service-role client.
"""

from __future__ import annotations

import logging
import os

from fastapi import Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import Client, create_client

from edurelay.errors import AuthenticationRequired, ConfigurationError

logger = logging.getLogger(__name__)

# auto_error=False so a missing header becomes AuthenticationRequired, not a bare 403
_security = HTTPBearer(auto_error=False)

_supabase: Client | None = None


def get_supabase() -> Client:
    """Lazy-init Supabase service-role client."""
    global _supabase
    if _supabase is None:
        url = os.environ.get("SUPABASE_URL", "")
        key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")
        if not url or not key:
            logger.error("SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY are not set")
            raise ConfigurationError("Backend is not configured.")
        _supabase = create_client(url, key)
    return _supabase


async def verify_session(
    credentials: HTTPAuthorizationCredentials | None = Security(_security),
) -> str:
    """Validate the Bearer token and return the caller's user id.

    Raises AuthenticationRequired (401) when the header is missing or the
    token is rejected; the client reacts by sending the user to sign in.
    """
    token = credentials.credentials.strip() if credentials else ""
    if not token:
        raise AuthenticationRequired()

    sb = get_supabase()
    try:
        response = sb.auth.get_user(token)
    except Exception as exc:
        logger.info("Bearer token rejected (%s)", type(exc).__name__)
        raise AuthenticationRequired(
            "Your session has expired. Please sign in again."
        ) from exc

    user = getattr(response, "user", None)
    if user is None:
        raise AuthenticationRequired("Your session has expired. Please sign in again.")

    user_id: str = user.id
    return user_id
