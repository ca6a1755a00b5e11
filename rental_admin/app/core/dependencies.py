"""
Authentication dependencies for FastAPI.

The admin panel authenticates with one shared bearer token.
"""

import secrets
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from rental_admin.app.core.config import settings
from rental_admin.app.core.exceptions import AuthenticationError

# HTTP Bearer security scheme (errors raised by require_admin)
security = HTTPBearer(auto_error=False)


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> dict:
    """
    FastAPI dependency guarding every admin route.

    Raises:
        AuthenticationError: 401 if the token is missing or wrong
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError()

    if not secrets.compare_digest(
        credentials.credentials.encode(), settings.admin_api_token.encode()
    ):
        raise AuthenticationError()

    # Shared token: no per-user identity to attribute audit entries to
    return {"actor_id": None}
