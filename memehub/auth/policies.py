"""
Policies - FastAPI dependencies for admin-only routes.

Usage:
    ctx: AdminContext = Depends(require_admin)

- Missing or invalid bearer token → 401
- Valid token without the admin role → 403
- Otherwise the route receives a verified ``AdminContext``
"""

from __future__ import annotations

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from memehub.api.dependencies import get_app_settings
from memehub.auth.context import AdminContext
from memehub.auth.jwt import TokenError, decode_token
from memehub.config import Settings


# Optional bearer (doesn't fail if no token)
optional_bearer = HTTPBearer(auto_error=False)


async def get_admin_from_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_bearer),
    settings: Settings = Depends(get_app_settings),
) -> AdminContext | None:
    """Resolve the caller from the bearer token, or None if there is none."""
    if not credentials:
        return None

    try:
        payload = decode_token(credentials.credentials, settings)
    except TokenError:
        return None

    return AdminContext(user_id=payload.sub, username=payload.username, role=payload.role)


async def require_admin(
    ctx: AdminContext | None = Depends(get_admin_from_token),
) -> AdminContext:
    """Require an authenticated admin."""
    if ctx is None:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not ctx.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return ctx
