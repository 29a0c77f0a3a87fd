"""
Admin authentication.

Admins log in with a username and password and receive a JWT bearer token;
admin routes depend on ``require_admin`` which resolves an ``AdminContext``.
"""

from memehub.auth.context import AdminContext
from memehub.auth.policies import get_admin_from_token, require_admin
from memehub.auth.jwt import (
    AccessToken,
    authenticate_admin,
    create_access_token,
    create_admin,
    hash_password,
    verify_password,
)
from memehub.auth.routes import router as auth_router

__all__ = [
    # Main interface
    "require_admin",
    "get_admin_from_token",
    "AdminContext",
    # JWT
    "AccessToken",
    "authenticate_admin",
    "create_access_token",
    "create_admin",
    "hash_password",
    "verify_password",
    # Router
    "auth_router",
]
