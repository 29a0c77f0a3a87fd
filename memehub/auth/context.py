"""
Auth context - who is making an admin request.

Resolved from the bearer token by the auth policies and passed, already
verified, to the admin entry points of the lifecycle coordinator.
"""

from __future__ import annotations

from dataclasses import dataclass

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class AdminContext:
    """
    Verified identity of an admin caller.

    Usage in routes:
        async def my_route(ctx: AdminContext = Depends(require_admin)):
            print(f"Admin {ctx.username} did something")
    """

    user_id: str
    username: str
    role: str = ADMIN_ROLE

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE
