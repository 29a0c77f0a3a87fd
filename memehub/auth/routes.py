# =============================================================================
# Admin Auth API Routes
# =============================================================================
#
# Endpoints:
#   POST /api/admin/login   - Exchange username/password for a bearer token
#   GET  /api/admin/status  - Whether the caller's token is an admin token
#
# Admin accounts are created out of band: `memehub create-admin`.
#
# =============================================================================

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from memehub.api.dependencies import get_app_settings, get_storage
from memehub.auth.context import AdminContext
from memehub.auth.jwt import AccessToken, authenticate_admin, create_access_token
from memehub.auth.policies import get_admin_from_token
from memehub.config import Settings
from memehub.core.models import MemeHubModel
from memehub.storage.base import StorageProvider

router = APIRouter(prefix="/api/admin", tags=["admin"])


# =============================================================================
# Request/Response Models
# =============================================================================

class LoginRequest(BaseModel):
    username: str
    password: str


class AdminStatus(MemeHubModel):
    is_admin: bool
    username: str | None = None


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/login", response_model=AccessToken)
async def login(
    data: LoginRequest,
    storage: StorageProvider = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
):
    """Authenticate an admin and return an access token."""
    admin = await authenticate_admin(storage.admins, data.username, data.password)
    if not admin:
        raise HTTPException(status_code=401, detail="Invalid username or password")

    return create_access_token(admin, settings)


@router.get("/status", response_model=AdminStatus)
async def status(ctx: AdminContext | None = Depends(get_admin_from_token)):
    """Report whether the caller holds a valid admin token."""
    if ctx is None or not ctx.is_admin:
        return AdminStatus(is_admin=False)
    return AdminStatus(is_admin=True, username=ctx.username)
