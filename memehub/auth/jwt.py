# =============================================================================
# JWT Authentication for Admins
# =============================================================================
#
# This module provides:
#   - Password hashing (PBKDF2-SHA256)
#   - Access token creation and validation
#   - Admin authentication against the AdminStore
#
# =============================================================================

from datetime import datetime, timedelta, timezone
import hashlib
import logging
import secrets

from pydantic import BaseModel
import jwt

from memehub.config import Settings, get_settings
from memehub.core.models import AdminRecord
from memehub.core.utils import generate_id, utc_now
from memehub.storage.base import AdminStore

logger = logging.getLogger(__name__)


# =============================================================================
# Models
# =============================================================================

class TokenPayload(BaseModel):
    """JWT token payload."""
    sub: str  # admin id
    username: str
    role: str
    exp: datetime
    iat: datetime
    jti: str  # unique token ID


class AccessToken(BaseModel):
    """Token returned on login."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until the token expires


# =============================================================================
# Password Hashing
# =============================================================================

def hash_password(password: str) -> str:
    """
    Hash a password using PBKDF2-SHA256.

    Returns: salt:hash format string
    """
    salt = secrets.token_hex(32)
    hash_bytes = hashlib.pbkdf2_hmac(
        'sha256',
        password.encode('utf-8'),
        salt.encode('utf-8'),
        iterations=100_000
    )
    return f"{salt}:{hash_bytes.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash."""
    try:
        salt, stored_hash = password_hash.split(':')
        hash_bytes = hashlib.pbkdf2_hmac(
            'sha256',
            password.encode('utf-8'),
            salt.encode('utf-8'),
            iterations=100_000
        )
        return secrets.compare_digest(hash_bytes.hex(), stored_hash)
    except (ValueError, AttributeError):
        return False


# =============================================================================
# Token Creation
# =============================================================================

def create_access_token(admin: AdminRecord, settings: Settings | None = None) -> AccessToken:
    """Create a JWT access token for an admin, signed with ``settings``."""
    settings = settings or get_settings()
    now = utc_now()
    expire = now + timedelta(minutes=settings.jwt_access_token_expire_minutes)

    payload = {
        "sub": admin.id,
        "username": admin.username,
        "role": admin.role,
        "exp": expire,
        "iat": now,
        "jti": generate_id(),
    }

    token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return AccessToken(
        access_token=token,
        expires_in=settings.jwt_access_token_expire_minutes * 60,
    )


# =============================================================================
# Token Validation
# =============================================================================

class TokenError(Exception):
    """Base exception for token errors."""
    pass


class TokenExpiredError(TokenError):
    """Token has expired."""
    pass


class TokenInvalidError(TokenError):
    """Token is invalid or malformed."""
    pass


def decode_token(token: str, settings: Settings | None = None) -> TokenPayload:
    """
    Decode and validate a JWT access token.

    ``settings`` defaults to the environment; the API passes its own.

    Raises:
        TokenExpiredError: Token has expired
        TokenInvalidError: Token is invalid
    """
    settings = settings or get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "iat", "sub"]},
        )
        return TokenPayload(
            sub=payload["sub"],
            username=payload.get("username", ""),
            role=payload.get("role", ""),
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            jti=payload.get("jti", ""),
        )

    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenInvalidError(f"Invalid token: {e}")


# =============================================================================
# Admin accounts
# =============================================================================

async def authenticate_admin(admins: AdminStore, username: str, password: str) -> AdminRecord | None:
    """Authenticate an admin by username and password."""
    admin = await admins.get_by_username(username)
    if not admin:
        return None
    if not verify_password(password, admin.password_hash):
        return None
    return admin


async def create_admin(admins: AdminStore, username: str, password: str) -> AdminRecord:
    """
    Create an admin account.

    Raises:
        ValueError: Username too short, password too short, or username taken
    """
    if len(username) < 3:
        raise ValueError("Username must be at least 3 characters")
    if len(password) < 6:
        raise ValueError("Password must be at least 6 characters")

    admin = AdminRecord(username=username, password_hash=hash_password(password))
    await admins.create(admin)
    logger.info(f"Created admin account {username}")
    return admin
