"""JWT identity resolution for request handlers.

Tokens are issued by the login service; this module only verifies them and
turns them into an ``Identity`` (roll + role) that routers depend on.
"""

import hmac
import uuid
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from app.core.config import settings

ADMIN_ROLE = "admin"
STUDENT_ROLE = "student"


class TokenPayload(BaseModel):
    """JWT token payload structure."""

    sub: str  # Student roll
    role: str
    exp: datetime
    iat: datetime
    type: str  # "access" or "refresh"
    jti: str


class Identity(BaseModel):
    """Authenticated caller."""

    roll: str
    role: str = STUDENT_ROLE

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def create_access_token(
    roll: str,
    role: str = STUDENT_ROLE,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create an access token for a roll.

    Args:
        roll: Student roll used as the subject
        role: ``student`` or ``admin``
        expires_delta: Token lifetime, defaults to the configured minutes

    Returns:
        str: Encoded token
    """
    now = datetime.utcnow()
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))

    payload = {
        "sub": roll,
        "role": role,
        "exp": expire,
        "iat": now,
        "type": "access",
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> TokenPayload | None:
    """Decode and verify a JWT token.

    Returns:
        TokenPayload | None: Decoded payload if valid, None otherwise
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        return TokenPayload(
            sub=payload["sub"],
            role=payload.get("role", STUDENT_ROLE),
            exp=datetime.utcfromtimestamp(payload["exp"]),
            iat=datetime.utcfromtimestamp(payload["iat"]),
            type=payload.get("type", "access"),
            jti=payload.get("jti", ""),
        )
    except (JWTError, KeyError):
        return None


def validate_token(token: str, expected_type: str = "access") -> TokenPayload | None:
    """Validate a JWT token's type and expiry."""
    payload = decode_token(token)

    if payload is None:
        return None

    if payload.type != expected_type:
        return None

    if payload.exp < datetime.utcnow():
        return None

    return payload


security = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Identity:
    """Resolve the caller from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = validate_token(credentials.credentials, "access")
    if payload is None or not payload.sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Identity(roll=payload.sub, role=payload.role)


async def require_admin(
    identity: Identity = Depends(get_current_identity),
) -> Identity:
    """Allow only admin identities."""
    if not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin only",
        )
    return identity


async def require_admin_api_key(
    x_admin_key: Optional[str] = Header(default=None),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Identity:
    """Server-to-server admin access via the configured API key.

    The key is read from ``X-Admin-Key`` or, failing that, the bearer token.
    """
    if not settings.ADMIN_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="ADMIN_API_KEY not configured on server",
        )

    key = x_admin_key or (credentials.credentials if credentials else None)
    if not key or not hmac.compare_digest(key, settings.ADMIN_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid Admin API Key",
        )

    return Identity(roll="api-key", role=ADMIN_ROLE)
