"""Authentication module."""

from app.modules.auth.jwt import (
    ADMIN_ROLE,
    STUDENT_ROLE,
    Identity,
    TokenPayload,
    create_access_token,
    decode_token,
    get_current_identity,
    require_admin,
    require_admin_api_key,
    validate_token,
)

__all__ = [
    "ADMIN_ROLE",
    "STUDENT_ROLE",
    "Identity",
    "TokenPayload",
    "create_access_token",
    "decode_token",
    "get_current_identity",
    "require_admin",
    "require_admin_api_key",
    "validate_token",
]
