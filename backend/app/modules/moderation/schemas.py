"""Pydantic schemas for moderation module.

Defines request/response schemas for warnings, locks, appeals and
authorization decisions. Request bodies are validated here so the core can
assume well-typed input.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

from app.core.config import settings
from app.modules.moderation.models import AppealStatus, WarningSeverity


class OperationKind(str, Enum):
    """Kind of protected operation checked by the gate."""

    ACCOUNT = "account"
    CHATBOT = "chatbot"


class AppealAction(str, Enum):
    """Admin action on an appeal."""

    CLOSE = "close"
    REVIEW = "review"
    UNLOCK = "unlock"


class ModerationState(str, Enum):
    """Effective state for display, account lock first."""

    ACTIVE = "active"
    ACCOUNT_LOCKED = "account_locked"
    CHATBOT_RESTRICTED = "chatbot_restricted"


class DecisionSource(str, Enum):
    """Which gate check produced a decision."""

    GLOBAL_LOCK = "global_lock"
    ACCOUNT_LOCK = "account_lock"
    CACHE_LOCK = "cache_lock"
    CHATBOT_LOCK = "chatbot_lock"
    UNKNOWN_STUDENT = "unknown_student"
    NONE = "none"


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


def utc_isoformat(value: Optional[datetime]) -> Optional[str]:
    """ISO 8601 with a `Z` suffix. Naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat() + "Z"


# ============================================
# Authorization
# ============================================

class AuthorizationDecision(BaseModel):
    """Result of a gate check. A denial is a value, not an error."""

    allowed: bool
    reason: Optional[str] = None
    until: Optional[datetime] = None
    source: DecisionSource = DecisionSource.NONE

    @field_serializer("until", when_used="json")
    def serialize_until(self, value: Optional[datetime]) -> Optional[str]:
        return utc_isoformat(value)

    @classmethod
    def allow(cls) -> "AuthorizationDecision":
        return cls(allowed=True)

    @classmethod
    def deny(
        cls,
        reason: str,
        source: DecisionSource,
        until: Optional[datetime] = None,
    ) -> "AuthorizationDecision":
        return cls(allowed=False, reason=reason, until=until, source=source)


class ModerationStatus(BaseModel):
    """Moderation status of a student."""

    roll: str
    state: ModerationState
    warning_count: int
    account_locked_until: Optional[datetime] = None
    account_lock_reason: Optional[str] = None
    chatbot_locked_until: Optional[datetime] = None
    chatbot_lock_reason: Optional[str] = None

    @field_serializer("account_locked_until", "chatbot_locked_until", when_used="json")
    def serialize_until(self, value: Optional[datetime]) -> Optional[str]:
        return utc_isoformat(value)


# ============================================
# Warning Schemas
# ============================================

class WarningCreate(BaseModel):
    """Request schema for recording a violation."""

    roll: str = Field(..., min_length=1, max_length=64)
    reason: str = Field(..., min_length=1)
    severity: WarningSeverity = WarningSeverity.LOW
    expires_at: Optional[datetime] = None

    @field_validator("roll", "reason")
    @classmethod
    def strip_required(cls, value: str) -> str:
        return _strip_required(value)


class WarningResponse(BaseModel):
    """Response schema for a warning."""

    id: uuid.UUID
    roll: str
    issuer_roll: str
    reason: str
    severity: WarningSeverity
    expires_at: Optional[datetime] = None
    created_at: datetime

    @field_serializer("expires_at", "created_at", when_used="json")
    def serialize_timestamps(self, value: Optional[datetime]) -> Optional[str]:
        return utc_isoformat(value)

    class Config:
        from_attributes = True


class WarningListResponse(BaseModel):
    warnings: list[WarningResponse]
    total: int


# ============================================
# Lock Schemas
# ============================================

class LockCreate(BaseModel):
    """Request schema for an explicit account lock."""

    roll: str = Field(..., min_length=1, max_length=64)
    reason: str = Field(..., min_length=1)
    seconds: int = Field(..., ge=1, le=settings.MODERATION_MAX_LOCK_SECONDS)

    @field_validator("roll", "reason")
    @classmethod
    def strip_required(cls, value: str) -> str:
        return _strip_required(value)


class UnlockRequest(BaseModel):
    """Request schema for an explicit unlock."""

    roll: str = Field(..., min_length=1, max_length=64)

    @field_validator("roll")
    @classmethod
    def strip_required(cls, value: str) -> str:
        return _strip_required(value)


class LockResponse(BaseModel):
    """Response schema for a lock record."""

    id: uuid.UUID
    roll: str
    reason: str
    locked_by: str
    expires_at: datetime
    created_at: datetime

    @field_serializer("expires_at", "created_at", when_used="json")
    def serialize_timestamps(self, value: datetime) -> str:
        return utc_isoformat(value)

    class Config:
        from_attributes = True


class LockListResponse(BaseModel):
    locks: list[LockResponse]
    total: int


class UnlockResponse(BaseModel):
    ok: bool = True
    roll: str


class GlobalLockResponse(BaseModel):
    """Result of a global lock or unlock."""

    ok: bool = True
    locked: bool
    affected: int
    locked_until: Optional[datetime] = None

    @field_serializer("locked_until", when_used="json")
    def serialize_locked_until(self, value: Optional[datetime]) -> Optional[str]:
        return utc_isoformat(value)


# ============================================
# Appeal Schemas
# ============================================

class AppealCreate(BaseModel):
    """Request schema for submitting an appeal."""

    message: str = Field(..., min_length=1, max_length=2000)
    lock_id: Optional[uuid.UUID] = None

    @field_validator("message")
    @classmethod
    def strip_message(cls, value: str) -> str:
        return _strip_required(value)


class AppealRespond(BaseModel):
    """Request schema for an admin response to an appeal."""

    action: AppealAction
    response: str = Field(default="", max_length=2000)


class AppealResponse(BaseModel):
    """Response schema for an appeal."""

    id: uuid.UUID
    roll: str
    lock_id: Optional[uuid.UUID] = None
    message: str
    status: AppealStatus
    admin_response: str
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at", when_used="json")
    def serialize_timestamps(self, value: datetime) -> str:
        return utc_isoformat(value)

    class Config:
        from_attributes = True


class AppealListResponse(BaseModel):
    appeals: list[AppealResponse]
    total: int
