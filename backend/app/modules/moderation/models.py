"""Moderation models for student accounts.

Implements Student, StudentWarning, AccountLock and Appeal models. The
``students`` row carries the denormalized gate fields (warning counter, lock
expiries); warnings, locks and appeals are the history behind them.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.core.database import Base


class WarningSeverity(str, Enum):
    """Severity of a recorded violation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AppealStatus(str, Enum):
    """Status of an appeal."""

    OPEN = "open"
    IN_REVIEW = "in-review"
    CLOSED = "closed"


class Student(Base):
    """Student account as seen by the moderation core.

    Profile, cosmetics and credentials live elsewhere; only the fields the
    gate and the escalation rules read are mapped here.
    """

    __tablename__ = "students"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    roll: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="student")

    warning_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    # Account-level gate
    account_locked_until: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )
    account_lock_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Chatbot-only restriction
    chatbot_locked_until: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )
    chatbot_lock_reason: Mapped[str] = mapped_column(
        Text, nullable=False, default="", server_default=""
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now(),
        nullable=False,
    )

    def is_account_locked(self, now: Optional[datetime] = None) -> bool:
        """Check whether the account-level lock is in effect."""
        now = now or datetime.utcnow()
        return self.account_locked_until is not None and self.account_locked_until > now

    def is_chatbot_restricted(self, now: Optional[datetime] = None) -> bool:
        """Check whether the chatbot-only restriction is in effect."""
        now = now or datetime.utcnow()
        return self.chatbot_locked_until is not None and self.chatbot_locked_until > now

    def __repr__(self) -> str:
        return f"<Student(roll={self.roll}, warnings={self.warning_count})>"


class StudentWarning(Base):
    """A recorded violation.

    ``issuer_roll`` is the admin roll, or ``system`` for automated checks.
    """

    __tablename__ = "warnings"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    roll: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    issuer_roll: Mapped[str] = mapped_column(String(64), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WarningSeverity.LOW.value
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, server_default=func.now(), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<StudentWarning(roll={self.roll}, severity={self.severity})>"


class AccountLock(Base):
    """Audit record of a lock or unlock decision.

    Unlocks are stored as records with reason ``manual-unlock`` and
    ``expires_at`` equal to the moment of the unlock.
    """

    __tablename__ = "locks"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    roll: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    locked_by: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, server_default=func.now(), nullable=False, index=True
    )

    def is_active(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.utcnow()
        return self.expires_at > now

    def __repr__(self) -> str:
        return f"<AccountLock(roll={self.roll}, reason={self.reason})>"


class Appeal(Base):
    """A student's request for review of a restriction."""

    __tablename__ = "appeals"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    roll: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    lock_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("locks.id", ondelete="SET NULL"),
        nullable=True,
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AppealStatus.OPEN.value, index=True
    )
    admin_response: Mapped[str] = mapped_column(
        Text, nullable=False, default="", server_default=""
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, server_default=func.now(), nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Appeal(roll={self.roll}, status={self.status})>"
