"""Moderation engine: the account lock state machine.

States per student are independent and may combine:

* Active
* AccountLocked(until)       - ``students.account_locked_until`` in the future
* ChatbotRestricted(until)   - ``students.chatbot_locked_until`` in the future

Every public operation commits its database changes first, then mirrors them
into the cache, then publishes an event. Expired states are never swept;
readers treat past expiries as inactive.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import log_info
from app.core.metrics import record_moderation_action
from app.modules.moderation.cache import FastLockCache
from app.modules.moderation.events import ModerationEvent, ModerationEventPublisher
from app.modules.moderation.exceptions import (
    ModerationValidationError,
    StudentNotFoundError,
)
from app.modules.moderation.ledger import WarningLedger
from app.modules.moderation.models import (
    AccountLock,
    Student,
    StudentWarning,
    WarningSeverity,
)
from app.modules.moderation.repository import LockRepository, StudentRepository
from app.modules.moderation.schemas import ModerationState, ModerationStatus

logger = logging.getLogger(__name__)


AUTO_LOCK_REASON = "auto-lock after warnings"
UNLOCK_REASON = "manual-unlock"
GLOBAL_LOCK_REASON = "global lock"


def validate_lock_duration(duration_seconds: int, max_seconds: int) -> int:
    """Check a manual lock duration against ``[1, max_seconds]``.

    Raises:
        ModerationValidationError: If the duration is not an int in range
    """
    if isinstance(duration_seconds, bool) or not isinstance(duration_seconds, int):
        raise ModerationValidationError("Lock duration must be an integer number of seconds")
    if duration_seconds < 1 or duration_seconds > max_seconds:
        raise ModerationValidationError(
            f"Lock duration must be between 1 and {max_seconds} seconds"
        )
    return duration_seconds


def effective_state(student: Student, now: Optional[datetime] = None) -> ModerationState:
    """Display state of a student, account lock taking precedence."""
    now = now or datetime.utcnow()
    if student.is_account_locked(now):
        return ModerationState.ACCOUNT_LOCKED
    if student.is_chatbot_restricted(now):
        return ModerationState.CHATBOT_RESTRICTED
    return ModerationState.ACTIVE


class ModerationEngine:
    """Applies violations and admin commands to student lock state.

    Args:
        session: Async SQLAlchemy session (authoritative store)
        cache: Lock mirror; failures there never fail an operation
        events: Publisher for live UI events
    """

    WARNING_LOCK_THRESHOLD = settings.MODERATION_WARNING_THRESHOLD
    AUTO_LOCK_SECONDS = settings.MODERATION_AUTO_LOCK_SECONDS
    MAX_LOCK_SECONDS = settings.MODERATION_MAX_LOCK_SECONDS
    GLOBAL_LOCK_SECONDS = settings.MODERATION_GLOBAL_LOCK_SECONDS

    def __init__(
        self,
        session: AsyncSession,
        cache: FastLockCache,
        events: ModerationEventPublisher,
    ):
        self.session = session
        self.cache = cache
        self.events = events
        self.ledger = WarningLedger(session)
        self.student_repository = StudentRepository(session)
        self.lock_repository = LockRepository(session)

    # ==================== Violations ====================

    async def record_violation(
        self,
        roll: str,
        reason: str,
        severity: WarningSeverity,
        issuer: str,
        expires_at: Optional[datetime] = None,
    ) -> StudentWarning:
        """Record a warning and escalate if the threshold is reached.

        The warning, the counter change, any chatbot restriction and any
        auto-lock are committed together.

        Raises:
            StudentNotFoundError: If the roll does not exist
        """
        warning = await self.ledger.record(
            roll=roll,
            reason=reason,
            severity=severity,
            issuer=issuer,
            expires_at=expires_at,
        )
        auto_lock = await self._apply_threshold_lock(roll, issuer)
        await self.session.commit()

        record_moderation_action("warning_recorded")
        log_info(
            logger,
            "Warning recorded",
            roll=roll,
            issuer=issuer,
            severity=warning.severity,
            warning_id=str(warning.id),
        )

        if auto_lock is not None:
            await self._after_auto_lock(auto_lock)

        student = await self.student_repository.get_by_roll(roll)
        await self.events.publish(
            ModerationEvent.WARNING_UPDATED,
            {
                "roll": roll,
                "warnings": student.warning_count if student else None,
                "locked_until": student.account_locked_until if student else None,
                "chatbot_locked_until": student.chatbot_locked_until if student else None,
            },
        )
        return warning

    async def evaluate(self, roll: str, issuer: str = "system") -> Optional[AccountLock]:
        """Auto-lock the student if ``warning_count`` reached the threshold.

        Returns:
            AccountLock | None: The lock written, or None if no transition
        """
        lock = await self._apply_threshold_lock(roll, issuer)
        if lock is None:
            return None

        await self.session.commit()
        await self._after_auto_lock(lock)
        return lock

    async def _apply_threshold_lock(self, roll: str, issuer: str) -> Optional[AccountLock]:
        until = datetime.utcnow() + timedelta(seconds=self.AUTO_LOCK_SECONDS)
        locked = await self.student_repository.lock_if_threshold_reached(
            roll,
            threshold=self.WARNING_LOCK_THRESHOLD,
            until=until,
            reason=AUTO_LOCK_REASON,
        )
        if not locked:
            return None

        return await self.lock_repository.create(
            roll=roll,
            reason=AUTO_LOCK_REASON,
            locked_by=issuer,
            expires_at=until,
        )

    async def _after_auto_lock(self, lock: AccountLock) -> None:
        record_moderation_action("auto_lock")
        log_info(
            logger,
            "Account auto-locked after warnings",
            roll=lock.roll,
            expires_at=lock.expires_at.isoformat(),
        )
        await self.cache.set_account_lock(lock.roll, AUTO_LOCK_REASON, self.AUTO_LOCK_SECONDS)
        await self.events.publish(
            ModerationEvent.STUDENT_LOCKED,
            {"roll": lock.roll, "expiresAt": lock.expires_at, "reason": AUTO_LOCK_REASON},
        )

    async def remove_warning(self, warning_id: uuid.UUID) -> StudentWarning:
        """Remove a warning. Does not lift any lock it caused.

        Raises:
            WarningNotFoundError: If the warning does not exist
        """
        warning = await self.ledger.remove(warning_id)
        await self.session.commit()

        record_moderation_action("warning_removed")
        log_info(logger, "Warning removed", roll=warning.roll, warning_id=str(warning_id))
        await self.events.publish(ModerationEvent.WARNING_UPDATED, {"roll": warning.roll})
        return warning

    async def list_warnings(self, roll: str) -> list[StudentWarning]:
        return await self.ledger.list_for_account(roll)

    # ==================== Explicit locks ====================

    async def lock(
        self,
        roll: str,
        reason: str,
        duration_seconds: int,
        issuer: str,
    ) -> AccountLock:
        """Lock an account for ``duration_seconds``, replacing any prior expiry.

        Raises:
            ModerationValidationError: If duration or reason is out of contract
            StudentNotFoundError: If the roll does not exist
        """
        validate_lock_duration(duration_seconds, self.MAX_LOCK_SECONDS)
        if not reason or not reason.strip():
            raise ModerationValidationError("Lock reason is required")

        until = datetime.utcnow() + timedelta(seconds=duration_seconds)
        if not await self.student_repository.set_account_lock(roll, until, reason):
            raise StudentNotFoundError(roll)

        lock = await self.lock_repository.create(
            roll=roll,
            reason=reason,
            locked_by=issuer,
            expires_at=until,
        )
        await self.session.commit()

        record_moderation_action("manual_lock")
        log_info(
            logger,
            "Account locked",
            roll=roll,
            issuer=issuer,
            expires_at=until.isoformat(),
        )
        await self.cache.set_account_lock(roll, reason, duration_seconds)
        await self.events.publish(
            ModerationEvent.STUDENT_LOCKED,
            {"roll": roll, "expiresAt": until, "reason": reason},
        )
        return lock

    async def unlock(self, roll: str, issuer: str) -> AccountLock:
        """Return the account to Active and reset its warning counter.

        Not guarded by the current state: unlocking an active account still
        writes an audit record. The chatbot restriction is left untouched.

        Returns:
            AccountLock: The ``manual-unlock`` audit record

        Raises:
            StudentNotFoundError: If the roll does not exist
        """
        if not await self.student_repository.clear_account_lock(roll):
            raise StudentNotFoundError(roll)

        audit = await self.lock_repository.create(
            roll=roll,
            reason=UNLOCK_REASON,
            locked_by=issuer,
            expires_at=datetime.utcnow(),
        )
        await self.session.commit()

        record_moderation_action("unlock")
        log_info(logger, "Account unlocked", roll=roll, issuer=issuer)
        await self.cache.clear_account_lock(roll)
        await self.events.publish(
            ModerationEvent.STUDENT_UNLOCKED,
            {"roll": roll, "by": issuer},
        )
        return audit

    async def list_locks(self, roll: str) -> list[AccountLock]:
        """Lock and unlock history for a roll, most recent first."""
        return await self.lock_repository.get_by_roll(roll)

    # ==================== Global lock ====================

    async def global_lock(self, issuer: str) -> tuple[int, datetime]:
        """Lock every account and raise the global cache flag.

        Returns:
            tuple[int, datetime]: (students affected, lock expiry)
        """
        until = datetime.utcnow() + timedelta(seconds=self.GLOBAL_LOCK_SECONDS)
        affected = await self.student_repository.set_all_account_locks(until, GLOBAL_LOCK_REASON)
        await self.session.commit()

        record_moderation_action("global_lock")
        log_info(logger, "Global lock applied", issuer=issuer, affected=affected)
        await self.cache.set_global_lock(self.GLOBAL_LOCK_SECONDS)
        await self.events.publish(ModerationEvent.CHAT_LOCKED, {"by": issuer})
        return affected, until

    async def global_unlock(self, issuer: str) -> int:
        """Clear every account lock, its cache mirror and the global flag.

        Returns:
            int: Students affected
        """
        affected = await self.student_repository.set_all_account_locks(None, None)
        await self.session.commit()

        record_moderation_action("global_unlock")
        log_info(logger, "Global lock lifted", issuer=issuer, affected=affected)
        await self.cache.clear_all_account_locks()
        await self.cache.clear_global_lock()
        await self.events.publish(ModerationEvent.CHAT_UNLOCKED, {"by": issuer})
        return affected

    # ==================== Status ====================

    async def get_status(self, roll: str) -> ModerationStatus:
        """Moderation status for display.

        Raises:
            StudentNotFoundError: If the roll does not exist
        """
        student = await self.student_repository.get_by_roll(roll)
        if student is None:
            raise StudentNotFoundError(roll)

        now = datetime.utcnow()
        account_locked = student.is_account_locked(now)
        chatbot_restricted = student.is_chatbot_restricted(now)
        return ModerationStatus(
            roll=student.roll,
            state=effective_state(student, now),
            warning_count=student.warning_count,
            account_locked_until=student.account_locked_until if account_locked else None,
            account_lock_reason=student.account_lock_reason if account_locked else None,
            chatbot_locked_until=student.chatbot_locked_until if chatbot_restricted else None,
            chatbot_lock_reason=student.chatbot_lock_reason if chatbot_restricted else None,
        )
