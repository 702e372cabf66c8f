"""Repository for moderation data access.

Implements data access patterns for Student, StudentWarning, AccountLock and
Appeal models. Counter and gate updates on ``students`` are single UPDATE
statements so concurrent requests never lose an increment.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.moderation.models import (
    AccountLock,
    Appeal,
    AppealStatus,
    Student,
    StudentWarning,
)


class StudentRepository:
    """Repository for Student model operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, roll: str, role: str = "student") -> Student:
        """Create a student record."""
        student = Student(roll=roll, role=role, warning_count=0, chatbot_lock_reason="")
        self.session.add(student)
        await self.session.flush()
        return student

    async def get_by_roll(self, roll: str) -> Optional[Student]:
        """Get student by roll, bypassing stale identity-map state."""
        query = (
            select(Student)
            .where(Student.roll == roll)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def _update_returning(self, roll: str, column, **values):
        stmt = (
            update(Student)
            .where(Student.roll == roll)
            .values(**values)
            .returning(column)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def increment_warning_count(self, roll: str) -> Optional[int]:
        """Atomically add one warning and return the new count.

        Returns None when the roll does not exist.
        """
        return await self._update_returning(
            roll,
            Student.warning_count,
            warning_count=Student.warning_count + 1,
        )

    async def decrement_warning_count(self, roll: str) -> Optional[int]:
        """Atomically remove one warning, floored at zero."""
        return await self._update_returning(
            roll,
            Student.warning_count,
            warning_count=case(
                (Student.warning_count > 0, Student.warning_count - 1),
                else_=0,
            ),
        )

    async def set_chatbot_restriction(
        self, roll: str, until: datetime, reason: str
    ) -> bool:
        """Restrict chatbot access until the given time."""
        updated = await self._update_returning(
            roll,
            Student.roll,
            chatbot_locked_until=until,
            chatbot_lock_reason=reason,
        )
        return updated is not None

    async def lock_if_threshold_reached(
        self,
        roll: str,
        threshold: int,
        until: datetime,
        reason: str,
    ) -> bool:
        """Lock the account and reset its counter if it reached the threshold.

        Compare, reset and lock happen in one statement; of several
        concurrent callers observing the same count only one gets True.
        """
        stmt = (
            update(Student)
            .where(Student.roll == roll, Student.warning_count >= threshold)
            .values(
                warning_count=0,
                account_locked_until=until,
                account_lock_reason=reason,
            )
            .returning(Student.roll)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def set_account_lock(
        self, roll: str, until: datetime, reason: str
    ) -> bool:
        """Set the account-level lock, overwriting any previous expiry."""
        updated = await self._update_returning(
            roll,
            Student.roll,
            account_locked_until=until,
            account_lock_reason=reason,
        )
        return updated is not None

    async def clear_account_lock(self, roll: str) -> bool:
        """Clear the account-level lock and reset the warning counter."""
        updated = await self._update_returning(
            roll,
            Student.roll,
            account_locked_until=None,
            account_lock_reason=None,
            warning_count=0,
        )
        return updated is not None

    async def set_all_account_locks(
        self, until: Optional[datetime], reason: Optional[str]
    ) -> int:
        """Bulk set (or clear, with None) every student's account lock."""
        stmt = (
            update(Student)
            .values(account_locked_until=until, account_lock_reason=reason)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0


class WarningRepository:
    """Repository for StudentWarning model operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        roll: str,
        issuer_roll: str,
        reason: str,
        severity: str,
        expires_at: Optional[datetime] = None,
    ) -> StudentWarning:
        """Create a new warning record."""
        warning = StudentWarning(
            roll=roll,
            issuer_roll=issuer_roll,
            reason=reason,
            severity=severity,
            expires_at=expires_at,
        )
        self.session.add(warning)
        await self.session.flush()
        return warning

    async def get_by_id(self, warning_id: uuid.UUID) -> Optional[StudentWarning]:
        query = select(StudentWarning).where(StudentWarning.id == warning_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_roll(self, roll: str, limit: int = 200) -> list[StudentWarning]:
        """Get warnings for a student, most recent first."""
        query = (
            select(StudentWarning)
            .where(StudentWarning.roll == roll)
            .order_by(StudentWarning.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def delete(self, warning: StudentWarning) -> None:
        await self.session.delete(warning)
        await self.session.flush()


class LockRepository:
    """Repository for AccountLock model operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        roll: str,
        reason: str,
        locked_by: str,
        expires_at: datetime,
    ) -> AccountLock:
        """Create a lock (or unlock audit) record."""
        lock = AccountLock(
            roll=roll,
            reason=reason,
            locked_by=locked_by,
            expires_at=expires_at,
        )
        self.session.add(lock)
        await self.session.flush()
        return lock

    async def get_by_id(self, lock_id: uuid.UUID) -> Optional[AccountLock]:
        query = select(AccountLock).where(AccountLock.id == lock_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_roll(self, roll: str, limit: int = 200) -> list[AccountLock]:
        """Get lock history for a student, most recent first."""
        query = (
            select(AccountLock)
            .where(AccountLock.roll == roll)
            .order_by(AccountLock.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())


class AppealRepository:
    """Repository for Appeal model operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        roll: str,
        message: str,
        lock_id: Optional[uuid.UUID] = None,
    ) -> Appeal:
        appeal = Appeal(
            roll=roll,
            message=message,
            lock_id=lock_id,
            status=AppealStatus.OPEN.value,
            admin_response="",
        )
        self.session.add(appeal)
        await self.session.flush()
        return appeal

    async def get_by_id(self, appeal_id: uuid.UUID) -> Optional[Appeal]:
        query = select(Appeal).where(Appeal.id == appeal_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_all(
        self,
        status: Optional[AppealStatus] = None,
        limit: int = 500,
    ) -> list[Appeal]:
        """Get appeals, most recent first."""
        query = select(Appeal)
        if status:
            query = query.where(Appeal.status == status.value)
        query = query.order_by(Appeal.created_at.desc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def set_response(
        self,
        appeal: Appeal,
        status: AppealStatus,
        admin_response: str,
    ) -> Appeal:
        """Update appeal status and admin response."""
        appeal.status = status.value
        appeal.admin_response = admin_response
        await self.session.flush()
        return appeal
