"""Warning ledger: durable history of violations per student."""

import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.modules.moderation.exceptions import (
    StudentNotFoundError,
    WarningNotFoundError,
)
from app.modules.moderation.models import StudentWarning, WarningSeverity
from app.modules.moderation.repository import StudentRepository, WarningRepository


class WarningLedger:
    """Records and removes warnings, keeping ``warning_count`` in step.

    The ledger flushes but never commits; the caller owns the transaction.
    """

    CHATBOT_LOCK_SECONDS = settings.MODERATION_CHATBOT_LOCK_SECONDS
    DEFAULT_CHATBOT_LOCK_REASON = "High violation"

    def __init__(self, session: AsyncSession):
        self.session = session
        self.student_repository = StudentRepository(session)
        self.warning_repository = WarningRepository(session)

    async def record(
        self,
        roll: str,
        reason: str,
        severity: WarningSeverity,
        issuer: str,
        expires_at: Optional[datetime] = None,
    ) -> StudentWarning:
        """Insert a warning and increment the student's counter.

        A ``high`` warning also restricts the chatbot immediately, whatever
        the counter says.

        Raises:
            StudentNotFoundError: If the roll does not exist
        """
        new_count = await self.student_repository.increment_warning_count(roll)
        if new_count is None:
            raise StudentNotFoundError(roll)

        warning = await self.warning_repository.create(
            roll=roll,
            issuer_roll=issuer,
            reason=reason,
            severity=WarningSeverity(severity).value,
            expires_at=expires_at,
        )

        if WarningSeverity(severity) == WarningSeverity.HIGH:
            await self.student_repository.set_chatbot_restriction(
                roll,
                until=datetime.utcnow() + timedelta(seconds=self.CHATBOT_LOCK_SECONDS),
                reason=reason or self.DEFAULT_CHATBOT_LOCK_REASON,
            )

        return warning

    async def remove(self, warning_id: uuid.UUID) -> StudentWarning:
        """Delete a warning and decrement the owner's counter (floored at 0).

        Locks the warning may have caused are left in place; lifting them is
        a separate unlock.

        Raises:
            WarningNotFoundError: If the warning does not exist
        """
        warning = await self.warning_repository.get_by_id(warning_id)
        if warning is None:
            raise WarningNotFoundError(f"Warning {warning_id} not found")

        await self.warning_repository.delete(warning)
        await self.student_repository.decrement_warning_count(warning.roll)
        return warning

    async def list_for_account(self, roll: str, limit: int = 200) -> list[StudentWarning]:
        """Warnings for a roll, most recent first."""
        return await self.warning_repository.get_by_roll(roll, limit=limit)
