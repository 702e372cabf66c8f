"""Authorization gate for protected operations.

Checks run in a fixed order and stop at the first denial:

1. global lock flag (cache)
2. ``account_locked_until`` (database, always read)
3. per-student lock mirror (cache), which can only add denials
4. ``chatbot_locked_until`` (database), chatbot operations only

A cache outage skips steps 1 and 3; step 2 never depends on the cache.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.metrics import record_authorization_decision
from app.modules.moderation.cache import FastLockCache
from app.modules.moderation.repository import StudentRepository
from app.modules.moderation.schemas import (
    AuthorizationDecision,
    DecisionSource,
    OperationKind,
)

logger = logging.getLogger(__name__)

GLOBAL_LOCK_DENIAL = "global lock"
ACCOUNT_LOCK_DENIAL = "Account locked"
CHATBOT_LOCK_DENIAL = "Policy violation"


class AuthorizationGate:
    """Answers whether a student may perform a protected operation."""

    def __init__(self, session: AsyncSession, cache: FastLockCache):
        self.session = session
        self.cache = cache
        self.student_repository = StudentRepository(session)

    async def check(
        self,
        roll: str,
        operation: OperationKind = OperationKind.ACCOUNT,
        now: Optional[datetime] = None,
    ) -> AuthorizationDecision:
        """Decide whether ``roll`` may perform ``operation``.

        Database errors propagate; there is no safe answer without the
        authoritative store.
        """
        decision = await self._decide(roll, OperationKind(operation), now or datetime.utcnow())
        record_authorization_decision(decision.allowed, decision.source.value)
        if not decision.allowed:
            logger.debug(
                "Authorization denied",
                extra={
                    "roll": roll,
                    "operation": OperationKind(operation).value,
                    "source": decision.source.value,
                },
            )
        return decision

    is_authorized = check

    async def _decide(
        self,
        roll: str,
        operation: OperationKind,
        now: datetime,
    ) -> AuthorizationDecision:
        if await self.cache.is_global_locked():
            return AuthorizationDecision.deny(GLOBAL_LOCK_DENIAL, DecisionSource.GLOBAL_LOCK)

        student = await self.student_repository.get_by_roll(roll)
        if student is None:
            return AuthorizationDecision.deny("Student not found", DecisionSource.UNKNOWN_STUDENT)

        if student.is_account_locked(now):
            return AuthorizationDecision.deny(
                student.account_lock_reason or ACCOUNT_LOCK_DENIAL,
                DecisionSource.ACCOUNT_LOCK,
                until=student.account_locked_until,
            )

        cached_reason = await self.cache.get_account_lock(roll)
        if cached_reason:
            return AuthorizationDecision.deny(cached_reason, DecisionSource.CACHE_LOCK)

        if operation == OperationKind.CHATBOT and student.is_chatbot_restricted(now):
            return AuthorizationDecision.deny(
                student.chatbot_lock_reason or CHATBOT_LOCK_DENIAL,
                DecisionSource.CHATBOT_LOCK,
                until=student.chatbot_locked_until,
            )

        return AuthorizationDecision.allow()
