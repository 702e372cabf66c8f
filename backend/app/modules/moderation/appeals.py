"""Appeal workflow: students ask for review, admins resolve."""

import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import log_info
from app.core.metrics import record_moderation_action
from app.modules.moderation.cache import FastLockCache
from app.modules.moderation.engine import ModerationEngine
from app.modules.moderation.events import ModerationEvent, ModerationEventPublisher
from app.modules.moderation.exceptions import (
    AppealNotFoundError,
    LockNotFoundError,
    RateLimitedError,
    StudentNotFoundError,
)
from app.modules.moderation.models import Appeal, AppealStatus
from app.modules.moderation.repository import (
    AppealRepository,
    LockRepository,
    StudentRepository,
)
from app.modules.moderation.schemas import AppealAction

logger = logging.getLogger(__name__)


class AppealWorkflow:
    """Submits and resolves appeals.

    Submissions are limited per roll over a trailing window kept in the
    cache; with the cache down the limit is not enforced.
    """

    RATE_LIMIT = settings.APPEAL_RATE_LIMIT
    RATE_WINDOW_SECONDS = settings.APPEAL_RATE_WINDOW_SECONDS

    def __init__(
        self,
        session: AsyncSession,
        cache: FastLockCache,
        events: ModerationEventPublisher,
        engine: Optional[ModerationEngine] = None,
    ):
        self.session = session
        self.cache = cache
        self.events = events
        self.engine = engine or ModerationEngine(session, cache, events)
        self.appeal_repository = AppealRepository(session)
        self.student_repository = StudentRepository(session)
        self.lock_repository = LockRepository(session)

    async def submit(
        self,
        roll: str,
        message: str,
        lock_id: Optional[uuid.UUID] = None,
    ) -> Appeal:
        """Open an appeal for ``roll``.

        Raises:
            StudentNotFoundError: If the roll does not exist
            LockNotFoundError: If ``lock_id`` is not one of the student's locks
            RateLimitedError: If the trailing-window limit is exhausted
        """
        if await self.student_repository.get_by_roll(roll) is None:
            raise StudentNotFoundError(roll)

        if lock_id is not None:
            lock = await self.lock_repository.get_by_id(lock_id)
            if lock is None or lock.roll != roll:
                raise LockNotFoundError(f"Lock {lock_id} not found")

        allowed, retry_after = await self.cache.hit_sliding_window(
            roll,
            limit=self.RATE_LIMIT,
            window_seconds=self.RATE_WINDOW_SECONDS,
        )
        if not allowed:
            raise RateLimitedError(retry_after)

        appeal = await self.appeal_repository.create(roll=roll, message=message, lock_id=lock_id)
        await self.session.commit()

        record_moderation_action("appeal_submitted")
        log_info(logger, "Appeal submitted", roll=roll, appeal_id=str(appeal.id))
        await self.events.publish(
            ModerationEvent.APPEAL_NEW,
            {"roll": roll, "id": appeal.id, "message": appeal.message},
        )
        return appeal

    async def respond(
        self,
        appeal_id: uuid.UUID,
        action: AppealAction,
        response_text: str,
        issuer: str,
    ) -> Appeal:
        """Resolve an appeal.

        ``close`` and ``review`` move the status. ``unlock`` lifts the
        student's account lock and leaves the appeal status as it was.

        Raises:
            AppealNotFoundError: If the appeal does not exist
        """
        appeal = await self.appeal_repository.get_by_id(appeal_id)
        if appeal is None:
            raise AppealNotFoundError(f"Appeal {appeal_id} not found")

        action = AppealAction(action)
        if action == AppealAction.UNLOCK:
            await self.engine.unlock(appeal.roll, issuer)

        if action == AppealAction.CLOSE:
            status = AppealStatus.CLOSED
        elif action == AppealAction.REVIEW:
            status = AppealStatus.IN_REVIEW
        else:
            status = AppealStatus(appeal.status)

        appeal = await self.appeal_repository.set_response(appeal, status, response_text or "")
        await self.session.commit()

        record_moderation_action("appeal_resolved")
        log_info(
            logger,
            "Appeal answered",
            appeal_id=str(appeal_id),
            action=action.value,
            issuer=issuer,
        )
        await self.events.publish(
            ModerationEvent.APPEAL_UPDATED,
            {"roll": appeal.roll, "id": appeal.id, "status": appeal.status},
        )
        return appeal

    async def list_appeals(
        self,
        status: Optional[AppealStatus] = None,
        limit: int = 500,
    ) -> list[Appeal]:
        return await self.appeal_repository.get_all(status=status, limit=limit)
