"""FastAPI dependencies wiring the moderation core to app resources."""

from typing import Callable

from fastapi import Depends, HTTPException, status
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_session
from app.core.redis import get_redis
from app.modules.auth.jwt import Identity, get_current_identity
from app.modules.moderation.appeals import AppealWorkflow
from app.modules.moderation.cache import FastLockCache
from app.modules.moderation.engine import ModerationEngine
from app.modules.moderation.events import ModerationEventPublisher
from app.modules.moderation.gate import AuthorizationGate
from app.modules.moderation.schemas import DecisionSource, OperationKind, utc_isoformat


def get_lock_cache(redis: Redis = Depends(get_redis)) -> FastLockCache:
    return FastLockCache(redis)


def get_event_publisher(redis: Redis = Depends(get_redis)) -> ModerationEventPublisher:
    return ModerationEventPublisher(redis, settings.MODERATION_EVENTS_CHANNEL)


def get_moderation_engine(
    session: AsyncSession = Depends(get_session),
    cache: FastLockCache = Depends(get_lock_cache),
    events: ModerationEventPublisher = Depends(get_event_publisher),
) -> ModerationEngine:
    return ModerationEngine(session, cache, events)


def get_authorization_gate(
    session: AsyncSession = Depends(get_session),
    cache: FastLockCache = Depends(get_lock_cache),
) -> AuthorizationGate:
    return AuthorizationGate(session, cache)


def get_appeal_workflow(
    session: AsyncSession = Depends(get_session),
    cache: FastLockCache = Depends(get_lock_cache),
    events: ModerationEventPublisher = Depends(get_event_publisher),
    engine: ModerationEngine = Depends(get_moderation_engine),
) -> AppealWorkflow:
    return AppealWorkflow(session, cache, events, engine=engine)


def require_authorized(operation: OperationKind = OperationKind.ACCOUNT) -> Callable:
    """Build a dependency that rejects locked students with 403.

    Usage:
        @router.post("/chat")
        async def chat(identity: Identity = Depends(require_authorized(OperationKind.CHATBOT))):
            ...
    """

    async def dependency(
        identity: Identity = Depends(get_current_identity),
        gate: AuthorizationGate = Depends(get_authorization_gate),
    ) -> Identity:
        decision = await gate.check(identity.roll, operation)
        if not decision.allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "Chatbot access locked"
                    if decision.source == DecisionSource.CHATBOT_LOCK
                    else "Account locked",
                    "reason": decision.reason,
                    "locked_until": utc_isoformat(decision.until),
                    "source": decision.source.value,
                },
            )
        return identity

    return dependency
