"""Live moderation events over Redis pub/sub.

Events are fire-and-forget UI hints. Publishing happens only after the
database commit they describe, and a failed publish never changes the
outcome of the operation.
"""

import json
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from redis.asyncio import Redis

from app.core.logging import log_warning
from app.core.metrics import record_cache_failure
from app.modules.moderation.cache import CACHE_ERRORS
from app.modules.moderation.schemas import utc_isoformat


logger = logging.getLogger(__name__)


class ModerationEvent(str, Enum):
    """Event names pushed to connected clients."""

    WARNING_UPDATED = "warning:updated"
    STUDENT_LOCKED = "student:locked"
    STUDENT_UNLOCKED = "student:unlocked"
    CHAT_LOCKED = "chat:locked"
    CHAT_UNLOCKED = "chat:unlocked"
    APPEAL_NEW = "appeal:new"
    APPEAL_UPDATED = "appeal:updated"


def _default(value: Any) -> Any:
    if isinstance(value, datetime):
        return utc_isoformat(value)
    return str(value)


class ModerationEventPublisher:
    """Publishes moderation events to a single channel."""

    def __init__(self, redis: Optional[Redis], channel: str):
        self.redis = redis
        self.channel = channel

    async def publish(self, event: ModerationEvent, payload: Optional[dict] = None) -> bool:
        """Publish an event.

        Returns:
            bool: True if the message was handed to Redis
        """
        if self.redis is None:
            return False

        message = json.dumps(
            {"event": event.value, "payload": payload or {}},
            default=_default,
        )
        try:
            await self.redis.publish(self.channel, message)
            return True
        except CACHE_ERRORS as e:
            record_cache_failure("publish")
            log_warning(
                logger,
                "Failed to publish moderation event",
                event=event.value,
                error=str(e),
            )
            return False
