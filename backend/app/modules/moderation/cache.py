"""Redis-backed lock mirror and counters for the moderation core.

Nothing stored here is authoritative. Every call is best-effort: a Redis
failure is logged, counted and turned into the "nothing cached" answer so
callers fall back to the database.
"""

import asyncio
import logging
import math
import time
import uuid
from typing import Any, Awaitable, Callable, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.core.logging import log_warning
from app.core.metrics import record_cache_failure
from app.modules.moderation.exceptions import DependencyUnavailableError

logger = logging.getLogger(__name__)

ACCOUNT_LOCK_KEY = "account-lock:{roll}"
GLOBAL_LOCK_KEY = "global:locked"
APPEAL_RATE_KEY = "appeal-rate:{roll}"

CACHE_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


class FastLockCache:
    """Cache mirror of account locks plus the global lock flag.

    Args:
        redis: Redis client, or None when no cache is configured
        clock: Source of epoch seconds for the sliding windows
    """

    def __init__(
        self,
        redis: Optional[Redis],
        clock: Callable[[], float] = time.time,
    ):
        self.redis = redis
        self.clock = clock

    @property
    def enabled(self) -> bool:
        return self.redis is not None

    async def _execute(
        self,
        operation: str,
        command: Callable[[], Awaitable[Any]],
        default: Any = None,
    ) -> Any:
        if self.redis is None:
            return default
        try:
            return await command()
        except CACHE_ERRORS as e:
            self._report(DependencyUnavailableError(operation, e))
            return default

    def _report(self, error: DependencyUnavailableError) -> None:
        record_cache_failure(error.operation)
        log_warning(
            logger,
            "Cache operation failed, continuing without cache",
            operation=error.operation,
            error=str(error.cause),
        )

    # ==================== Account lock mirror ====================

    async def set_account_lock(self, roll: str, reason: str, ttl_seconds: int) -> bool:
        """Mirror an account lock with a TTL equal to its remaining duration."""
        if ttl_seconds <= 0:
            return await self.clear_account_lock(roll)
        key = ACCOUNT_LOCK_KEY.format(roll=roll)
        result = await self._execute(
            "set_account_lock",
            lambda: self.redis.set(key, reason or "locked", ex=ttl_seconds),
            default=False,
        )
        return bool(result)

    async def get_account_lock(self, roll: str) -> Optional[str]:
        """Get the mirrored lock reason, or None if absent or unreachable."""
        key = ACCOUNT_LOCK_KEY.format(roll=roll)
        return await self._execute(
            "get_account_lock",
            lambda: self.redis.get(key),
        )

    async def clear_account_lock(self, roll: str) -> bool:
        key = ACCOUNT_LOCK_KEY.format(roll=roll)
        result = await self._execute(
            "clear_account_lock",
            lambda: self.redis.delete(key),
            default=None,
        )
        return result is not None

    async def clear_all_account_locks(self) -> bool:
        """Drop every mirrored account lock."""
        pattern = ACCOUNT_LOCK_KEY.format(roll="*")

        async def command() -> int:
            removed = 0
            async for key in self.redis.scan_iter(match=pattern):
                removed += await self.redis.delete(key)
            return removed

        result = await self._execute("clear_all_account_locks", command)
        return result is not None

    # ==================== Global lock flag ====================

    async def set_global_lock(self, ttl_seconds: int) -> bool:
        result = await self._execute(
            "set_global_lock",
            lambda: self.redis.set(GLOBAL_LOCK_KEY, "1", ex=ttl_seconds),
            default=False,
        )
        return bool(result)

    async def is_global_locked(self) -> bool:
        value = await self._execute(
            "get_global_lock",
            lambda: self.redis.get(GLOBAL_LOCK_KEY),
        )
        return value is not None

    async def clear_global_lock(self) -> bool:
        result = await self._execute(
            "clear_global_lock",
            lambda: self.redis.delete(GLOBAL_LOCK_KEY),
            default=None,
        )
        return result is not None

    # ==================== Sliding window counters ====================

    async def hit_sliding_window(
        self,
        roll: str,
        limit: int,
        window_seconds: int,
    ) -> tuple[bool, int]:
        """Count one appeal in the trailing window if the limit allows it.

        The attempt is added and counted in one MULTI, so concurrent callers
        each see a distinct count. An attempt over the limit is removed
        again and is not recorded. Fails open when Redis is down.

        Returns:
            tuple[bool, int]: (is_allowed, retry_after_seconds)
        """
        key = APPEAL_RATE_KEY.format(roll=roll)

        async def command() -> tuple[bool, int]:
            now = self.clock()
            window_start = now - window_seconds
            member = f"{now}:{uuid.uuid4().hex}"

            pipe = self.redis.pipeline(transaction=True)
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zadd(key, {member: now})
            pipe.zcard(key)
            pipe.zrange(key, 0, 0, withscores=True)
            pipe.expire(key, window_seconds)
            _, _, count, oldest, _ = await pipe.execute()

            if count > limit:
                await self.redis.zrem(key, member)
                oldest_score = oldest[0][1] if oldest else now
                retry_after = max(1, math.ceil(oldest_score + window_seconds - now))
                return False, retry_after

            return True, 0

        return await self._execute(
            "appeal_rate_window",
            command,
            default=(True, 0),
        )
