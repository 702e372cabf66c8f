"""Core module for configuration and utilities."""

from app.core.config import settings
from app.core.database import Base, get_db, get_session
from app.core.redis import get_redis, redis_client

__all__ = [
    "settings",
    "Base",
    "get_db",
    "get_session",
    "get_redis",
    "redis_client",
]
