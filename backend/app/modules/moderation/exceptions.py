"""Exceptions raised by the moderation core."""

from typing import Optional


class ModerationError(Exception):
    """Base exception for moderation errors."""
    pass


class NotFoundError(ModerationError):
    """Exception raised when a referenced record does not exist."""
    pass


class StudentNotFoundError(NotFoundError):
    """Exception raised when a student roll is unknown."""

    def __init__(self, roll: str):
        self.roll = roll
        super().__init__(f"Student {roll} not found")


class WarningNotFoundError(NotFoundError):
    """Exception raised when a warning id is unknown."""
    pass


class LockNotFoundError(NotFoundError):
    """Exception raised when a lock id is unknown."""
    pass


class AppealNotFoundError(NotFoundError):
    """Exception raised when an appeal id is unknown."""
    pass


class ModerationValidationError(ModerationError):
    """Exception raised when a parameter is outside its contract."""
    pass


class RateLimitedError(ModerationError):
    """Exception raised when appeal submissions exceed the window limit."""

    def __init__(self, retry_after: int, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(message or f"Too many appeals, retry in {retry_after}s")


class DependencyUnavailableError(ModerationError):
    """Cache failure as reported by the cache wrapper.

    Built from the Redis error and handed to the failure log and counter;
    never raised to callers.
    """

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Dependency unavailable during {operation}: {cause}")
