"""Moderation module: warnings, account locks, authorization gate and appeals."""

from app.modules.moderation.appeals import AppealWorkflow
from app.modules.moderation.cache import FastLockCache
from app.modules.moderation.engine import (
    AUTO_LOCK_REASON,
    GLOBAL_LOCK_REASON,
    UNLOCK_REASON,
    ModerationEngine,
    effective_state,
    validate_lock_duration,
)
from app.modules.moderation.events import ModerationEvent, ModerationEventPublisher
from app.modules.moderation.exceptions import (
    AppealNotFoundError,
    DependencyUnavailableError,
    LockNotFoundError,
    ModerationError,
    ModerationValidationError,
    NotFoundError,
    RateLimitedError,
    StudentNotFoundError,
    WarningNotFoundError,
)
from app.modules.moderation.gate import AuthorizationGate
from app.modules.moderation.ledger import WarningLedger
from app.modules.moderation.models import (
    AccountLock,
    Appeal,
    AppealStatus,
    Student,
    StudentWarning,
    WarningSeverity,
)
from app.modules.moderation.schemas import (
    AppealAction,
    AuthorizationDecision,
    DecisionSource,
    ModerationState,
    OperationKind,
)

__all__ = [
    # Models
    "AccountLock",
    "Appeal",
    "AppealStatus",
    "Student",
    "StudentWarning",
    "WarningSeverity",
    # Core
    "AppealWorkflow",
    "AuthorizationGate",
    "FastLockCache",
    "ModerationEngine",
    "ModerationEvent",
    "ModerationEventPublisher",
    "WarningLedger",
    "effective_state",
    "validate_lock_duration",
    "AUTO_LOCK_REASON",
    "GLOBAL_LOCK_REASON",
    "UNLOCK_REASON",
    # Schemas
    "AppealAction",
    "AuthorizationDecision",
    "DecisionSource",
    "ModerationState",
    "OperationKind",
    # Exceptions
    "AppealNotFoundError",
    "DependencyUnavailableError",
    "LockNotFoundError",
    "ModerationError",
    "ModerationValidationError",
    "NotFoundError",
    "RateLimitedError",
    "StudentNotFoundError",
    "WarningNotFoundError",
]
