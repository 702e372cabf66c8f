"""Property-based tests for the account lock state machine.

**Property: Threshold Auto-Lock**
*For any* student reaching the warning threshold, the system SHALL lock the
account for the auto-lock duration, reset the counter to zero and write
exactly one lock record.

**Property: Lock Duration Contract**
*For any* manual lock, the duration SHALL be an integer in
[1, MODERATION_MAX_LOCK_SECONDS]; anything else is rejected before any
state changes.
"""

import asyncio
import json
import uuid
from datetime import datetime, timedelta

import pytest
from hypothesis import given, settings, strategies as st

from app.core.config import settings as app_settings
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
    ModerationValidationError,
    StudentNotFoundError,
    WarningNotFoundError,
)
from app.modules.moderation.gate import AuthorizationGate
from app.modules.moderation.models import Student, WarningSeverity
from app.modules.moderation.repository import StudentRepository
from app.modules.moderation.schemas import ModerationState

MAX_LOCK_SECONDS = app_settings.MODERATION_MAX_LOCK_SECONDS
THRESHOLD = app_settings.MODERATION_WARNING_THRESHOLD


def published_events(fake_redis) -> list[str]:
    return [json.loads(message)["event"] for _, message in fake_redis.published]


# ==================== Auto-Lock ====================

class TestThresholdAutoLock:
    """Reaching the threshold locks the account."""

    @pytest.mark.asyncio
    async def test_third_warning_locks_account(
        self, session, moderation_engine, fake_redis, student_factory
    ):
        await student_factory(session, "21CS100")
        before = datetime.utcnow()

        for i in range(THRESHOLD):
            await moderation_engine.record_violation(
                "21CS100", f"violation {i}", WarningSeverity.LOW, "admin-1"
            )

        student = await StudentRepository(session).get_by_roll("21CS100")
        assert student.warning_count == 0
        assert student.account_lock_reason == AUTO_LOCK_REASON
        assert student.account_locked_until >= before + timedelta(hours=24)
        assert student.account_locked_until <= datetime.utcnow() + timedelta(hours=24, seconds=5)

        locks = await moderation_engine.list_locks("21CS100")
        assert len(locks) == 1
        assert locks[0].reason == AUTO_LOCK_REASON
        assert locks[0].locked_by == "admin-1"

        assert await fake_redis.get("account-lock:21CS100") == AUTO_LOCK_REASON
        assert ModerationEvent.STUDENT_LOCKED.value in published_events(fake_redis)

    @given(count=st.integers(min_value=0, max_value=THRESHOLD - 1))
    @settings(max_examples=15, deadline=None)
    def test_below_threshold_never_locks(
        self, database_factory, student_factory, redis_factory, count
    ):
        async def scenario():
            async with database_factory() as maker:
                async with maker() as session:
                    await student_factory(session, "21CS101")
                    redis = redis_factory()
                    engine = ModerationEngine(
                        session,
                        FastLockCache(redis),
                        ModerationEventPublisher(redis, "moderation-events"),
                    )
                    for i in range(count):
                        await engine.record_violation(
                            "21CS101", f"violation {i}", WarningSeverity.MEDIUM, "admin-1"
                        )
                    student = await StudentRepository(session).get_by_roll("21CS101")
                    return student, await engine.list_locks("21CS101")

        student, locks = asyncio.run(scenario())

        assert student.warning_count == count
        assert student.account_locked_until is None
        assert locks == []

    @pytest.mark.asyncio
    async def test_evaluate_locks_once(self, session, moderation_engine, student_factory):
        """A second evaluation after the reset is a no-op."""
        await student_factory(session, "21CS102")
        repository = StudentRepository(session)
        for _ in range(THRESHOLD):
            await repository.increment_warning_count("21CS102")
        await session.commit()

        first = await moderation_engine.evaluate("21CS102")
        second = await moderation_engine.evaluate("21CS102")

        assert first is not None
        assert second is None
        assert len(await moderation_engine.list_locks("21CS102")) == 1

    @pytest.mark.asyncio
    async def test_removing_warning_keeps_lock(
        self, session, moderation_engine, student_factory
    ):
        await student_factory(session, "21CS103")
        warnings = [
            await moderation_engine.record_violation(
                "21CS103", "spam", WarningSeverity.LOW, "admin-1"
            )
            for _ in range(THRESHOLD)
        ]

        await moderation_engine.remove_warning(warnings[0].id)

        student = await StudentRepository(session).get_by_roll("21CS103")
        assert student.is_account_locked()
        assert student.warning_count == 0

    @pytest.mark.asyncio
    async def test_violation_for_unknown_roll_raises(self, moderation_engine):
        with pytest.raises(StudentNotFoundError):
            await moderation_engine.record_violation(
                "ghost", "spam", WarningSeverity.LOW, "admin-1"
            )

    @pytest.mark.asyncio
    async def test_remove_unknown_warning_raises(self, moderation_engine):
        with pytest.raises(WarningNotFoundError):
            await moderation_engine.remove_warning(uuid.uuid4())


# ==================== Manual Lock / Unlock ====================

class TestLockDurationContract:
    """Manual lock durations are validated before anything is written."""

    @given(duration=st.integers(min_value=1, max_value=MAX_LOCK_SECONDS))
    @settings(max_examples=100)
    def test_durations_in_range_accepted(self, duration):
        assert validate_lock_duration(duration, MAX_LOCK_SECONDS) == duration

    @given(
        duration=st.one_of(
            st.integers(max_value=0),
            st.integers(min_value=MAX_LOCK_SECONDS + 1),
        )
    )
    @settings(max_examples=100)
    def test_durations_out_of_range_rejected(self, duration):
        with pytest.raises(ModerationValidationError):
            validate_lock_duration(duration, MAX_LOCK_SECONDS)

    @given(duration=st.one_of(st.booleans(), st.floats(allow_nan=True), st.text(max_size=5)))
    @settings(max_examples=50)
    def test_non_integer_durations_rejected(self, duration):
        with pytest.raises(ModerationValidationError):
            validate_lock_duration(duration, MAX_LOCK_SECONDS)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration", [0, 31622400])
    async def test_boundary_rejections_write_nothing(
        self, session, moderation_engine, student_factory, duration
    ):
        await student_factory(session, "21CS200")

        with pytest.raises(ModerationValidationError):
            await moderation_engine.lock("21CS200", "exam cheating", duration, "admin-1")

        student = await StudentRepository(session).get_by_roll("21CS200")
        assert student.account_locked_until is None
        assert await moderation_engine.list_locks("21CS200") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration", [1, 31536000])
    async def test_boundary_durations_accepted(
        self, session, moderation_engine, student_factory, duration
    ):
        await student_factory(session, "21CS201")

        lock = await moderation_engine.lock("21CS201", "exam cheating", duration, "admin-1")

        expected = lock.created_at + timedelta(seconds=duration)
        assert abs((lock.expires_at - expected).total_seconds()) < 5

    @pytest.mark.asyncio
    async def test_blank_reason_rejected(self, session, moderation_engine, student_factory):
        await student_factory(session, "21CS202")

        with pytest.raises(ModerationValidationError):
            await moderation_engine.lock("21CS202", "   ", 60, "admin-1")


class TestManualLock:
    """Explicit admin locks and unlocks."""

    @pytest.mark.asyncio
    async def test_lock_mirrors_into_cache_with_duration_ttl(
        self, session, moderation_engine, fake_redis, student_factory
    ):
        await student_factory(session, "21CS300")

        await moderation_engine.lock("21CS300", "exam cheating", 3600, "admin-1")

        assert await fake_redis.get("account-lock:21CS300") == "exam cheating"
        assert 3590 < fake_redis.ttl("account-lock:21CS300") <= 3600
        assert published_events(fake_redis) == [ModerationEvent.STUDENT_LOCKED.value]

    @pytest.mark.asyncio
    async def test_lock_replaces_previous_expiry(
        self, session, moderation_engine, student_factory
    ):
        await student_factory(session, "21CS301")

        await moderation_engine.lock("21CS301", "first", 86400, "admin-1")
        await moderation_engine.lock("21CS301", "second", 60, "admin-1")

        student = await StudentRepository(session).get_by_roll("21CS301")
        assert student.account_lock_reason == "second"
        assert student.account_locked_until <= datetime.utcnow() + timedelta(seconds=65)

    @pytest.mark.asyncio
    async def test_lock_unknown_roll_raises(self, moderation_engine):
        with pytest.raises(StudentNotFoundError):
            await moderation_engine.lock("ghost", "spam", 60, "admin-1")

    @pytest.mark.asyncio
    async def test_unlock_twice_writes_two_audit_records(
        self, session, moderation_engine, fake_redis, student_factory
    ):
        await student_factory(session, "21CS302")
        await moderation_engine.lock("21CS302", "exam cheating", 3600, "admin-1")

        await moderation_engine.unlock("21CS302", "admin-2")
        await moderation_engine.unlock("21CS302", "admin-2")

        locks = await moderation_engine.list_locks("21CS302")
        unlocks = [lock for lock in locks if lock.reason == UNLOCK_REASON]
        assert len(unlocks) == 2
        assert all(lock.locked_by == "admin-2" for lock in unlocks)

        student = await StudentRepository(session).get_by_roll("21CS302")
        assert student.account_locked_until is None
        assert student.warning_count == 0
        assert await fake_redis.get("account-lock:21CS302") is None

    @pytest.mark.asyncio
    async def test_unlock_keeps_chatbot_restriction(
        self, session, moderation_engine, student_factory
    ):
        await student_factory(session, "21CS303")
        await moderation_engine.record_violation(
            "21CS303", "abusive", WarningSeverity.HIGH, "admin-1"
        )

        await moderation_engine.unlock("21CS303", "admin-1")

        student = await StudentRepository(session).get_by_roll("21CS303")
        assert student.is_chatbot_restricted()
        assert effective_state(student) == ModerationState.CHATBOT_RESTRICTED

    @pytest.mark.asyncio
    async def test_unlock_unknown_roll_raises(self, moderation_engine):
        with pytest.raises(StudentNotFoundError):
            await moderation_engine.unlock("ghost", "admin-1")


class TestGlobalLock:
    """Global lock touches every student and the cache flag."""

    @pytest.mark.asyncio
    async def test_global_lock_and_unlock(
        self, session, moderation_engine, fake_redis, student_factory
    ):
        for roll in ("21CS400", "21CS401", "21CS402"):
            await student_factory(session, roll)

        affected, until = await moderation_engine.global_lock("ops")

        assert affected == 3
        assert until > datetime.utcnow() + timedelta(days=364)
        assert await fake_redis.get("global:locked") is not None
        student = await StudentRepository(session).get_by_roll("21CS401")
        assert student.account_lock_reason == GLOBAL_LOCK_REASON

        cleared = await moderation_engine.global_unlock("ops")

        assert cleared == 3
        assert await fake_redis.get("global:locked") is None
        student = await StudentRepository(session).get_by_roll("21CS401")
        assert student.account_locked_until is None
        assert published_events(fake_redis) == [
            ModerationEvent.CHAT_LOCKED.value,
            ModerationEvent.CHAT_UNLOCKED.value,
        ]

    @pytest.mark.asyncio
    async def test_global_unlock_clears_individual_lock_mirrors(
        self, session, cache, moderation_engine, fake_redis, student_factory
    ):
        await student_factory(session, "21CS404")
        await moderation_engine.lock(
            "21CS404", "exam cheating", app_settings.MODERATION_MAX_LOCK_SECONDS, "admin-1"
        )
        await moderation_engine.global_lock("ops")

        await moderation_engine.global_unlock("ops")

        assert await fake_redis.get("account-lock:21CS404") is None
        status = await moderation_engine.get_status("21CS404")
        decision = await AuthorizationGate(session, cache).check("21CS404")
        assert status.state == ModerationState.ACTIVE
        assert decision.allowed is True

    @pytest.mark.asyncio
    async def test_global_lock_writes_no_lock_records(
        self, session, moderation_engine, student_factory
    ):
        await student_factory(session, "21CS403")

        await moderation_engine.global_lock("ops")

        assert await moderation_engine.list_locks("21CS403") == []


# ==================== Effective State ====================

class TestEffectiveState:
    """Account lock takes precedence over the chatbot restriction."""

    @given(
        account_offset=st.one_of(st.none(), st.integers(min_value=-86400, max_value=86400)),
        chatbot_offset=st.one_of(st.none(), st.integers(min_value=-86400, max_value=86400)),
    )
    @settings(max_examples=100)
    def test_state_follows_active_expiries(self, account_offset, chatbot_offset):
        now = datetime(2026, 1, 1, 12, 0, 0)
        student = Student(
            roll="21CS500",
            warning_count=0,
            account_locked_until=None if account_offset is None else now + timedelta(seconds=account_offset),
            chatbot_locked_until=None if chatbot_offset is None else now + timedelta(seconds=chatbot_offset),
        )

        state = effective_state(student, now)

        if account_offset is not None and account_offset > 0:
            assert state == ModerationState.ACCOUNT_LOCKED
        elif chatbot_offset is not None and chatbot_offset > 0:
            assert state == ModerationState.CHATBOT_RESTRICTED
        else:
            assert state == ModerationState.ACTIVE

    @pytest.mark.asyncio
    async def test_status_hides_expired_locks(
        self, session, moderation_engine, student_factory
    ):
        await student_factory(session, "21CS501")
        await StudentRepository(session).set_account_lock(
            "21CS501", datetime.utcnow() - timedelta(seconds=1), "old"
        )
        await session.commit()

        status = await moderation_engine.get_status("21CS501")

        assert status.state == ModerationState.ACTIVE
        assert status.account_locked_until is None
        assert status.account_lock_reason is None

    @pytest.mark.asyncio
    async def test_status_unknown_roll_raises(self, moderation_engine):
        with pytest.raises(StudentNotFoundError):
            await moderation_engine.get_status("ghost")
