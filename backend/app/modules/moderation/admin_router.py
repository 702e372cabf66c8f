"""API router for admin moderation endpoints.

Warnings, locks, global lock and appeal resolution. Admin routes are not
behind the account gate so a global lock can always be lifted.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.modules.auth.jwt import Identity, require_admin, require_admin_api_key
from app.modules.moderation.appeals import AppealWorkflow
from app.modules.moderation.dependencies import get_appeal_workflow, get_moderation_engine
from app.modules.moderation.engine import ModerationEngine
from app.modules.moderation.exceptions import (
    AppealNotFoundError,
    ModerationValidationError,
    StudentNotFoundError,
    WarningNotFoundError,
)
from app.modules.moderation.models import AppealStatus
from app.modules.moderation.schemas import (
    AppealListResponse,
    AppealRespond,
    AppealResponse,
    GlobalLockResponse,
    LockCreate,
    LockListResponse,
    LockResponse,
    UnlockRequest,
    UnlockResponse,
    WarningCreate,
    WarningListResponse,
    WarningResponse,
)

router = APIRouter(prefix="/admin/moderation", tags=["admin-moderation"])
ops_router = APIRouter(prefix="/ops", tags=["ops"])


# ==================== Warnings ====================

@router.post("/warnings", response_model=WarningResponse, status_code=status.HTTP_201_CREATED)
async def record_warning(
    request: WarningCreate,
    admin: Identity = Depends(require_admin),
    engine: ModerationEngine = Depends(get_moderation_engine),
):
    """Record a violation; may restrict the chatbot or auto-lock the account."""
    try:
        warning = await engine.record_violation(
            roll=request.roll,
            reason=request.reason,
            severity=request.severity,
            issuer=admin.roll,
            expires_at=request.expires_at,
        )
        return WarningResponse.model_validate(warning)
    except StudentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/warnings/{roll}", response_model=WarningListResponse)
async def list_warnings(
    roll: str,
    admin: Identity = Depends(require_admin),
    engine: ModerationEngine = Depends(get_moderation_engine),
):
    """List warnings for a student, most recent first."""
    warnings = await engine.list_warnings(roll)
    return WarningListResponse(
        warnings=[WarningResponse.model_validate(w) for w in warnings],
        total=len(warnings),
    )


@router.delete("/warnings/{warning_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_warning(
    warning_id: uuid.UUID,
    admin: Identity = Depends(require_admin),
    engine: ModerationEngine = Depends(get_moderation_engine),
):
    """Remove a warning. Any lock it caused stays in place."""
    try:
        await engine.remove_warning(warning_id)
    except WarningNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# ==================== Locks ====================

@router.post("/locks", response_model=LockResponse)
async def lock_student(
    request: LockCreate,
    admin: Identity = Depends(require_admin),
    engine: ModerationEngine = Depends(get_moderation_engine),
):
    """Lock a student account for a number of seconds."""
    try:
        lock = await engine.lock(
            roll=request.roll,
            reason=request.reason,
            duration_seconds=request.seconds,
            issuer=admin.roll,
        )
        return LockResponse.model_validate(lock)
    except ModerationValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StudentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/unlock", response_model=UnlockResponse)
async def unlock_student(
    request: UnlockRequest,
    admin: Identity = Depends(require_admin),
    engine: ModerationEngine = Depends(get_moderation_engine),
):
    """Unlock a student account and reset its warnings."""
    try:
        await engine.unlock(request.roll, admin.roll)
        return UnlockResponse(roll=request.roll)
    except StudentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/locks/{roll}", response_model=LockListResponse)
async def list_locks(
    roll: str,
    admin: Identity = Depends(require_admin),
    engine: ModerationEngine = Depends(get_moderation_engine),
):
    """Lock and unlock history for a student."""
    locks = await engine.list_locks(roll)
    return LockListResponse(
        locks=[LockResponse.model_validate(lock) for lock in locks],
        total=len(locks),
    )


@router.post("/global-lock", response_model=GlobalLockResponse)
async def global_lock(
    admin: Identity = Depends(require_admin),
    engine: ModerationEngine = Depends(get_moderation_engine),
):
    """Lock every student account."""
    affected, until = await engine.global_lock(admin.roll)
    return GlobalLockResponse(locked=True, affected=affected, locked_until=until)


@router.post("/global-unlock", response_model=GlobalLockResponse)
async def global_unlock(
    admin: Identity = Depends(require_admin),
    engine: ModerationEngine = Depends(get_moderation_engine),
):
    """Lift the global lock and every account-level lock."""
    affected = await engine.global_unlock(admin.roll)
    return GlobalLockResponse(locked=False, affected=affected)


# ==================== Appeals ====================

@router.get("/appeals", response_model=AppealListResponse)
async def list_appeals(
    status_filter: Optional[AppealStatus] = Query(None, alias="status"),
    admin: Identity = Depends(require_admin),
    workflow: AppealWorkflow = Depends(get_appeal_workflow),
):
    """List appeals, most recent first."""
    appeals = await workflow.list_appeals(status=status_filter)
    return AppealListResponse(
        appeals=[AppealResponse.model_validate(a) for a in appeals],
        total=len(appeals),
    )


@router.post("/appeals/{appeal_id}/respond", response_model=AppealResponse)
async def respond_to_appeal(
    appeal_id: uuid.UUID,
    request: AppealRespond,
    admin: Identity = Depends(require_admin),
    workflow: AppealWorkflow = Depends(get_appeal_workflow),
):
    """Close, review, or unlock from an appeal."""
    try:
        appeal = await workflow.respond(appeal_id, request.action, request.response, admin.roll)
        return AppealResponse.model_validate(appeal)
    except (AppealNotFoundError, StudentNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# ==================== Ops (API key) ====================

@ops_router.post("/global-lock", response_model=GlobalLockResponse)
async def ops_global_lock(
    caller: Identity = Depends(require_admin_api_key),
    engine: ModerationEngine = Depends(get_moderation_engine),
):
    """Global lock for server-to-server automation."""
    affected, until = await engine.global_lock(caller.roll)
    return GlobalLockResponse(locked=True, affected=affected, locked_until=until)
