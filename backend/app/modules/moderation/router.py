"""API router for student-facing moderation endpoints.

Status, access probes and appeal submission. These routes are not behind
the account gate: a locked student must still be able to see why and to
appeal.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from app.modules.auth.jwt import Identity, get_current_identity
from app.modules.moderation.appeals import AppealWorkflow
from app.modules.moderation.dependencies import (
    get_appeal_workflow,
    get_authorization_gate,
    get_moderation_engine,
)
from app.modules.moderation.engine import ModerationEngine
from app.modules.moderation.exceptions import (
    LockNotFoundError,
    RateLimitedError,
    StudentNotFoundError,
)
from app.modules.moderation.gate import AuthorizationGate
from app.modules.moderation.schemas import (
    AppealCreate,
    AppealResponse,
    AuthorizationDecision,
    ModerationStatus,
    OperationKind,
)

router = APIRouter(prefix="/moderation", tags=["moderation"])


@router.get("/me/status", response_model=ModerationStatus)
async def get_my_status(
    identity: Identity = Depends(get_current_identity),
    engine: ModerationEngine = Depends(get_moderation_engine),
):
    """Get warning count and active restrictions for the caller."""
    try:
        return await engine.get_status(identity.roll)
    except StudentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/me/access/{operation}", response_model=AuthorizationDecision)
async def check_my_access(
    operation: OperationKind,
    identity: Identity = Depends(get_current_identity),
    gate: AuthorizationGate = Depends(get_authorization_gate),
):
    """Probe the gate for the caller. A denial is returned as data."""
    return await gate.check(identity.roll, operation)


@router.post("/appeals", response_model=AppealResponse, status_code=status.HTTP_201_CREATED)
async def submit_appeal(
    request: AppealCreate,
    identity: Identity = Depends(get_current_identity),
    workflow: AppealWorkflow = Depends(get_appeal_workflow),
):
    """Submit an appeal against a lock."""
    try:
        appeal = await workflow.submit(identity.roll, request.message, request.lock_id)
        return AppealResponse.model_validate(appeal)
    except (StudentNotFoundError, LockNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except RateLimitedError as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "rate_limit_exceeded",
                "message": "Too many appeals, try later",
                "retry_after_seconds": e.retry_after,
            },
            headers={"Retry-After": str(e.retry_after)},
        )
