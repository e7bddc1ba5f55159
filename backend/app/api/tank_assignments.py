from fastapi import APIRouter, Depends

from app.api.deps import get_scheduler
from app.core.security import get_current_user
from app.models.enums import Phase
from app.models.user import User
from app.schemas.scheduler import CompleteAssignmentRequest, StartRequest, TransitionResult
from app.services.scheduler import TankScheduler

router = APIRouter(prefix="/tank-assignments", tags=["tank-assignments"])


@router.post("/{assignment_id}/start", response_model=TransitionResult)
def start_assignment(
    assignment_id: int,
    payload: StartRequest | None = None,
    scheduler: TankScheduler = Depends(get_scheduler),
    current_user: User = Depends(get_current_user),
) -> TransitionResult:
    started_at = payload.started_at if payload else None
    return scheduler.start_assignment(current_user.username, assignment_id, started_at=started_at)


@router.post("/{assignment_id}/complete", response_model=TransitionResult)
def complete_assignment(
    assignment_id: int,
    payload: CompleteAssignmentRequest | None = None,
    scheduler: TankScheduler = Depends(get_scheduler),
    current_user: User = Depends(get_current_user),
) -> TransitionResult:
    payload = payload or CompleteAssignmentRequest()
    return scheduler.complete_assignment(
        current_user.username,
        assignment_id,
        release_tank=payload.release_tank,
        ended_at=payload.ended_at,
    )


@router.post("/{assignment_id}/mark-bright", response_model=TransitionResult)
def mark_bright(
    assignment_id: int,
    scheduler: TankScheduler = Depends(get_scheduler),
    current_user: User = Depends(get_current_user),
) -> TransitionResult:
    return scheduler.mark_phase(current_user.username, assignment_id, Phase.BRIGHT)


@router.post("/{assignment_id}/start-packaging", response_model=TransitionResult)
def start_packaging(
    assignment_id: int,
    scheduler: TankScheduler = Depends(get_scheduler),
    current_user: User = Depends(get_current_user),
) -> TransitionResult:
    return scheduler.mark_phase(current_user.username, assignment_id, Phase.PACKAGING)
