from datetime import datetime

from fastapi import APIRouter, Depends, Header, Query, status

from app.api.deps import get_repository, get_scheduler
from app.core.security import get_current_user
from app.models.transfer import TransferPlan
from app.models.user import User
from app.repositories.scheduling import SchedulingRepository
from app.schemas.calendar import BlockDetail, CalendarData
from app.schemas.common import to_naive_utc
from app.schemas.scheduler import (
    ExecuteTransferRequest,
    PlanBlendRequest,
    PlanFermentationRequest,
    PlanResult,
    PlanTransferRequest,
    StartRequest,
    TransferRead,
    TransitionResult,
)
from app.schemas.tank import TankUtilizationRead
from app.services import calendar
from app.services.scheduler import TankScheduler

router = APIRouter(prefix="/scheduler", tags=["scheduler"])


@router.post("/plan-fermentation", response_model=PlanResult, status_code=status.HTTP_201_CREATED)
def plan_fermentation(
    payload: PlanFermentationRequest,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key", max_length=200),
    scheduler: TankScheduler = Depends(get_scheduler),
    current_user: User = Depends(get_current_user),
) -> PlanResult:
    return scheduler.plan_fermentation(current_user.username, payload, idempotency_key=idempotency_key)


@router.post("/plan-blend", response_model=PlanResult, status_code=status.HTTP_201_CREATED)
def plan_blend(
    payload: PlanBlendRequest,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key", max_length=200),
    scheduler: TankScheduler = Depends(get_scheduler),
    current_user: User = Depends(get_current_user),
) -> PlanResult:
    return scheduler.plan_blend(current_user.username, payload, idempotency_key=idempotency_key)


@router.post("/plan-transfer", response_model=TransferRead, status_code=status.HTTP_201_CREATED)
def plan_transfer(
    payload: PlanTransferRequest,
    scheduler: TankScheduler = Depends(get_scheduler),
    current_user: User = Depends(get_current_user),
) -> TransferPlan:
    return scheduler.plan_transfer(current_user.username, payload)


@router.post("/transfers/{transfer_id}/execute", response_model=TransitionResult)
def execute_transfer(
    transfer_id: int,
    payload: ExecuteTransferRequest | None = None,
    scheduler: TankScheduler = Depends(get_scheduler),
    current_user: User = Depends(get_current_user),
) -> TransitionResult:
    payload = payload or ExecuteTransferRequest()
    return scheduler.execute_transfer(
        current_user.username,
        transfer_id,
        executed_at=payload.executed_at,
        phase=payload.phase,
    )


@router.post("/lot/{lot_id}/start", response_model=TransitionResult)
def start_lot(
    lot_id: int,
    payload: StartRequest | None = None,
    scheduler: TankScheduler = Depends(get_scheduler),
    current_user: User = Depends(get_current_user),
) -> TransitionResult:
    started_at = payload.started_at if payload else None
    return scheduler.start_lot(current_user.username, lot_id, started_at=started_at)


@router.get("/calendar", response_model=CalendarData)
def get_calendar(
    start: datetime = Query(),
    end: datetime = Query(),
    repo: SchedulingRepository = Depends(get_repository),
) -> CalendarData:
    return calendar.generate_calendar_data(repo, to_naive_utc(start), to_naive_utc(end))


@router.get("/block/{assignment_id}", response_model=BlockDetail)
def get_block(assignment_id: int, repo: SchedulingRepository = Depends(get_repository)) -> BlockDetail:
    return calendar.get_block_detail(repo, assignment_id)


@router.get("/tanks/{tank_id}/utilization", response_model=TankUtilizationRead)
def get_tank_utilization(
    tank_id: int,
    start: datetime = Query(),
    end: datetime = Query(),
    repo: SchedulingRepository = Depends(get_repository),
) -> TankUtilizationRead:
    return calendar.tank_utilization(repo, tank_id, to_naive_utc(start), to_naive_utc(end))
