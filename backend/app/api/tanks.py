from datetime import datetime

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_repository
from app.models.enums import TankStatus, TankType
from app.models.tank import Tank
from app.repositories.scheduling import SchedulingRepository
from app.schemas.common import to_naive_utc
from app.schemas.tank import (
    AvailabilityResult,
    BatchAvailabilityRequest,
    BatchAvailabilityResult,
    TankCreate,
    TankRead,
)
from app.services import registry
from app.services.availability import check_availability, check_batch_availability, find_available_tanks

router = APIRouter(prefix="/tanks", tags=["tanks"])


@router.get("/availability", response_model=AvailabilityResult)
def get_availability(
    tank_id: int = Query(gt=0),
    start: datetime = Query(),
    end: datetime = Query(),
    repo: SchedulingRepository = Depends(get_repository),
) -> AvailabilityResult:
    return check_availability(repo, tank_id, to_naive_utc(start), to_naive_utc(end))


@router.get("/available", response_model=list[TankRead])
def get_available_tanks(
    start: datetime = Query(),
    end: datetime = Query(),
    min_volume: float | None = Query(default=None, gt=0),
    type: TankType | None = Query(default=None),
    repo: SchedulingRepository = Depends(get_repository),
) -> list[Tank]:
    return find_available_tanks(
        repo,
        to_naive_utc(start),
        to_naive_utc(end),
        min_volume=min_volume,
        tank_type=type.value if type else None,
    )


@router.post("/availability", response_model=BatchAvailabilityResult)
def post_batch_availability(
    payload: BatchAvailabilityRequest,
    repo: SchedulingRepository = Depends(get_repository),
) -> BatchAvailabilityResult:
    return check_batch_availability(repo, payload.tank_ids, payload.start, payload.end)


@router.post("", response_model=TankRead, status_code=status.HTTP_201_CREATED)
def create_tank(payload: TankCreate, repo: SchedulingRepository = Depends(get_repository)) -> Tank:
    return registry.create_tank(repo, payload)


@router.get("", response_model=list[TankRead])
def list_tanks(
    type: TankType | None = Query(default=None),
    tank_status: TankStatus | None = Query(default=None, alias="status"),
    repo: SchedulingRepository = Depends(get_repository),
) -> list[Tank]:
    return repo.list_tanks(
        tank_type=type.value if type else None,
        status=tank_status.value if tank_status else None,
    )


@router.get("/{tank_id}", response_model=TankRead)
def get_tank(tank_id: int, repo: SchedulingRepository = Depends(get_repository)) -> Tank:
    return repo.get_tank(tank_id)


@router.post("/{tank_id}/cip/complete", response_model=TankRead)
def complete_cip(tank_id: int, repo: SchedulingRepository = Depends(get_repository)) -> Tank:
    return registry.complete_cip(repo, tank_id)
