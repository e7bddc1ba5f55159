from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_repository
from app.core.locks import LockGateway, batch_create_lock_key, get_lock_gateway
from app.core.security import get_current_user
from app.models.batch import Batch, BatchTimeline, GravityReading
from app.models.enums import BatchStatus
from app.models.user import User
from app.repositories.scheduling import SchedulingRepository
from app.schemas.batch import (
    BatchCreate,
    BatchRead,
    CancelBatchRequest,
    FermentationTrendRead,
    GravityReadingCreate,
    GravityReadingRead,
    MarkReadyRequest,
    StartBrewingRequest,
    TimelineEntryRead,
)
from app.services import lifecycle
from app.services.fermentation import build_fermentation_trend
from app.services.timeline import list_events

router = APIRouter(prefix="/batches", tags=["batches"])


@router.post("", response_model=BatchRead, status_code=status.HTTP_201_CREATED)
def create_batch(
    payload: BatchCreate,
    repo: SchedulingRepository = Depends(get_repository),
    locks: LockGateway = Depends(get_lock_gateway),
    current_user: User = Depends(get_current_user),
) -> Batch:
    return locks.with_lock(
        batch_create_lock_key(repo.tenant_id),
        lambda: lifecycle.create_batch(repo, current_user.username, payload),
    )


@router.get("", response_model=list[BatchRead])
def list_batches(
    batch_status: BatchStatus | None = Query(default=None, alias="status"),
    repo: SchedulingRepository = Depends(get_repository),
) -> list[Batch]:
    return repo.list_batches(status=batch_status.value if batch_status else None)


@router.get("/{batch_id}", response_model=BatchRead)
def get_batch(batch_id: int, repo: SchedulingRepository = Depends(get_repository)) -> Batch:
    return repo.get_batch(batch_id)


@router.post("/{batch_id}/start-brewing", response_model=BatchRead)
def start_brewing(
    batch_id: int,
    payload: StartBrewingRequest | None = None,
    repo: SchedulingRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
) -> Batch:
    payload = payload or StartBrewingRequest()
    return lifecycle.start_brewing(
        repo,
        batch_id,
        current_user.username,
        original_gravity=payload.original_gravity,
        brewed_at=payload.brewed_at,
    )


@router.post("/{batch_id}/start-fermentation", response_model=BatchRead)
def start_fermentation(
    batch_id: int,
    repo: SchedulingRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
) -> Batch:
    return lifecycle.advance_batch(repo, batch_id, BatchStatus.FERMENTING, current_user.username)


@router.post("/{batch_id}/start-conditioning", response_model=BatchRead)
def start_conditioning(
    batch_id: int,
    repo: SchedulingRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
) -> Batch:
    return lifecycle.advance_batch(repo, batch_id, BatchStatus.CONDITIONING, current_user.username)


@router.post("/{batch_id}/start-packaging", response_model=BatchRead)
def start_packaging(
    batch_id: int,
    repo: SchedulingRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
) -> Batch:
    return lifecycle.advance_batch(repo, batch_id, BatchStatus.PACKAGING, current_user.username)


@router.post("/{batch_id}/mark-ready", response_model=BatchRead)
def mark_ready(
    batch_id: int,
    payload: MarkReadyRequest | None = None,
    repo: SchedulingRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
) -> Batch:
    final_gravity = payload.final_gravity if payload else None
    return lifecycle.mark_ready(repo, batch_id, current_user.username, final_gravity=final_gravity)


@router.post("/{batch_id}/complete", response_model=BatchRead)
def complete_batch(
    batch_id: int,
    repo: SchedulingRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
) -> Batch:
    return lifecycle.advance_batch(repo, batch_id, BatchStatus.PACKAGED, current_user.username)


@router.post("/{batch_id}/cancel", response_model=BatchRead)
def cancel_batch(
    batch_id: int,
    payload: CancelBatchRequest,
    repo: SchedulingRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
) -> Batch:
    return lifecycle.cancel_batch(repo, batch_id, current_user.username, payload.reason)


@router.post("/{batch_id}/readings", response_model=GravityReadingRead, status_code=status.HTTP_201_CREATED)
def add_reading(
    batch_id: int,
    payload: GravityReadingCreate,
    repo: SchedulingRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
) -> GravityReading:
    return lifecycle.add_gravity_reading(repo, batch_id, current_user.username, payload)


@router.get("/{batch_id}/readings", response_model=list[GravityReadingRead])
def list_readings(batch_id: int, repo: SchedulingRepository = Depends(get_repository)) -> list[GravityReading]:
    batch = repo.get_batch(batch_id)
    return repo.readings_for_batch(batch.id)


@router.get("/{batch_id}/fermentation/trend", response_model=FermentationTrendRead)
def get_fermentation_trend(
    batch_id: int,
    repo: SchedulingRepository = Depends(get_repository),
) -> FermentationTrendRead:
    return build_fermentation_trend(repo, batch_id)


@router.get("/{batch_id}/timeline", response_model=list[TimelineEntryRead])
def get_timeline(batch_id: int, repo: SchedulingRepository = Depends(get_repository)) -> list[BatchTimeline]:
    return list_events(repo, batch_id)
