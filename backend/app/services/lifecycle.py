"""Batch and lot state machine.

Batches move strictly forward along ``BATCH_FLOW`` one step at a time and may
be cancelled from any non-terminal state. Every cross-entity write that a
scheduling step needs (assignment, tank, lot and batch together) goes through
``apply_transition`` so the rules live in one place.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from app.core.errors import IncompatibleBatchState, InvalidTransition, ValidationError
from app.models.batch import Batch, GravityReading
from app.models.enums import (
    BATCH_FLOW,
    TERMINAL_BATCH_STATUSES,
    AssignmentStatus,
    BatchStatus,
    Phase,
    TankStatus,
    TimelineEventType,
)
from app.models.lot import Lot, LotBatch
from app.models.tank import Tank
from app.models.tank_assignment import TankAssignment
from app.repositories.scheduling import SchedulingRepository
from app.schemas.batch import BatchCreate, GravityReadingCreate
from app.schemas.scheduler import TouchedEntity
from app.services.gravity import estimate_abv
from app.services.timeline import record_event

STEP_EVENTS: dict[BatchStatus, tuple[TimelineEventType, str]] = {
    BatchStatus.BREWING: (TimelineEventType.BREWING_STARTED, "Brewing started"),
    BatchStatus.FERMENTING: (TimelineEventType.FERMENTATION_STARTED, "Fermentation started"),
    BatchStatus.CONDITIONING: (TimelineEventType.CONDITIONING_STARTED, "Conditioning started"),
    BatchStatus.PACKAGING: (TimelineEventType.PACKAGING_STARTED, "Packaging started"),
    BatchStatus.READY: (TimelineEventType.READY_FOR_PACKAGING, "Ready"),
    BatchStatus.PACKAGED: (TimelineEventType.PACKAGED, "Packaged"),
}

READING_STATUSES = (BatchStatus.FERMENTING.value, BatchStatus.CONDITIONING.value)
FERMENTATION_PLAN_STATUSES = (BatchStatus.PLANNED.value, BatchStatus.BREWING.value)
BLEND_STATUSES = (BatchStatus.FERMENTING.value, BatchStatus.CONDITIONING.value, BatchStatus.READY.value)

LOT_PREFIXES: dict[Phase, str] = {
    Phase.FERMENTATION: "F",
    Phase.CONDITIONING: "C",
    Phase.BRIGHT: "B",
    Phase.PACKAGING: "P",
}
BLEND_LOT_PREFIX = "X"


def _flow_index(status: str) -> int:
    return BATCH_FLOW.index(BatchStatus(status))


def _next_status(status: str) -> BatchStatus | None:
    if BatchStatus(status) in TERMINAL_BATCH_STATUSES:
        return None
    index = _flow_index(status)
    if index + 1 >= len(BATCH_FLOW):
        return None
    return BATCH_FLOW[index + 1]


def transition_batch(
    repo: SchedulingRepository,
    batch: Batch,
    target: BatchStatus,
    actor: str,
    data: dict | None = None,
) -> Batch:
    """Advance ``batch`` exactly one step to ``target`` and log it."""
    expected = _next_status(batch.status)
    if expected != target:
        expected_label = [BatchStatus(s).value for s in BATCH_FLOW if _next_status(s) == target] or ["none"]
        raise InvalidTransition("Batch", expected_label, batch.status)

    previous = batch.status
    batch.status = target.value
    event_type, title = STEP_EVENTS[target]
    record_event(
        repo,
        batch.id,
        event_type,
        f"{title}: {batch.batch_number}",
        actor,
        data={"from": previous, "to": target.value, **(data or {})},
    )
    return batch


def walk_batch_to(repo: SchedulingRepository, batch: Batch, target: BatchStatus, actor: str) -> bool:
    """Step ``batch`` forward until it reaches ``target``; no-op when already there or past it."""
    if BatchStatus(batch.status) in TERMINAL_BATCH_STATUSES:
        return False
    if _flow_index(batch.status) >= BATCH_FLOW.index(target):
        return False

    while batch.status != target.value:
        step = _next_status(batch.status)
        if step is None:
            raise InvalidTransition("Batch", target.value, batch.status)
        transition_batch(repo, batch, step, actor)
    return True


def create_batch(repo: SchedulingRepository, actor: str, payload: BatchCreate) -> Batch:
    now = datetime.utcnow()
    with repo.atomic():
        batch = repo.add(
            Batch(
                tenant_id=repo.tenant_id,
                batch_number=repo.next_batch_number(now),
                recipe_id=payload.recipe_id,
                volume_liters=payload.volume_liters,
                original_gravity=payload.original_gravity,
                status=BatchStatus.PLANNED.value,
                notes=payload.notes,
                created_by=actor,
                created_at=now,
            )
        )
        record_event(repo, batch.id, TimelineEventType.CREATED, f"Batch {batch.batch_number} created", actor)
    repo.refresh(batch)
    return batch


def start_brewing(
    repo: SchedulingRepository,
    batch_id: int,
    actor: str,
    original_gravity: float | None = None,
    brewed_at: datetime | None = None,
) -> Batch:
    batch = repo.get_batch(batch_id)
    with repo.atomic():
        if original_gravity is not None:
            batch.original_gravity = original_gravity
        batch.brewed_at = brewed_at or datetime.utcnow()
        transition_batch(repo, batch, BatchStatus.BREWING, actor, data={"original_gravity": batch.original_gravity})
    repo.refresh(batch)
    return batch


def advance_batch(repo: SchedulingRepository, batch_id: int, target: BatchStatus, actor: str) -> Batch:
    batch = repo.get_batch(batch_id)
    with repo.atomic():
        transition_batch(repo, batch, target, actor)
    repo.refresh(batch)
    return batch


def mark_ready(repo: SchedulingRepository, batch_id: int, actor: str, final_gravity: float | None = None) -> Batch:
    batch = repo.get_batch(batch_id)
    with repo.atomic():
        if final_gravity is not None:
            batch.final_gravity = final_gravity
        if batch.original_gravity is not None and batch.final_gravity is not None:
            batch.calculated_abv = estimate_abv(batch.original_gravity, batch.final_gravity)
        transition_batch(
            repo,
            batch,
            BatchStatus.READY,
            actor,
            data={"final_gravity": batch.final_gravity, "calculated_abv": batch.calculated_abv},
        )
    repo.refresh(batch)
    return batch


def cancel_batch(repo: SchedulingRepository, batch_id: int, actor: str, reason: str) -> Batch:
    if not reason.strip():
        raise ValidationError("A cancellation reason is required")

    batch = repo.get_batch(batch_id)
    if BatchStatus(batch.status) in TERMINAL_BATCH_STATUSES:
        raise InvalidTransition("Batch", "a non-terminal status", batch.status)

    with repo.atomic():
        previous = batch.status
        batch.status = BatchStatus.CANCELLED.value
        batch.cancelled_at = datetime.utcnow()
        batch.cancel_reason = reason.strip()
        record_event(
            repo,
            batch.id,
            TimelineEventType.CANCELLED,
            f"Batch {batch.batch_number} cancelled",
            actor,
            description=batch.cancel_reason,
            data={"from": previous},
        )
    repo.refresh(batch)
    return batch


def add_gravity_reading(
    repo: SchedulingRepository,
    batch_id: int,
    actor: str,
    payload: GravityReadingCreate,
) -> GravityReading:
    batch = repo.get_batch(batch_id)
    if batch.status not in READING_STATUSES:
        raise IncompatibleBatchState(
            f"Readings can only be logged while fermenting or conditioning (batch is {batch.status})",
            {batch.id: batch.status},
        )

    with repo.atomic():
        reading = repo.add(
            GravityReading(
                batch_id=batch.id,
                gravity=payload.gravity,
                temperature=payload.temperature,
                notes=payload.notes,
                recorded_at=payload.recorded_at or datetime.utcnow(),
                recorded_by=actor,
            )
        )
        record_event(
            repo,
            batch.id,
            TimelineEventType.GRAVITY_READING,
            f"Gravity {payload.gravity:.3f}",
            actor,
            data={"gravity": payload.gravity, "temperature": payload.temperature},
        )
    repo.refresh(reading)
    return reading


def ensure_fermentation_ready(batches: list[Batch]) -> None:
    statuses = {batch.id: batch.status for batch in batches}
    if any(status not in FERMENTATION_PLAN_STATUSES for status in statuses.values()):
        raise IncompatibleBatchState("Fermentation can only be planned for PLANNED or BREWING batches", statuses)


def ensure_blend_compatible(batches: list[Batch], phase: Phase) -> None:
    """Blended batches must share one status suitable for the destination phase."""
    if phase == Phase.FERMENTATION:
        ensure_fermentation_ready(batches)
        return

    statuses = {batch.id: batch.status for batch in batches}
    distinct = set(statuses.values())
    if len(distinct) != 1 or next(iter(distinct)) not in BLEND_STATUSES:
        raise IncompatibleBatchState(
            "Blended batches must all be FERMENTING, all CONDITIONING or all READY",
            statuses,
        )


def create_lot_with_assignment(
    repo: SchedulingRepository,
    actor: str,
    *,
    portions: list[tuple[Batch, float, float]],
    tank: Tank,
    planned_start: datetime,
    planned_end: datetime,
    phase: Phase,
    lot_kind: str,
    split_ratio: float | None = None,
    notes: str = "",
) -> tuple[Lot, TankAssignment]:
    """Write one Lot, its LotBatch links and a PLANNED assignment.

    ``portions`` holds ``(batch, volume_portion, batch_percentage)`` per
    batch. The caller owns the transaction and any locks.
    """
    now = datetime.utcnow()
    planned_volume = round(sum(volume for _, volume, _ in portions), 3)

    lot = repo.add(
        Lot(
            tenant_id=repo.tenant_id,
            lot_code=repo.next_lot_code(now, lot_kind),
            planned_volume=planned_volume,
            split_ratio=split_ratio,
            notes=notes,
            created_by=actor,
            created_at=now,
        )
    )
    for batch, volume, percentage in portions:
        repo.add(
            LotBatch(
                lot_id=lot.id,
                batch_id=batch.id,
                volume_portion=round(volume, 3),
                batch_percentage=percentage,
            )
        )

    assignment = repo.add(
        TankAssignment(
            tenant_id=repo.tenant_id,
            lot_id=lot.id,
            tank_id=tank.id,
            planned_start=planned_start,
            planned_end=planned_end,
            status=AssignmentStatus.PLANNED.value,
            phase=phase.value,
            planned_volume=planned_volume,
            notes=notes,
            created_by=actor,
            created_at=now,
        )
    )
    return lot, assignment


@dataclass
class Transition:
    """Changes to apply to an assignment and everything hanging off it.

    ``release_tank_status`` is written to the tank the lot leaves (the old
    tank on a move, the current tank on completion); ``occupy_tank_status``
    to the tank the lot ends up in. ``batch_status`` walks the lot's batches
    forward, limited to ``batch_from`` when given. Moving the phase to
    PACKAGING always walks the batches to PACKAGING.
    """

    status: AssignmentStatus | None = None
    phase: Phase | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    move_to: Tank | None = None
    release_tank_status: TankStatus | None = None
    occupy_tank_status: TankStatus | None = None
    batch_status: BatchStatus | None = None
    batch_from: frozenset[str] | None = None


def apply_transition(
    repo: SchedulingRepository,
    assignment: TankAssignment,
    transition: Transition,
    actor: str,
) -> list[TouchedEntity]:
    touched: list[TouchedEntity] = []
    current_tank = assignment.tank

    if transition.move_to is not None:
        if transition.release_tank_status is not None:
            current_tank.status = transition.release_tank_status.value
            touched.append(TouchedEntity(entity="Tank", id=current_tank.id, status=current_tank.status))
        assignment.tank_id = transition.move_to.id
        assignment.tank = transition.move_to
        current_tank = transition.move_to

    if transition.status is not None:
        assignment.status = transition.status.value
    if transition.phase is not None:
        assignment.phase = transition.phase.value
    if transition.started_at is not None:
        assignment.started_at = transition.started_at
    if transition.ended_at is not None:
        assignment.ended_at = transition.ended_at
    touched.append(TouchedEntity(entity="TankAssignment", id=assignment.id, status=assignment.status))

    if transition.occupy_tank_status is not None:
        current_tank.status = transition.occupy_tank_status.value
        touched.append(TouchedEntity(entity="Tank", id=current_tank.id, status=current_tank.status))
    elif transition.move_to is None and transition.release_tank_status is not None:
        current_tank.status = transition.release_tank_status.value
        touched.append(TouchedEntity(entity="Tank", id=current_tank.id, status=current_tank.status))

    repo.db.flush()

    if assignment.status == AssignmentStatus.COMPLETED.value:
        lot = assignment.lot
        siblings = repo.lot_assignments(lot.id)
        if all(item.status == AssignmentStatus.COMPLETED.value for item in siblings):
            lot.completed_at = assignment.ended_at or datetime.utcnow()
            touched.append(TouchedEntity(entity="Lot", id=lot.id, status="COMPLETED"))

    batch_status = transition.batch_status
    if batch_status is None and transition.phase == Phase.PACKAGING:
        batch_status = BatchStatus.PACKAGING

    if batch_status is not None:
        for link in repo.lot_batches(assignment.lot_id):
            batch = link.batch
            if transition.batch_from is not None and batch.status not in transition.batch_from:
                continue
            if walk_batch_to(repo, batch, batch_status, actor):
                touched.append(TouchedEntity(entity="Batch", id=batch.id, status=batch.status))

    repo.db.flush()
    return touched
