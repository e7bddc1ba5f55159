"""Tank booking under Redis locks.

Every write that reserves tank time follows the same protocol: take the tank
lock(s) in sorted order, re-check availability while holding them, then write
all rows in one transaction. A failed re-check aborts the whole request before
anything is written.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from app.core.errors import AssignmentNotPlanned, ConflictError, InvalidTransition, ValidationError
from app.core.locks import LockGateway, batch_create_lock_key, tank_lock_key
from app.models.batch import Batch
from app.models.enums import PHASE_ORDER, AssignmentStatus, BatchStatus, Phase, TankStatus, TimelineEventType
from app.models.lot import Lot
from app.models.tank import Tank
from app.models.tank_assignment import TankAssignment
from app.models.transfer import TransferPlan
from app.repositories.scheduling import SchedulingRepository
from app.schemas.scheduler import (
    AssignmentRead,
    PlanBlendRequest,
    PlanFermentationRequest,
    PlannedLotRead,
    PlanResult,
    PlanTransferRequest,
    TouchedEntity,
    TransitionResult,
)
from app.services import lifecycle
from app.services.availability import booking_warnings, find_conflicts
from app.services.lifecycle import Transition, apply_transition
from app.services.timeline import record_event

logger = logging.getLogger("tankplanner.scheduler")


Portion = tuple[Batch, float, float]


@dataclass
class _Destination:
    tank: Tank
    start: datetime
    end: datetime
    portions: list[Portion] = field(default_factory=list)
    percent: float | None = None

    @property
    def volume(self) -> float:
        return round(sum(volume for _, volume, _ in self.portions), 3)


def _scaled_portions(batches: list[Batch], planned_volume: float | None) -> list[Portion]:
    """Share ``planned_volume`` across batches in proportion to their volumes."""
    total = sum(batch.volume_liters for batch in batches)
    if planned_volume is None:
        return [(batch, batch.volume_liters, 100.0) for batch in batches]
    if planned_volume > total + 1e-9:
        raise ValidationError(f"Planned volume {planned_volume:.1f} L exceeds the batches' {total:.1f} L")

    ratio = planned_volume / total
    return [(batch, batch.volume_liters * ratio, round(ratio * 100, 3)) for batch in batches]


class TankScheduler:
    def __init__(self, repo: SchedulingRepository, locks: LockGateway) -> None:
        self.repo = repo
        self.locks = locks

    @property
    def tenant_id(self) -> str:
        return self.repo.tenant_id

    def _log(self, event: str, **fields: object) -> None:
        logger.info(json.dumps({"event": event, "tenant_id": self.tenant_id, **fields}, default=str))

    def _idempotent(self, operation: str, key: str | None, fn: Callable[[], PlanResult]) -> PlanResult:
        if not key:
            return fn()
        return self.locks.with_idempotency(self.tenant_id, f"{operation}:{key}", fn, PlanResult)

    def _ensure_capacity(self, tank: Tank, volume: float) -> None:
        if volume > tank.capacity_liters:
            raise ValidationError(
                f"Planned volume {volume:.1f} L exceeds capacity of tank {tank.name} ({tank.capacity_liters:.1f} L)"
            )

    def _collect_conflicts(self, destinations: list[_Destination], exclude_ids: tuple[int, ...] = ()) -> None:
        conflicts: list[dict[str, object]] = []
        for destination in destinations:
            blocking = find_conflicts(self.repo, destination.tank.id, destination.start, destination.end, exclude_ids)
            if blocking:
                conflicts.append(
                    {
                        "tank_id": destination.tank.id,
                        "tank_name": destination.tank.name,
                        "start": destination.start.isoformat(),
                        "end": destination.end.isoformat(),
                        "assignment_ids": [assignment.id for assignment in blocking],
                        "bookings": [
                            {
                                "assignment_id": assignment.id,
                                "start": assignment.effective_start.isoformat(),
                                "end": assignment.planned_end.isoformat(),
                                "status": assignment.status,
                            }
                            for assignment in blocking
                        ],
                    }
                )

        if conflicts:
            self._log("booking_conflict", tanks=[item["tank_id"] for item in conflicts])
            names = ", ".join(str(item["tank_name"]) for item in conflicts)
            raise ConflictError(f"Requested window is already booked on: {names}", conflicts)

    def _planned_lot(self, lot: Lot, assignment: TankAssignment, batches: list[Batch], tank: Tank) -> PlannedLotRead:
        return PlannedLotRead(
            lot_id=lot.id,
            lot_code=lot.lot_code,
            assignment_id=assignment.id,
            tank_id=assignment.tank_id,
            planned_start=assignment.planned_start,
            planned_end=assignment.planned_end,
            planned_volume=assignment.planned_volume,
            phase=assignment.phase,
            batch_ids=[batch.id for batch in batches],
            warnings=booking_warnings(tank, assignment.planned_volume),
        )

    # planning

    def plan_fermentation(
        self,
        actor: str,
        request: PlanFermentationRequest,
        idempotency_key: str | None = None,
    ) -> PlanResult:
        return self._idempotent("plan-fermentation", idempotency_key, lambda: self._plan_fermentation(actor, request))

    def _plan_fermentation(self, actor: str, request: PlanFermentationRequest) -> PlanResult:
        batches = self.repo.get_batches(request.batch_ids)
        lifecycle.ensure_fermentation_ready(batches)

        if request.split_destinations:
            batch = batches[0]
            destinations = [
                _Destination(
                    self.repo.get_tank(item.tank_id),
                    item.planned_start,
                    item.planned_end,
                    [(batch, batch.volume_liters * item.volume_percent / 100, item.volume_percent)],
                    item.volume_percent,
                )
                for item in request.split_destinations
            ]
        elif request.tank_id is not None and request.planned_start is not None and request.planned_end is not None:
            destinations = [
                _Destination(
                    self.repo.get_tank(request.tank_id),
                    request.planned_start,
                    request.planned_end,
                    _scaled_portions(batches, request.planned_volume),
                )
            ]
        else:
            raise ValidationError("tank_id, planned_start and planned_end are required without split_destinations")

        for destination in destinations:
            self._ensure_capacity(destination.tank, destination.volume)

        keys = [tank_lock_key(self.tenant_id, destination.tank.id) for destination in destinations]
        keys.append(batch_create_lock_key(self.tenant_id))

        with self.locks.hold_many(keys):
            self._collect_conflicts(destinations)

            planned: list[tuple[Lot, TankAssignment, Tank]] = []
            with self.repo.atomic():
                for destination in destinations:
                    lot, assignment = lifecycle.create_lot_with_assignment(
                        self.repo,
                        actor,
                        portions=destination.portions,
                        tank=destination.tank,
                        planned_start=destination.start,
                        planned_end=destination.end,
                        phase=Phase.FERMENTATION,
                        lot_kind=lifecycle.LOT_PREFIXES[Phase.FERMENTATION],
                        split_ratio=destination.percent,
                        notes=request.notes,
                    )
                    planned.append((lot, assignment, destination.tank))

                for batch in batches:
                    record_event(
                        self.repo,
                        batch.id,
                        TimelineEventType.FERMENTATION_PLANNED,
                        f"Fermentation planned: {batch.batch_number}",
                        actor,
                        data={
                            "lots": [
                                {
                                    "lot_code": lot.lot_code,
                                    "tank_id": assignment.tank_id,
                                    "planned_start": assignment.planned_start,
                                    "planned_end": assignment.planned_end,
                                }
                                for lot, assignment, _ in planned
                            ]
                        },
                    )

                result = PlanResult(
                    kind="split" if request.is_split else "fermentation",
                    lots=[self._planned_lot(lot, assignment, batches, tank) for lot, assignment, tank in planned],
                )

        self._log("fermentation_planned", lots=[lot.lot_code for lot in result.lots], actor=actor)
        return result

    def plan_blend(self, actor: str, request: PlanBlendRequest, idempotency_key: str | None = None) -> PlanResult:
        return self._idempotent("plan-blend", idempotency_key, lambda: self._plan_blend(actor, request))

    def _plan_blend(self, actor: str, request: PlanBlendRequest) -> PlanResult:
        batches = self.repo.get_batches(request.batch_ids)
        lifecycle.ensure_blend_compatible(batches, request.phase)

        tank = self.repo.get_tank(request.tank_id)
        destination = _Destination(
            tank,
            request.planned_start,
            request.planned_end,
            _scaled_portions(batches, request.planned_volume),
        )
        self._ensure_capacity(tank, destination.volume)

        keys = [tank_lock_key(self.tenant_id, tank.id), batch_create_lock_key(self.tenant_id)]
        with self.locks.hold_many(keys):
            self._collect_conflicts([destination])

            with self.repo.atomic():
                lot, assignment = lifecycle.create_lot_with_assignment(
                    self.repo,
                    actor,
                    portions=destination.portions,
                    tank=tank,
                    planned_start=request.planned_start,
                    planned_end=request.planned_end,
                    phase=request.phase,
                    lot_kind=lifecycle.BLEND_LOT_PREFIX,
                    notes=request.notes,
                )
                for batch in batches:
                    record_event(
                        self.repo,
                        batch.id,
                        TimelineEventType.BLEND_PLANNED,
                        f"Blend planned: {batch.batch_number} into {lot.lot_code}",
                        actor,
                        data={"lot_code": lot.lot_code, "tank_id": tank.id, "batch_ids": request.batch_ids},
                    )
                result = PlanResult(kind="blend", lots=[self._planned_lot(lot, assignment, batches, tank)])

        self._log("blend_planned", lot=lot.lot_code, batch_ids=request.batch_ids, actor=actor)
        return result

    # transfers

    def plan_transfer(self, actor: str, request: PlanTransferRequest) -> TransferPlan:
        lot = self.repo.get_lot(request.lot_id)
        assignments = self.repo.lot_assignments(lot.id)
        active = next((item for item in assignments if item.status == AssignmentStatus.ACTIVE.value), None)
        if active is None:
            actual = assignments[-1].status if assignments else "NONE"
            raise InvalidTransition(
                "TankAssignment",
                AssignmentStatus.ACTIVE.value,
                actual,
                reason=f"Lot {lot.lot_code} has no active assignment to transfer",
            )

        to_tank = self.repo.get_tank(request.to_tank_id)
        if to_tank.id == active.tank_id:
            raise ValidationError("Transfer destination must differ from the current tank")
        self._ensure_capacity(to_tank, active.planned_volume)
        if request.planned_at >= active.planned_end:
            raise ValidationError("Transfer must be planned before the lot's planned end")

        # the lot keeps its planned end in the new tank
        destination = _Destination(to_tank, request.planned_at, active.planned_end)
        with self.locks.hold(tank_lock_key(self.tenant_id, to_tank.id)):
            self._collect_conflicts([destination], exclude_ids=(active.id,))

            with self.repo.atomic():
                transfer = self.repo.add(
                    TransferPlan(
                        tenant_id=self.tenant_id,
                        transfer_code=self.repo.next_transfer_code(datetime.utcnow()),
                        lot_id=lot.id,
                        assignment_id=active.id,
                        from_tank_id=active.tank_id,
                        to_tank_id=to_tank.id,
                        planned_at=request.planned_at,
                        notes=request.notes,
                        created_by=actor,
                        created_at=datetime.utcnow(),
                    )
                )
                for link in self.repo.lot_batches(lot.id):
                    record_event(
                        self.repo,
                        link.batch_id,
                        TimelineEventType.TRANSFER_PLANNED,
                        f"Transfer {transfer.transfer_code} planned",
                        actor,
                        data={
                            "from_tank_id": active.tank_id,
                            "to_tank_id": to_tank.id,
                            "planned_at": request.planned_at,
                        },
                    )

        self.repo.refresh(transfer)
        self._log("transfer_planned", transfer=transfer.transfer_code, lot=lot.lot_code, to_tank_id=to_tank.id)
        return transfer

    def execute_transfer(
        self,
        actor: str,
        transfer_id: int,
        executed_at: datetime | None = None,
        phase: Phase | None = None,
    ) -> TransitionResult:
        transfer = self.repo.get_transfer(transfer_id)
        if transfer.executed_at is not None:
            raise InvalidTransition("TransferPlan", "PLANNED", "EXECUTED")

        assignment = self.repo.get_assignment(transfer.assignment_id)
        to_tank = self.repo.get_tank(transfer.to_tank_id)
        when = executed_at or datetime.utcnow()

        keys = [
            tank_lock_key(self.tenant_id, transfer.from_tank_id),
            tank_lock_key(self.tenant_id, transfer.to_tank_id),
        ]
        with self.locks.hold_many(keys):
            self.repo.refresh(transfer)
            self.repo.refresh(assignment)
            if transfer.executed_at is not None:
                raise InvalidTransition("TransferPlan", "PLANNED", "EXECUTED")
            if assignment.status != AssignmentStatus.ACTIVE.value:
                raise InvalidTransition("TankAssignment", AssignmentStatus.ACTIVE.value, assignment.status)
            if assignment.tank_id != transfer.from_tank_id:
                raise InvalidTransition(
                    "TankAssignment",
                    f"in tank {transfer.from_tank_id}",
                    f"in tank {assignment.tank_id}",
                    reason="Assignment has moved since the transfer was planned",
                )
            if when >= assignment.planned_end:
                raise ValidationError("Transfer must execute before the assignment's planned end")
            if phase is not None and PHASE_ORDER[phase] < PHASE_ORDER[Phase(assignment.phase)]:
                raise InvalidTransition("TankAssignment phase", f"{assignment.phase} or later", phase.value)

            self._collect_conflicts(
                [_Destination(to_tank, when, assignment.planned_end)],
                exclude_ids=(assignment.id,),
            )

            with self.repo.atomic():
                touched = apply_transition(
                    self.repo,
                    assignment,
                    Transition(
                        phase=phase,
                        started_at=when,
                        move_to=to_tank,
                        release_tank_status=TankStatus.NEEDS_CIP,
                        occupy_tank_status=TankStatus.IN_USE,
                    ),
                    actor,
                )
                transfer.executed_at = when
                for link in self.repo.lot_batches(assignment.lot_id):
                    record_event(
                        self.repo,
                        link.batch_id,
                        TimelineEventType.TRANSFER,
                        f"Transferred to {to_tank.name}",
                        actor,
                        data={
                            "transfer_code": transfer.transfer_code,
                            "from_tank_id": transfer.from_tank_id,
                            "to_tank_id": to_tank.id,
                            "executed_at": when,
                        },
                    )
                result = self._transition_result(assignment, touched)
                result.touched.append(self._touched_transfer(transfer))

        self._log("transfer_executed", transfer=transfer.transfer_code, assignment_id=assignment.id)
        return result

    # assignment lifecycle

    def start_lot(self, actor: str, lot_id: int, started_at: datetime | None = None) -> TransitionResult:
        lot = self.repo.get_lot(lot_id)
        assignments = self.repo.lot_assignments(lot.id)
        planned = next((item for item in assignments if item.status == AssignmentStatus.PLANNED.value), None)
        if planned is None:
            latest = assignments[-1] if assignments else None
            raise AssignmentNotPlanned(latest.id if latest else None, latest.status if latest else "NONE")
        return self.start_assignment(actor, planned.id, started_at)

    def start_assignment(
        self,
        actor: str,
        assignment_id: int,
        started_at: datetime | None = None,
    ) -> TransitionResult:
        assignment = self.repo.get_assignment(assignment_id)
        if assignment.status != AssignmentStatus.PLANNED.value:
            raise AssignmentNotPlanned(assignment.id, assignment.status)

        when = started_at or datetime.utcnow()
        if when >= assignment.planned_end:
            raise ValidationError("Cannot start an assignment at or after its planned end")

        with self.locks.hold(tank_lock_key(self.tenant_id, assignment.tank_id)):
            self.repo.refresh(assignment)
            if assignment.status != AssignmentStatus.PLANNED.value:
                raise AssignmentNotPlanned(assignment.id, assignment.status)

            self._collect_conflicts(
                [_Destination(assignment.tank, when, assignment.planned_end)],
                exclude_ids=(assignment.id,),
            )

            with self.repo.atomic():
                transition = Transition(
                    status=AssignmentStatus.ACTIVE,
                    started_at=when,
                    occupy_tank_status=TankStatus.IN_USE,
                )
                if assignment.phase == Phase.FERMENTATION.value:
                    transition.batch_status = BatchStatus.FERMENTING
                    transition.batch_from = frozenset({BatchStatus.BREWING.value})

                touched = apply_transition(self.repo, assignment, transition, actor)
                self._record_for_lot(
                    assignment,
                    TimelineEventType.ASSIGNMENT_STARTED,
                    f"Started in {assignment.tank.name}",
                    actor,
                    {"assignment_id": assignment.id, "started_at": when},
                )
                result = self._transition_result(assignment, touched)

        self._log("assignment_started", assignment_id=assignment.id, tank_id=assignment.tank_id, actor=actor)
        return result

    def complete_assignment(
        self,
        actor: str,
        assignment_id: int,
        release_tank: bool = True,
        ended_at: datetime | None = None,
    ) -> TransitionResult:
        assignment = self.repo.get_assignment(assignment_id)
        if assignment.status != AssignmentStatus.ACTIVE.value:
            raise InvalidTransition("TankAssignment", AssignmentStatus.ACTIVE.value, assignment.status)

        when = ended_at or datetime.utcnow()
        if assignment.started_at is not None and when < assignment.started_at:
            raise ValidationError("ended_at cannot precede started_at")

        with self.locks.hold(tank_lock_key(self.tenant_id, assignment.tank_id)):
            self.repo.refresh(assignment)
            if assignment.status != AssignmentStatus.ACTIVE.value:
                raise InvalidTransition("TankAssignment", AssignmentStatus.ACTIVE.value, assignment.status)

            with self.repo.atomic():
                touched = apply_transition(
                    self.repo,
                    assignment,
                    Transition(
                        status=AssignmentStatus.COMPLETED,
                        ended_at=when,
                        release_tank_status=TankStatus.NEEDS_CIP if release_tank else None,
                    ),
                    actor,
                )
                self._record_for_lot(
                    assignment,
                    TimelineEventType.ASSIGNMENT_COMPLETED,
                    f"Left {assignment.tank.name}",
                    actor,
                    {"assignment_id": assignment.id, "ended_at": when, "release_tank": release_tank},
                )
                result = self._transition_result(assignment, touched)

        self._log("assignment_completed", assignment_id=assignment.id, release_tank=release_tank, actor=actor)
        return result

    def mark_phase(self, actor: str, assignment_id: int, phase: Phase) -> TransitionResult:
        assignment = self.repo.get_assignment(assignment_id)
        self._check_phase_move(assignment, phase)

        with self.locks.hold(tank_lock_key(self.tenant_id, assignment.tank_id)):
            self.repo.refresh(assignment)
            current = self._check_phase_move(assignment, phase)

            with self.repo.atomic():
                touched = apply_transition(self.repo, assignment, Transition(phase=phase), actor)
                self._record_for_lot(
                    assignment,
                    TimelineEventType.PHASE_CHANGED,
                    f"Phase {current.value} -> {phase.value}",
                    actor,
                    {"assignment_id": assignment.id, "from": current, "to": phase},
                )
                result = self._transition_result(assignment, touched)

        self._log("phase_changed", assignment_id=assignment.id, phase=phase.value, actor=actor)
        return result

    # helpers

    @staticmethod
    def _check_phase_move(assignment: TankAssignment, phase: Phase) -> Phase:
        if assignment.status == AssignmentStatus.COMPLETED.value:
            raise InvalidTransition(
                "TankAssignment",
                [AssignmentStatus.PLANNED.value, AssignmentStatus.ACTIVE.value],
                assignment.status,
            )

        current = Phase(assignment.phase)
        if PHASE_ORDER[phase] <= PHASE_ORDER[current]:
            raise InvalidTransition(
                "TankAssignment phase",
                f"a phase after {current.value}",
                phase.value,
                reason=f"Phase can only move forward (currently {current.value})",
            )
        return current

    def _record_for_lot(
        self,
        assignment: TankAssignment,
        event_type: TimelineEventType,
        title: str,
        actor: str,
        data: dict,
    ) -> None:
        for link in self.repo.lot_batches(assignment.lot_id):
            record_event(self.repo, link.batch_id, event_type, title, actor, data=data)

    def _transition_result(self, assignment: TankAssignment, touched: list[TouchedEntity]) -> TransitionResult:
        return TransitionResult(assignment=AssignmentRead.model_validate(assignment), touched=touched)

    def _touched_transfer(self, transfer: TransferPlan) -> TouchedEntity:
        return TouchedEntity(entity="TransferPlan", id=transfer.id, status="EXECUTED")
