"""Tenant-scoped data access for tanks, batches, lots and assignments.

Every query issued here is filtered by the tenant the repository was built
for, so a foreign id behaves exactly like a missing one.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import TypeVar

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import NotFound
from app.models.batch import Batch, BatchTimeline, GravityReading
from app.models.enums import BOOKING_STATUSES, AssignmentStatus
from app.models.lot import Lot, LotBatch
from app.models.tank import Tank
from app.models.tank_assignment import TankAssignment
from app.models.transfer import TransferPlan

T = TypeVar("T")


def _next_sequence(codes: Iterable[str], prefix: str) -> int:
    highest = 0
    for code in codes:
        suffix = code[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest + 1


class SchedulingRepository:
    def __init__(self, db: Session, tenant_id: str) -> None:
        self.db = db
        self.tenant_id = tenant_id
        self._depth = 0

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Commit once the outermost block exits cleanly, roll back otherwise."""
        self._depth += 1
        try:
            yield
            if self._depth == 1:
                self.db.commit()
        except Exception:
            if self._depth == 1:
                self.db.rollback()
            raise
        finally:
            self._depth -= 1

    def add(self, entity: T) -> T:
        self.db.add(entity)
        self.db.flush()
        return entity

    def refresh(self, entity: object) -> None:
        self.db.refresh(entity)

    # tanks

    def get_tank(self, tank_id: int) -> Tank:
        tank = self.db.query(Tank).filter(Tank.id == tank_id, Tank.tenant_id == self.tenant_id).first()
        if not tank:
            raise NotFound("Tank", tank_id)
        return tank

    def find_tank_by_name(self, name: str) -> Tank | None:
        return self.db.query(Tank).filter(Tank.tenant_id == self.tenant_id, Tank.name == name).first()

    def list_tanks(self, tank_type: str | None = None, status: str | None = None) -> list[Tank]:
        query = self.db.query(Tank).filter(Tank.tenant_id == self.tenant_id)
        if tank_type:
            query = query.filter(Tank.type == tank_type)
        if status:
            query = query.filter(Tank.status == status)
        return query.order_by(Tank.name.asc(), Tank.id.asc()).all()

    # batches

    def get_batch(self, batch_id: int) -> Batch:
        batch = self.db.query(Batch).filter(Batch.id == batch_id, Batch.tenant_id == self.tenant_id).first()
        if not batch:
            raise NotFound("Batch", batch_id)
        return batch

    def get_batches(self, batch_ids: list[int]) -> list[Batch]:
        found = {
            batch.id: batch
            for batch in self.db.query(Batch)
            .filter(Batch.id.in_(batch_ids), Batch.tenant_id == self.tenant_id)
            .all()
        }
        for batch_id in batch_ids:
            if batch_id not in found:
                raise NotFound("Batch", batch_id)
        return [found[batch_id] for batch_id in batch_ids]

    def list_batches(self, status: str | None = None) -> list[Batch]:
        query = self.db.query(Batch).filter(Batch.tenant_id == self.tenant_id)
        if status:
            query = query.filter(Batch.status == status)
        return query.order_by(Batch.created_at.desc(), Batch.id.desc()).all()

    def readings_for_batch(self, batch_id: int) -> list[GravityReading]:
        return (
            self.db.query(GravityReading)
            .filter(GravityReading.batch_id == batch_id)
            .order_by(GravityReading.recorded_at.asc(), GravityReading.id.asc())
            .all()
        )

    def latest_readings(self, batch_ids: list[int], limit: int) -> list[GravityReading]:
        if not batch_ids:
            return []
        return (
            self.db.query(GravityReading)
            .filter(GravityReading.batch_id.in_(batch_ids))
            .order_by(GravityReading.recorded_at.desc(), GravityReading.id.desc())
            .limit(limit)
            .all()
        )

    def timeline_for_batch(self, batch_id: int) -> list[BatchTimeline]:
        return (
            self.db.query(BatchTimeline)
            .filter(BatchTimeline.batch_id == batch_id)
            .order_by(BatchTimeline.created_at.asc(), BatchTimeline.id.asc())
            .all()
        )

    # lots and assignments

    def get_lot(self, lot_id: int) -> Lot:
        lot = self.db.query(Lot).filter(Lot.id == lot_id, Lot.tenant_id == self.tenant_id).first()
        if not lot:
            raise NotFound("Lot", lot_id)
        return lot

    def lot_batches(self, lot_id: int) -> list[LotBatch]:
        return self.db.query(LotBatch).filter(LotBatch.lot_id == lot_id).order_by(LotBatch.id.asc()).all()

    def get_assignment(self, assignment_id: int) -> TankAssignment:
        assignment = (
            self.db.query(TankAssignment)
            .filter(
                TankAssignment.id == assignment_id,
                TankAssignment.tenant_id == self.tenant_id,
            )
            .first()
        )
        if not assignment:
            raise NotFound("TankAssignment", assignment_id)
        return assignment

    def lot_assignments(self, lot_id: int) -> list[TankAssignment]:
        return (
            self.db.query(TankAssignment)
            .filter(TankAssignment.lot_id == lot_id, TankAssignment.tenant_id == self.tenant_id)
            .order_by(TankAssignment.planned_start.asc(), TankAssignment.id.asc())
            .all()
        )

    def booked_assignments(self, tank_id: int, exclude_ids: Iterable[int] = ()) -> list[TankAssignment]:
        query = self.db.query(TankAssignment).filter(
            TankAssignment.tenant_id == self.tenant_id,
            TankAssignment.tank_id == tank_id,
            TankAssignment.status.in_(BOOKING_STATUSES),
        )
        excluded = list(exclude_ids)
        if excluded:
            query = query.filter(TankAssignment.id.notin_(excluded))
        return query.order_by(TankAssignment.planned_start.asc(), TankAssignment.id.asc()).all()

    def assignments_in_range(self, start: datetime, end: datetime, tank_id: int | None = None) -> list[TankAssignment]:
        display_start = func.coalesce(TankAssignment.started_at, TankAssignment.planned_start)
        display_end = func.coalesce(TankAssignment.ended_at, TankAssignment.planned_end)
        query = self.db.query(TankAssignment).filter(
            TankAssignment.tenant_id == self.tenant_id,
            TankAssignment.status.in_(
                [
                    AssignmentStatus.PLANNED.value,
                    AssignmentStatus.ACTIVE.value,
                    AssignmentStatus.COMPLETED.value,
                ]
            ),
            display_start < end,
            display_end > start,
        )
        if tank_id is not None:
            query = query.filter(TankAssignment.tank_id == tank_id)
        return query.order_by(display_start.asc(), TankAssignment.id.asc()).all()

    def get_transfer(self, transfer_id: int) -> TransferPlan:
        transfer = (
            self.db.query(TransferPlan)
            .filter(TransferPlan.id == transfer_id, TransferPlan.tenant_id == self.tenant_id)
            .first()
        )
        if not transfer:
            raise NotFound("TransferPlan", transfer_id)
        return transfer

    def transfers_for_assignment(self, assignment_id: int) -> list[TransferPlan]:
        return (
            self.db.query(TransferPlan)
            .filter(
                TransferPlan.tenant_id == self.tenant_id,
                TransferPlan.assignment_id == assignment_id,
            )
            .order_by(TransferPlan.planned_at.asc(), TransferPlan.id.asc())
            .all()
        )

    # codes

    def next_batch_number(self, moment: datetime) -> str:
        prefix = f"BATCH-{moment:%Y%m%d}-"
        rows = (
            self.db.query(Batch.batch_number)
            .filter(Batch.tenant_id == self.tenant_id, Batch.batch_number.like(f"{prefix}%"))
            .all()
        )
        return f"{prefix}{_next_sequence((row[0] for row in rows), prefix):03d}"

    def next_lot_code(self, moment: datetime, kind: str) -> str:
        prefix = f"LOT-{moment:%Y}-{kind}"
        rows = (
            self.db.query(Lot.lot_code)
            .filter(Lot.tenant_id == self.tenant_id, Lot.lot_code.like(f"{prefix}%"))
            .all()
        )
        return f"{prefix}{_next_sequence((row[0] for row in rows), prefix):03d}"

    def next_transfer_code(self, moment: datetime) -> str:
        prefix = f"TRF-{moment:%Y%m%d}-"
        rows = (
            self.db.query(TransferPlan.transfer_code)
            .filter(TransferPlan.tenant_id == self.tenant_id, TransferPlan.transfer_code.like(f"{prefix}%"))
            .all()
        )
        return f"{prefix}{_next_sequence((row[0] for row in rows), prefix):03d}"
