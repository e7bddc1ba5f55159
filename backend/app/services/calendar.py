from __future__ import annotations

import json
import logging
from collections import defaultdict
from datetime import datetime, timedelta

from app.core.config import settings
from app.core.errors import ValidationError
from app.models.enums import AssignmentStatus, TankStatus
from app.models.tank_assignment import TankAssignment
from app.repositories.scheduling import SchedulingRepository
from app.schemas.batch import BatchRead, GravityReadingRead
from app.schemas.calendar import (
    BlockDetail,
    CalendarBlock,
    CalendarData,
    CalendarRange,
    CalendarSummary,
    CalendarTankRow,
    LotBatchDetail,
)
from app.schemas.scheduler import AssignmentRead, LotRead, TransferRead
from app.schemas.tank import TankRead, TankUtilizationRead, UpcomingBookingRead

logger = logging.getLogger("tankplanner.calendar")

UPCOMING_LIMIT = 10


def _validate_range(start: datetime, end: datetime) -> None:
    if start >= end:
        raise ValidationError("start must be before end")
    if end - start > timedelta(days=settings.calendar_max_range_days):
        raise ValidationError(f"Calendar range cannot exceed {settings.calendar_max_range_days} days")


def _is_overdue(assignment: TankAssignment, now: datetime) -> bool:
    if assignment.status == AssignmentStatus.ACTIVE.value:
        return assignment.planned_end < now
    if assignment.status == AssignmentStatus.PLANNED.value:
        return assignment.planned_start < now
    return False


def _build_block(
    assignment: TankAssignment,
    capacity_liters: float,
    start: datetime,
    end: datetime,
    now: datetime,
) -> CalendarBlock:
    block_start = assignment.display_start
    block_end = assignment.display_end
    clipped_start = max(block_start, start)
    clipped_end = min(block_end, end)
    lot = assignment.lot
    batch_numbers = [link.batch.batch_number for link in lot.batch_links]

    return CalendarBlock(
        assignment_id=assignment.id,
        lot_id=lot.id,
        lot_code=lot.lot_code,
        tank_id=assignment.tank_id,
        status=assignment.status,
        phase=assignment.phase,
        start=block_start,
        end=block_end,
        clipped_start=clipped_start,
        clipped_end=clipped_end,
        is_clipped=clipped_start != block_start or clipped_end != block_end,
        batch_count=len(batch_numbers),
        batch_numbers=batch_numbers,
        planned_volume=assignment.planned_volume,
        fill_percent=round(assignment.planned_volume / capacity_liters * 100, 1) if capacity_liters else 0.0,
        is_split=lot.split_ratio is not None,
        is_blend=len(batch_numbers) > 1,
        is_overdue=_is_overdue(assignment, now),
    )


def generate_calendar_data(
    repo: SchedulingRepository,
    start: datetime,
    end: datetime,
    now: datetime | None = None,
) -> CalendarData:
    """Project tank occupancy for ``[start, end)`` as one row per tank.

    Blocks are trimmed to the requested range for display; ``start``/``end``
    on each block keep the stored interval. Assignments pointing at a tank
    that cannot be resolved are skipped instead of failing the projection.
    """
    _validate_range(start, end)
    now = now or datetime.utcnow()

    tanks = repo.list_tanks()
    tanks_by_id = {tank.id: tank for tank in tanks}
    blocks_by_tank: dict[int, list[CalendarBlock]] = defaultdict(list)

    for assignment in repo.assignments_in_range(start, end):
        tank = tanks_by_id.get(assignment.tank_id)
        if tank is None:
            logger.warning(
                json.dumps(
                    {
                        "event": "calendar_tank_unresolved",
                        "tenant_id": repo.tenant_id,
                        "assignment_id": assignment.id,
                        "tank_id": assignment.tank_id,
                    }
                )
            )
            continue
        blocks_by_tank[tank.id].append(_build_block(assignment, tank.capacity_liters, start, end, now))

    rows: list[CalendarTankRow] = []
    active_blocks = 0
    planned_blocks = 0
    for tank in tanks:
        blocks = sorted(blocks_by_tank.get(tank.id, []), key=lambda block: (block.start, block.assignment_id))
        active_blocks += sum(1 for block in blocks if block.status == AssignmentStatus.ACTIVE)
        planned_blocks += sum(1 for block in blocks if block.status == AssignmentStatus.PLANNED)
        rows.append(CalendarTankRow(tank=TankRead.model_validate(tank), blocks=blocks))

    return CalendarData(
        time_range=CalendarRange(start=start, end=end),
        rows=rows,
        summary=CalendarSummary(
            total_tanks=len(tanks),
            available_tanks=sum(1 for tank in tanks if tank.status == TankStatus.AVAILABLE.value),
            occupied_tanks=sum(1 for tank in tanks if tank.status == TankStatus.IN_USE.value),
            active_blocks=active_blocks,
            planned_blocks=planned_blocks,
        ),
    )


def get_block_detail(repo: SchedulingRepository, assignment_id: int) -> BlockDetail:
    assignment = repo.get_assignment(assignment_id)
    tank = repo.get_tank(assignment.tank_id)
    lot = repo.get_lot(assignment.lot_id)
    links = repo.lot_batches(lot.id)

    return BlockDetail(
        assignment=AssignmentRead.model_validate(assignment),
        tank=TankRead.model_validate(tank),
        lot=LotRead.model_validate(lot),
        batches=[
            LotBatchDetail(
                batch=BatchRead.model_validate(link.batch),
                volume_portion=link.volume_portion,
                batch_percentage=link.batch_percentage,
            )
            for link in links
        ],
        transfers=[TransferRead.model_validate(item) for item in repo.transfers_for_assignment(assignment.id)],
        latest_readings=[
            GravityReadingRead.model_validate(reading)
            for reading in repo.latest_readings(
                [link.batch_id for link in links],
                settings.block_detail_reading_limit,
            )
        ],
    )


def tank_utilization(
    repo: SchedulingRepository,
    tank_id: int,
    start: datetime,
    end: datetime,
    now: datetime | None = None,
) -> TankUtilizationRead:
    _validate_range(start, end)
    now = now or datetime.utcnow()
    tank = repo.get_tank(tank_id)
    assignments = repo.assignments_in_range(start, end, tank_id=tank.id)

    occupied_seconds = 0.0
    for assignment in assignments:
        overlap_start = max(assignment.display_start, start)
        overlap_end = min(assignment.display_end, end)
        if overlap_end > overlap_start:
            occupied_seconds += (overlap_end - overlap_start).total_seconds()

    range_seconds = (end - start).total_seconds()
    current = next((item for item in assignments if item.status == AssignmentStatus.ACTIVE.value), None)
    upcoming = [
        item
        for item in repo.booked_assignments(tank.id)
        if item.status == AssignmentStatus.PLANNED.value and item.planned_start >= now
    ][:UPCOMING_LIMIT]

    return TankUtilizationRead(
        tank_id=tank.id,
        tank_name=tank.name,
        start=start,
        end=end,
        occupied_hours=round(occupied_seconds / 3600, 2),
        utilization_pct=round(min(occupied_seconds / range_seconds, 1.0) * 100, 1),
        assignment_count=len(assignments),
        current_assignment_id=current.id if current else None,
        upcoming=[
            UpcomingBookingRead(
                assignment_id=item.id,
                lot_code=item.lot.lot_code,
                planned_start=item.planned_start,
                planned_end=item.planned_end,
                status=item.status,
            )
            for item in upcoming
        ],
    )
