from collections.abc import Iterable
from datetime import datetime

from app.core.errors import ValidationError
from app.models.enums import TankStatus
from app.models.tank import Tank
from app.models.tank_assignment import TankAssignment
from app.repositories.scheduling import SchedulingRepository
from app.schemas.tank import AvailabilityResult, BatchAvailabilityResult, ConflictingAssignment


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open overlap: ``[a, b)`` and ``[b, c)`` touch but do not collide."""
    return start_a < end_b and start_b < end_a


def find_conflicts(
    repo: SchedulingRepository,
    tank_id: int,
    start: datetime,
    end: datetime,
    exclude_assignment_ids: Iterable[int] = (),
) -> list[TankAssignment]:
    if start >= end:
        raise ValidationError("start must be before end")

    conflicts = [
        assignment
        for assignment in repo.booked_assignments(tank_id, exclude_assignment_ids)
        if overlaps(assignment.effective_start, assignment.planned_end, start, end)
    ]
    conflicts.sort(key=lambda item: (item.effective_start, item.id))
    return conflicts


def check_availability(
    repo: SchedulingRepository,
    tank_id: int,
    start: datetime,
    end: datetime,
    exclude_assignment_ids: Iterable[int] = (),
) -> AvailabilityResult:
    repo.get_tank(tank_id)
    conflicts = find_conflicts(repo, tank_id, start, end, exclude_assignment_ids)

    return AvailabilityResult(
        tank_id=tank_id,
        start=start,
        end=end,
        available=not conflicts,
        conflicts=[
            ConflictingAssignment(
                assignment_id=assignment.id,
                lot_id=assignment.lot_id,
                lot_code=assignment.lot.lot_code,
                start=assignment.effective_start,
                end=assignment.planned_end,
                status=assignment.status,
            )
            for assignment in conflicts
        ],
    )


def check_batch_availability(
    repo: SchedulingRepository,
    tank_ids: list[int],
    start: datetime,
    end: datetime,
) -> BatchAvailabilityResult:
    results = {tank_id: check_availability(repo, tank_id, start, end) for tank_id in dict.fromkeys(tank_ids)}
    return BatchAvailabilityResult(
        all_available=all(result.available for result in results.values()),
        results=results,
    )


def find_available_tanks(
    repo: SchedulingRepository,
    start: datetime,
    end: datetime,
    min_volume: float | None = None,
    tank_type: str | None = None,
) -> list[Tank]:
    """Tanks free for the whole window that can hold ``min_volume``.

    Tanks under maintenance are left out. This is a preview only; planning
    re-checks under the tank lock.
    """
    if start >= end:
        raise ValidationError("start must be before end")

    return [
        tank
        for tank in repo.list_tanks(tank_type=tank_type)
        if tank.status != TankStatus.MAINTENANCE.value
        and (min_volume is None or tank.capacity_liters >= min_volume)
        and not find_conflicts(repo, tank.id, start, end)
    ]


def booking_warnings(tank: Tank, volume: float) -> list[str]:
    warnings: list[str] = []
    if tank.status == TankStatus.MAINTENANCE.value:
        warnings.append(f"Tank {tank.name} is under maintenance")

    fill = volume * 100 / tank.capacity_liters if tank.capacity_liters else 0.0
    if fill < tank.min_fill_percent:
        warnings.append(f"Volume {volume:.1f} L fills {tank.name} to {fill:.1f}%, below its {tank.min_fill_percent:.0f}% minimum")
    elif fill > tank.max_fill_percent:
        warnings.append(f"Volume {volume:.1f} L fills {tank.name} to {fill:.1f}%, above its {tank.max_fill_percent:.0f}% maximum")
    return warnings
