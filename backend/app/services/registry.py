from app.core.errors import InvalidTransition, ValidationError
from app.models.enums import TankStatus
from app.models.tank import Tank
from app.repositories.scheduling import SchedulingRepository
from app.schemas.tank import TankCreate

CIP_SOURCE_STATUSES = (TankStatus.NEEDS_CIP.value, TankStatus.CLEANING.value)


def create_tank(repo: SchedulingRepository, payload: TankCreate) -> Tank:
    if repo.find_tank_by_name(payload.name):
        raise ValidationError(f"Tank name '{payload.name}' is already in use")

    with repo.atomic():
        tank = repo.add(
            Tank(
                tenant_id=repo.tenant_id,
                name=payload.name,
                type=payload.type.value,
                capacity_liters=payload.capacity_liters,
                min_fill_percent=payload.min_fill_percent,
                max_fill_percent=payload.max_fill_percent,
                location=payload.location,
                status=TankStatus.AVAILABLE.value,
            )
        )
    repo.refresh(tank)
    return tank


def complete_cip(repo: SchedulingRepository, tank_id: int) -> Tank:
    """Mark a cleaned tank as available again.

    Cleaning itself happens outside this system; this only records that it
    finished. Booking decisions never look at tank status.
    """
    tank = repo.get_tank(tank_id)
    if tank.status not in CIP_SOURCE_STATUSES:
        raise InvalidTransition("Tank", list(CIP_SOURCE_STATUSES), tank.status)

    with repo.atomic():
        tank.status = TankStatus.AVAILABLE.value
    repo.refresh(tank)
    return tank
