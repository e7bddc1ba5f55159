from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.enums import AssignmentStatus, TankStatus, TankType
from app.schemas.common import TimeWindow


class TankCreate(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    type: TankType
    capacity_liters: float = Field(gt=0)
    location: str | None = Field(default=None, max_length=120)
    min_fill_percent: float = Field(default=20.0, ge=0, le=100)
    max_fill_percent: float = Field(default=95.0, gt=0, le=100)

    @model_validator(mode="after")
    def _check_fill_range(self) -> "TankCreate":
        if self.min_fill_percent >= self.max_fill_percent:
            raise ValueError("min_fill_percent must be below max_fill_percent")
        return self


class TankRead(BaseModel):
    id: int
    name: str
    type: TankType
    capacity_liters: float
    min_fill_percent: float
    max_fill_percent: float
    status: TankStatus
    location: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConflictingAssignment(BaseModel):
    assignment_id: int
    lot_id: int
    lot_code: str
    start: datetime
    end: datetime
    status: AssignmentStatus


class AvailabilityResult(BaseModel):
    tank_id: int
    start: datetime
    end: datetime
    available: bool
    conflicts: list[ConflictingAssignment] = Field(default_factory=list)


class BatchAvailabilityRequest(TimeWindow):
    tank_ids: list[int] = Field(min_length=1, max_length=50)


class BatchAvailabilityResult(BaseModel):
    all_available: bool
    results: dict[int, AvailabilityResult]


class UpcomingBookingRead(BaseModel):
    assignment_id: int
    lot_code: str
    planned_start: datetime
    planned_end: datetime
    status: AssignmentStatus


class TankUtilizationRead(BaseModel):
    tank_id: int
    tank_name: str
    start: datetime
    end: datetime
    occupied_hours: float
    utilization_pct: float
    assignment_count: int
    current_assignment_id: int | None
    upcoming: list[UpcomingBookingRead] = Field(default_factory=list)
