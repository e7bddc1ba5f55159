from datetime import datetime

from pydantic import BaseModel, Field

from app.models.enums import AssignmentStatus, Phase
from app.schemas.batch import BatchRead, GravityReadingRead
from app.schemas.scheduler import AssignmentRead, LotRead, TransferRead
from app.schemas.tank import TankRead


class CalendarRange(BaseModel):
    start: datetime
    end: datetime


class CalendarBlock(BaseModel):
    assignment_id: int
    lot_id: int
    lot_code: str
    tank_id: int
    status: AssignmentStatus
    phase: Phase
    start: datetime
    end: datetime
    clipped_start: datetime
    clipped_end: datetime
    is_clipped: bool
    batch_count: int
    batch_numbers: list[str] = Field(default_factory=list)
    planned_volume: float
    fill_percent: float
    is_split: bool
    is_blend: bool
    is_overdue: bool


class CalendarTankRow(BaseModel):
    tank: TankRead
    blocks: list[CalendarBlock] = Field(default_factory=list)


class CalendarSummary(BaseModel):
    total_tanks: int
    available_tanks: int
    occupied_tanks: int
    active_blocks: int
    planned_blocks: int


class CalendarData(BaseModel):
    time_range: CalendarRange
    rows: list[CalendarTankRow]
    summary: CalendarSummary


class LotBatchDetail(BaseModel):
    batch: BatchRead
    volume_portion: float
    batch_percentage: float


class BlockDetail(BaseModel):
    assignment: AssignmentRead
    tank: TankRead
    lot: LotRead
    batches: list[LotBatchDetail] = Field(default_factory=list)
    transfers: list[TransferRead] = Field(default_factory=list)
    latest_readings: list[GravityReadingRead] = Field(default_factory=list)
