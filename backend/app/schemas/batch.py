from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import BatchStatus
from app.schemas.common import UtcDatetime


class BatchCreate(BaseModel):
    volume_liters: float = Field(gt=0)
    recipe_id: int | None = Field(default=None, gt=0)
    original_gravity: float | None = Field(default=None, gt=1.0, lt=1.2)
    notes: str = ""


class BatchRead(BaseModel):
    id: int
    batch_number: str
    recipe_id: int | None
    volume_liters: float
    status: BatchStatus
    original_gravity: float | None
    final_gravity: float | None
    calculated_abv: float | None
    brewed_at: datetime | None
    cancelled_at: datetime | None
    cancel_reason: str | None
    notes: str
    created_by: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StartBrewingRequest(BaseModel):
    original_gravity: float | None = Field(default=None, gt=1.0, lt=1.2)
    brewed_at: UtcDatetime | None = None


class MarkReadyRequest(BaseModel):
    final_gravity: float | None = Field(default=None, gt=0.99, lt=1.2)


class CancelBatchRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class GravityReadingCreate(BaseModel):
    gravity: float = Field(gt=0.99, lt=1.2)
    temperature: float | None = Field(default=None, gt=-10, lt=60)
    notes: str = ""
    recorded_at: UtcDatetime | None = None


class GravityReadingRead(BaseModel):
    id: int
    batch_id: int
    gravity: float
    temperature: float | None
    notes: str
    recorded_at: datetime
    recorded_by: str

    model_config = ConfigDict(from_attributes=True)


class FermentationTrendPointRead(BaseModel):
    id: int
    recorded_at: datetime
    gravity: float
    temperature: float | None


class FermentationTrendRead(BaseModel):
    batch_id: int
    reading_count: int
    first_recorded_at: datetime | None
    latest_recorded_at: datetime | None
    latest_gravity: float | None
    latest_temperature: float | None
    gravity_drop: float | None
    average_hourly_gravity_drop: float | None
    apparent_attenuation_pct: float | None
    plateau_risk: bool
    temperature_warning: bool
    alerts: list[str] = Field(default_factory=list)
    readings: list[FermentationTrendPointRead] = Field(default_factory=list)


class TimelineEntryRead(BaseModel):
    id: int
    batch_id: int
    type: str
    title: str
    description: str | None
    data: dict | None
    created_by: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
