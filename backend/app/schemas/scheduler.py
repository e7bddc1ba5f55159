from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.enums import AssignmentStatus, Phase
from app.schemas.common import UtcDatetime


class SplitDestination(BaseModel):
    tank_id: int = Field(gt=0)
    planned_start: UtcDatetime
    planned_end: UtcDatetime
    volume_percent: float = Field(gt=0, le=100)

    @model_validator(mode="after")
    def _check_window(self) -> "SplitDestination":
        if self.planned_start >= self.planned_end:
            raise ValueError("planned_start must be before planned_end")
        return self


class PlanFermentationRequest(BaseModel):
    batch_ids: list[int] = Field(min_length=1, max_length=20)
    tank_id: int | None = Field(default=None, gt=0)
    planned_start: UtcDatetime | None = None
    planned_end: UtcDatetime | None = None
    split_destinations: list[SplitDestination] | None = Field(default=None, min_length=1, max_length=20)
    planned_volume: float | None = Field(default=None, gt=0)
    notes: str = ""

    @model_validator(mode="after")
    def _check_destinations(self) -> "PlanFermentationRequest":
        if len(set(self.batch_ids)) != len(self.batch_ids):
            raise ValueError("batch_ids must not repeat")

        if self.split_destinations:
            if self.tank_id is not None:
                raise ValueError("Provide either tank_id or split_destinations, not both")
            if len(self.batch_ids) != 1:
                raise ValueError("A split takes exactly one batch")
            tank_ids = [destination.tank_id for destination in self.split_destinations]
            if len(set(tank_ids)) != len(tank_ids):
                raise ValueError("Split destinations must use distinct tanks")
            total = sum(destination.volume_percent for destination in self.split_destinations)
            if total > 100.0 + 1e-9:
                raise ValueError("Split percentages cannot exceed 100")
            return self

        if self.tank_id is None or self.planned_start is None or self.planned_end is None:
            raise ValueError("tank_id, planned_start and planned_end are required without split_destinations")
        if self.planned_start >= self.planned_end:
            raise ValueError("planned_start must be before planned_end")
        return self

    @property
    def is_split(self) -> bool:
        return bool(self.split_destinations)


class PlanBlendRequest(BaseModel):
    batch_ids: list[int] = Field(min_length=2, max_length=20)
    tank_id: int = Field(gt=0)
    planned_start: UtcDatetime
    planned_end: UtcDatetime
    phase: Phase = Phase.BRIGHT
    planned_volume: float | None = Field(default=None, gt=0)
    notes: str = ""

    @model_validator(mode="after")
    def _check_blend(self) -> "PlanBlendRequest":
        if len(set(self.batch_ids)) != len(self.batch_ids):
            raise ValueError("batch_ids must not repeat")
        if self.planned_start >= self.planned_end:
            raise ValueError("planned_start must be before planned_end")
        return self


class PlanTransferRequest(BaseModel):
    lot_id: int = Field(gt=0)
    to_tank_id: int = Field(gt=0)
    planned_at: UtcDatetime
    notes: str = ""


class ExecuteTransferRequest(BaseModel):
    executed_at: UtcDatetime | None = None
    phase: Phase | None = None


class StartRequest(BaseModel):
    started_at: UtcDatetime | None = None


class CompleteAssignmentRequest(BaseModel):
    release_tank: bool = True
    ended_at: UtcDatetime | None = None


class AssignmentRead(BaseModel):
    id: int
    lot_id: int
    tank_id: int
    planned_start: datetime
    planned_end: datetime
    started_at: datetime | None
    ended_at: datetime | None
    status: AssignmentStatus
    phase: Phase
    planned_volume: float
    notes: str
    created_by: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LotRead(BaseModel):
    id: int
    lot_code: str
    planned_volume: float
    split_ratio: float | None
    notes: str
    created_by: str
    created_at: datetime
    completed_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class TransferRead(BaseModel):
    id: int
    transfer_code: str
    lot_id: int
    assignment_id: int
    from_tank_id: int
    to_tank_id: int
    planned_at: datetime
    executed_at: datetime | None
    notes: str
    created_by: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PlannedLotRead(BaseModel):
    lot_id: int
    lot_code: str
    assignment_id: int
    tank_id: int
    planned_start: datetime
    planned_end: datetime
    planned_volume: float
    phase: Phase
    batch_ids: list[int]
    warnings: list[str] = Field(default_factory=list)


class PlanResult(BaseModel):
    kind: Literal["fermentation", "split", "blend"]
    lots: list[PlannedLotRead]


class TouchedEntity(BaseModel):
    entity: Literal["TankAssignment", "Tank", "Lot", "Batch", "TransferPlan"]
    id: int
    status: str | None = None


class TransitionResult(BaseModel):
    assignment: AssignmentRead
    touched: list[TouchedEntity] = Field(default_factory=list)
