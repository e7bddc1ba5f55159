from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Float, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.models.enums import AssignmentStatus, Phase

if TYPE_CHECKING:
    from app.models.lot import Lot
    from app.models.tank import Tank


class TankAssignment(Base):
    __tablename__ = "tank_assignments"
    __table_args__ = (Index("ix_tank_assignments_tank_status", "tenant_id", "tank_id", "status"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    lot_id: Mapped[int] = mapped_column(ForeignKey("lots.id", ondelete="CASCADE"), nullable=False, index=True)
    tank_id: Mapped[int] = mapped_column(ForeignKey("tanks.id"), nullable=False, index=True)
    planned_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    planned_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=AssignmentStatus.PLANNED.value, nullable=False)
    phase: Mapped[str] = mapped_column(String(20), default=Phase.FERMENTATION.value, nullable=False)
    planned_volume: Mapped[float] = mapped_column(Float, nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[str] = mapped_column(String(40), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    lot: Mapped[Lot] = relationship(back_populates="assignments")
    tank: Mapped[Tank] = relationship(back_populates="assignments")

    @property
    def effective_start(self) -> datetime:
        if self.status == AssignmentStatus.ACTIVE.value and self.started_at is not None:
            return self.started_at
        return self.planned_start

    @property
    def display_start(self) -> datetime:
        return self.started_at or self.planned_start

    @property
    def display_end(self) -> datetime:
        return self.ended_at or self.planned_end
