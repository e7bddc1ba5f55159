from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.models.enums import BatchStatus

if TYPE_CHECKING:
    from app.models.lot import LotBatch


class Batch(Base):
    __tablename__ = "batches"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    batch_number: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    recipe_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    volume_liters: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=BatchStatus.PLANNED.value, nullable=False)
    original_gravity: Mapped[float | None] = mapped_column(Float, nullable=True)
    final_gravity: Mapped[float | None] = mapped_column(Float, nullable=True)
    calculated_abv: Mapped[float | None] = mapped_column(Float, nullable=True)
    brewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[str] = mapped_column(String(40), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    readings: Mapped[list[GravityReading]] = relationship(back_populates="batch")
    timeline: Mapped[list[BatchTimeline]] = relationship(back_populates="batch")
    lot_links: Mapped[list[LotBatch]] = relationship(back_populates="batch")


class GravityReading(Base):
    __tablename__ = "gravity_readings"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    batch_id: Mapped[int] = mapped_column(ForeignKey("batches.id", ondelete="CASCADE"), nullable=False, index=True)
    gravity: Mapped[float] = mapped_column(Float, nullable=False)
    temperature: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str] = mapped_column(Text, default="")
    recorded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    recorded_by: Mapped[str] = mapped_column(String(40), nullable=False)

    batch: Mapped[Batch] = relationship(back_populates="readings")


class BatchTimeline(Base):
    __tablename__ = "batch_timeline"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    batch_id: Mapped[int] = mapped_column(ForeignKey("batches.id", ondelete="CASCADE"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    title: Mapped[str] = mapped_column(String(140), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_by: Mapped[str] = mapped_column(String(40), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    batch: Mapped[Batch] = relationship(back_populates="timeline")
