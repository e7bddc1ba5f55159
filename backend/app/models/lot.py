from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Float, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.batch import Batch
    from app.models.tank_assignment import TankAssignment
    from app.models.transfer import TransferPlan


class Lot(Base):
    __tablename__ = "lots"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    lot_code: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    planned_volume: Mapped[float] = mapped_column(Float, nullable=False)
    split_ratio: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[str] = mapped_column(String(40), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    batch_links: Mapped[list[LotBatch]] = relationship(back_populates="lot", order_by="LotBatch.id")
    assignments: Mapped[list[TankAssignment]] = relationship(back_populates="lot", order_by="TankAssignment.id")
    transfers: Mapped[list[TransferPlan]] = relationship(back_populates="lot", order_by="TransferPlan.id")


class LotBatch(Base):
    __tablename__ = "lot_batches"
    __table_args__ = (UniqueConstraint("lot_id", "batch_id", name="uq_lot_batches_lot_batch"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    lot_id: Mapped[int] = mapped_column(ForeignKey("lots.id", ondelete="CASCADE"), nullable=False, index=True)
    batch_id: Mapped[int] = mapped_column(ForeignKey("batches.id", ondelete="CASCADE"), nullable=False, index=True)
    volume_portion: Mapped[float] = mapped_column(Float, nullable=False)
    batch_percentage: Mapped[float] = mapped_column(Float, default=100.0, nullable=False)

    lot: Mapped[Lot] = relationship(back_populates="batch_links")
    batch: Mapped[Batch] = relationship(back_populates="lot_links")
