from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.lot import Lot


class TransferPlan(Base):
    __tablename__ = "transfer_plans"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    transfer_code: Mapped[str] = mapped_column(String(40), nullable=False)
    lot_id: Mapped[int] = mapped_column(ForeignKey("lots.id", ondelete="CASCADE"), nullable=False, index=True)
    assignment_id: Mapped[int] = mapped_column(ForeignKey("tank_assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    from_tank_id: Mapped[int] = mapped_column(ForeignKey("tanks.id"), nullable=False)
    to_tank_id: Mapped[int] = mapped_column(ForeignKey("tanks.id"), nullable=False)
    planned_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    executed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    notes: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[str] = mapped_column(String(40), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    lot: Mapped[Lot] = relationship(back_populates="transfers")
