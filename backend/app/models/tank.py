from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Float, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.models.enums import TankStatus

if TYPE_CHECKING:
    from app.models.tank_assignment import TankAssignment


class Tank(Base):
    __tablename__ = "tanks"
    __table_args__ = (UniqueConstraint("tenant_id", "name", name="uq_tanks_tenant_name"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    capacity_liters: Mapped[float] = mapped_column(Float, nullable=False)
    min_fill_percent: Mapped[float] = mapped_column(Float, default=20.0, nullable=False)
    max_fill_percent: Mapped[float] = mapped_column(Float, default=95.0, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=TankStatus.AVAILABLE.value, nullable=False)
    location: Mapped[str | None] = mapped_column(String(120), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    assignments: Mapped[list[TankAssignment]] = relationship(back_populates="tank")
