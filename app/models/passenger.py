"""
Smart Seat Exchange: Passenger model.
"""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Passenger(Base):
    __tablename__ = "passengers"
    __table_args__ = (
        CheckConstraint("group_size >= 1", name="ck_passenger_group_size"),
        CheckConstraint("coach_index IS NULL OR coach_index >= 0", name="ck_passenger_coach"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    pnr: Mapped[str] = mapped_column(
        String(10), unique=True, index=True, nullable=False, comment="10-digit PNR"
    )

    # ── Seat metadata (the only mutable part of a passenger) ─────────
    seat_type: Mapped[str | None] = mapped_column(
        String(32), nullable=True, comment="lower / middle / upper / side_lower / side_upper"
    )
    coach_index: Mapped[int | None] = mapped_column(
        Integer, nullable=True, comment="0-based position of the coach in the rake"
    )
    group_size: Mapped[int] = mapped_column(
        Integer, default=1, server_default="1", nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False
    )

    def __repr__(self) -> str:
        return f"<Passenger pnr={self.pnr!r} id={self.id}>"
