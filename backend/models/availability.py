"""Room availability grid model definitions."""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Time, UniqueConstraint

from backend.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SlotStatus(str, Enum):
    AVAILABLE = "Available"
    BOOKED = "Booked"
    UNAVAILABLE = "Unavailable"


class GridCell(Base):
    """Occupancy of one room for one half-hour mark on one date."""
    __tablename__ = "room_availability_slots"
    __table_args__ = (
        UniqueConstraint("room_id", "date", "time_slot", name="uq_room_slot"),
    )

    id = Column(Integer, primary_key=True)
    branch_id = Column(Integer, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False)
    room_id = Column(Integer, ForeignKey("branch_rooms.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    time_slot = Column(Time, nullable=False)
    status = Column(String, nullable=False, default=SlotStatus.AVAILABLE.value)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)
