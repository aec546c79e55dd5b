"""Booking model definitions."""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time, text

from backend.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PLANNED = "Planned"
    COMPLETED = "Completed"
    NO_SHOW = "No-show"
    CONFLICT = "Conflict"
    CANCELLED = "Cancelled"


BOOKING_STATUSES = [booking_status.value for booking_status in BookingStatus]

_ACTIVE_ROW = text("status <> 'Cancelled'")


class Booking(Base):
    """A one-hour therapy session.

    Either ``patient_id`` references a patient record or the intake fields
    (``patient_name``, ``phone``, ``patient_gender``) describe the patient.
    """
    __tablename__ = "bookings"
    __table_args__ = (
        # Exact-start guard only; overlaps are prevented by the locked re-check.
        Index(
            "uq_booking_room_time",
            "room_id",
            "date",
            "start_time",
            unique=True,
            postgresql_where=_ACTIVE_ROW,
            sqlite_where=_ACTIVE_ROW,
        ),
    )

    id = Column(Integer, primary_key=True)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False)
    room_id = Column(Integer, ForeignKey("branch_rooms.id", ondelete="RESTRICT"), nullable=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="RESTRICT"), nullable=True)
    treatment_id = Column(Integer, ForeignKey("treatments.id", ondelete="RESTRICT"), nullable=False)
    patient_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    patient_gender = Column(String, nullable=True)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=True)
    status = Column(String, nullable=False, default=BookingStatus.PLANNED.value)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)
