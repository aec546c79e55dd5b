"""Staff model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, JSON, String, Table
from sqlalchemy.orm import relationship

from backend.database import Base
from backend.models.branch import Treatment


staff_treatment_assignments = Table(
    "staff_treatment_assignments",
    Base.metadata,
    Column("staff_id", Integer, ForeignKey("staff.id", ondelete="CASCADE"), primary_key=True),
    Column("treatment_id", Integer, ForeignKey("treatments.id", ondelete="CASCADE"), primary_key=True),
)


class Staff(Base):
    """A therapist.

    ``availability`` keeps the stored schedule as JSON: weekday keys hold the
    recurring start times, ISO date keys override them for a single day.
    """
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    gender = Column(String, nullable=True)
    role = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    availability = Column(JSON, nullable=False, default=dict)

    treatments = relationship(Treatment, secondary=staff_treatment_assignments)
