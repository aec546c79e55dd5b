"""Room model definitions."""

from enum import Enum

from sqlalchemy import Column, ForeignKey, Integer, String, Table
from sqlalchemy.orm import relationship

from backend.database import Base
from backend.models.branch import Treatment


class RoomGender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    UNISEX = "Unisex"


room_treatment_assignments = Table(
    "room_treatment_assignments",
    Base.metadata,
    Column("room_id", Integer, ForeignKey("branch_rooms.id", ondelete="CASCADE"), primary_key=True),
    Column("treatment_id", Integer, ForeignKey("treatments.id", ondelete="CASCADE"), primary_key=True),
)


class Room(Base):
    """A treatment room inside a branch."""
    __tablename__ = "branch_rooms"

    id = Column(Integer, primary_key=True)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    gender = Column(String, nullable=False, default=RoomGender.UNISEX.value)

    treatments = relationship(Treatment, secondary=room_treatment_assignments)

    def accepts(self, patient_gender: str) -> bool:
        return self.gender in {RoomGender.UNISEX.value, patient_gender}
