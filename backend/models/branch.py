"""Branch and treatment model definitions."""

from sqlalchemy import Boolean, Column, Integer, JSON, String

from backend.database import Base


class Branch(Base):
    """A clinic location with weekly opening hours.

    ``opening_hours`` maps lowercase weekday names to ``{"open": "HH:MM",
    "close": "HH:MM"}`` or ``null`` when the branch is closed that day.
    """
    __tablename__ = "branches"

    id = Column(Integer, primary_key=True)
    external_id = Column(String, unique=True, nullable=True)
    name = Column(String, nullable=False)
    city = Column(String, nullable=True)
    opening_hours = Column(JSON, nullable=False, default=dict)
    is_open = Column(Boolean, nullable=False, default=True)


class Treatment(Base):
    """A therapy offered in one-hour sessions."""
    __tablename__ = "treatments"

    id = Column(Integer, primary_key=True)
    external_id = Column(String, unique=True, nullable=True)
    name = Column(String, nullable=False)
