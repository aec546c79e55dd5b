"""Patient model definitions."""

from enum import Enum

from sqlalchemy import Column, Integer, String

from backend.database import Base


class PatientGender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


PATIENT_GENDERS = {gender.value for gender in PatientGender}


class Patient(Base):
    """Represents a registered patient."""
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    gender = Column(String, nullable=False)
    phone = Column(String, nullable=True)
