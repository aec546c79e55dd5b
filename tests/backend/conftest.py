import os
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')

from backend.database import Base  # noqa: E402
from backend.models.availability import GridCell  # noqa: E402,F401
from backend.models.booking import Booking  # noqa: E402,F401
from backend.models.branch import Branch, Treatment  # noqa: E402
from backend.models.patient import Patient  # noqa: E402
from backend.models.room import Room  # noqa: E402
from backend.models.staff import Staff  # noqa: E402

WEEKDAY_HOURS = {'open': '06:00', 'close': '20:00'}
STANDARD_HOURS = {
    'monday': WEEKDAY_HOURS,
    'tuesday': WEEKDAY_HOURS,
    'wednesday': WEEKDAY_HOURS,
    'thursday': WEEKDAY_HOURS,
    'friday': WEEKDAY_HOURS,
    'saturday': {'open': '08:00', 'close': '18:00'},
    'sunday': None,
}


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


class ClinicBuilder:
    """Creates master data rows for a test."""

    def __init__(self, session):
        self.session = session

    def _save(self, row):
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def branch(self, name='Central', opening_hours=None, is_open=True) -> Branch:
        hours = STANDARD_HOURS if opening_hours is None else opening_hours
        return self._save(Branch(name=name, opening_hours=hours, is_open=is_open))

    def treatment(self, name='Physiotherapy') -> Treatment:
        return self._save(Treatment(name=name))

    def room(self, branch: Branch, name='R1', gender='Unisex', treatments=()) -> Room:
        room = Room(branch_id=branch.id, name=name, gender=gender)
        room.treatments.extend(treatments)
        return self._save(room)

    def staff(self, branch: Branch, name='S1', availability=None, treatments=()) -> Staff:
        member = Staff(branch_id=branch.id, name=name, availability=availability or {})
        member.treatments.extend(treatments)
        return self._save(member)

    def patient(self, name='Patient', gender='Female') -> Patient:
        return self._save(Patient(name=name, gender=gender))


@pytest.fixture
def clinic(db):
    return ClinicBuilder(db)


@pytest.fixture
def scenario(clinic):
    """Branch open Mon-Fri 06:00-20:00, Sat 08:00-18:00, closed Sunday."""
    branch = clinic.branch()
    treatment = clinic.treatment()
    r1 = clinic.room(branch, name='R1', gender='Unisex', treatments=[treatment])
    s1 = clinic.staff(branch, name='S1', availability={'monday': ['09:00']}, treatments=[treatment])

    return SimpleNamespace(branch=branch, treatment=treatment, r1=r1, s1=s1)