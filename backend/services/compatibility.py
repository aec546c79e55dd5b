from sqlalchemy.orm import Session

from backend.core.exceptions import InvalidInputError, NoCompatibleResourceError, NotFoundError
from backend.models.branch import Branch, Treatment
from backend.models.patient import PATIENT_GENDERS
from backend.models.room import Room
from backend.models.staff import Staff
from backend.repositories.branch_repository import BranchRepository
from backend.repositories.room_repository import RoomRepository
from backend.repositories.staff_repository import StaffRepository


def validate_patient_gender(patient_gender: str | None) -> str:
    normalized = (patient_gender or '').strip().capitalize()
    if normalized not in PATIENT_GENDERS:
        raise InvalidInputError(
            'Invalid patient gender. Must be Male or Female.',
            details={'patient_gender': patient_gender},
        )
    return normalized


class CompatibilityResolver:
    """Which rooms and staff of a branch may perform a treatment."""

    def __init__(
        self,
        branches: BranchRepository,
        rooms: RoomRepository,
        staff: StaffRepository,
    ):
        self.branches = branches
        self.rooms = rooms
        self.staff = staff

    @classmethod
    def for_session(cls, db: Session) -> 'CompatibilityResolver':
        return cls(BranchRepository(db), RoomRepository(db), StaffRepository(db))

    def require_branch(self, branch_id: int) -> Branch:
        branch = self.branches.get_branch(branch_id)
        if branch is None:
            raise NotFoundError('Branch not found', details={'branch_id': branch_id})
        return branch

    def require_treatment(self, treatment_id: int) -> Treatment:
        treatment = self.branches.get_treatment(treatment_id)
        if treatment is None:
            raise NotFoundError('Treatment not found', details={'treatment_id': treatment_id})
        return treatment

    def certified_staff(self, branch_id: int, treatment_id: int) -> list[Staff]:
        """Staff certified for the treatment, possibly empty."""
        self.require_branch(branch_id)
        self.require_treatment(treatment_id)
        return self.staff.list_certified(branch_id, treatment_id)

    def compatible_rooms(self, branch_id: int, treatment_id: int, patient_gender: str) -> list[Room]:
        self.require_branch(branch_id)
        self.require_treatment(treatment_id)
        gender = validate_patient_gender(patient_gender)

        rooms = [room for room in self.rooms.list_certified(branch_id, treatment_id) if room.accepts(gender)]
        if not rooms:
            raise NoCompatibleResourceError(
                'No compatible rooms found for this treatment and gender',
                details={'branch_id': branch_id, 'treatment_id': treatment_id, 'patient_gender': gender},
            )
        return rooms

    def compatible_staff(self, branch_id: int, treatment_id: int) -> list[Staff]:
        staff = self.certified_staff(branch_id, treatment_id)
        if not staff:
            raise NoCompatibleResourceError(
                'No available staff found for this treatment',
                details={'branch_id': branch_id, 'treatment_id': treatment_id},
            )
        return staff
