"""Read access to the master data the booking core consumes."""

from sqlalchemy.orm import Session

from backend.models.branch import Branch, Treatment
from backend.models.patient import Patient


class BranchRepository:
    """Branches, treatments and patients; the core never mutates them."""

    def __init__(self, db: Session):
        self.db = db

    def get_branch(self, branch_id: int) -> Branch | None:
        return self.db.get(Branch, branch_id)

    def list_branches(self, branch_id: int | None = None) -> list[Branch]:
        query = self.db.query(Branch)
        if branch_id is not None:
            query = query.filter(Branch.id == branch_id)
        return query.order_by(Branch.id.asc()).all()

    def get_treatment(self, treatment_id: int) -> Treatment | None:
        return self.db.get(Treatment, treatment_id)

    def get_patient(self, patient_id: int) -> Patient | None:
        return self.db.get(Patient, patient_id)
