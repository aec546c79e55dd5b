from sqlalchemy.orm import Session

from backend.models.staff import Staff, staff_treatment_assignments


class StaffRepository:
    def __init__(self, db: Session):
        self.db = db

    def lock(self, staff_id: int) -> Staff | None:
        """SELECT ... FOR UPDATE on one staff row; held until the transaction ends."""
        return self.db.query(Staff).filter(Staff.id == staff_id).with_for_update().first()

    def list_all(self) -> list[Staff]:
        return self.db.query(Staff).order_by(Staff.id.asc()).all()

    def list_certified(self, branch_id: int, treatment_id: int) -> list[Staff]:
        return (
            self.db.query(Staff)
            .join(staff_treatment_assignments, staff_treatment_assignments.c.staff_id == Staff.id)
            .filter(
                Staff.branch_id == branch_id,
                staff_treatment_assignments.c.treatment_id == treatment_id,
            )
            .order_by(Staff.id.asc())
            .all()
        )

    def save_availability(self, staff: Staff, availability: dict) -> None:
        # Assign a new object so the JSON column is flagged dirty.
        staff.availability = dict(availability)
        self.db.add(staff)
