from sqlalchemy.orm import Session

from backend.models.room import Room, room_treatment_assignments


class RoomRepository:
    def __init__(self, db: Session):
        self.db = db

    def lock(self, room_id: int) -> Room | None:
        """SELECT ... FOR UPDATE on one room; held until the transaction ends."""
        return self.db.query(Room).filter(Room.id == room_id).with_for_update().first()

    def list_for_branch(self, branch_id: int) -> list[Room]:
        return self.db.query(Room).filter(Room.branch_id == branch_id).order_by(Room.id.asc()).all()

    def list_certified(self, branch_id: int, treatment_id: int) -> list[Room]:
        return (
            self.db.query(Room)
            .join(room_treatment_assignments, room_treatment_assignments.c.room_id == Room.id)
            .filter(
                Room.branch_id == branch_id,
                room_treatment_assignments.c.treatment_id == treatment_id,
            )
            .order_by(Room.id.asc())
            .all()
        )
