from uuid import UUID

from sqlalchemy.orm import Session

from eventplan.models.event import Event


class EventRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, event_id: UUID) -> Event | None:
        return self.db.query(Event).filter(Event.id == event_id).first()

    def count_by_owner(self, owner_id: UUID) -> int:
        return self.db.query(Event).filter(Event.owner_id == owner_id).count()

    def create(self, *, owner_id: UUID, name: str) -> Event:
        event = Event(owner_id=owner_id, name=name)
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event
