"""Repository for event collaborators and custom roles."""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.orm import Session

from eventplan.models.collaborator import CustomRole, EventCollaborator


class CollaboratorRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_membership(self, event_id: UUID, account_id: UUID) -> EventCollaborator | None:
        return (
            self.db.query(EventCollaborator)
            .filter(
                EventCollaborator.event_id == event_id,
                EventCollaborator.account_id == account_id,
            )
            .first()
        )

    def get_custom_role(self, custom_role_id: UUID) -> CustomRole | None:
        return self.db.query(CustomRole).filter(CustomRole.id == custom_role_id).first()

    def create_custom_role(self, *, event_id: UUID, name: str, permissions: list[str]) -> CustomRole:
        role = CustomRole(event_id=event_id, name=name, permissions=list(permissions))
        self.db.add(role)
        self.db.commit()
        self.db.refresh(role)
        return role

    def add_with_system_roles(
        self, *, event_id: UUID, account_id: UUID, roles: list[str]
    ) -> EventCollaborator:
        if not roles:
            raise ValueError("At least one system role is required")
        return self._add(
            EventCollaborator(
                event_id=event_id,
                account_id=account_id,
                system_roles=list(roles),
                accepted_at=datetime.now(UTC),
            )
        )

    def add_with_custom_role(
        self, *, event_id: UUID, account_id: UUID, custom_role_id: UUID
    ) -> EventCollaborator:
        return self._add(
            EventCollaborator(
                event_id=event_id,
                account_id=account_id,
                custom_role_id=custom_role_id,
                accepted_at=datetime.now(UTC),
            )
        )

    def _add(self, collaborator: EventCollaborator) -> EventCollaborator:
        self.db.add(collaborator)
        self.db.commit()
        self.db.refresh(collaborator)
        return collaborator
