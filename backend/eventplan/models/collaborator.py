from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    func,
)

from eventplan.core.database import Base
from eventplan.models.shared import UUIDType, generate_uuid


class CustomRole(Base):
    """An event-scoped role whose capability list is the complete grant."""

    __tablename__ = "custom_roles"
    __table_args__ = (UniqueConstraint("event_id", "name", name="uq_custom_roles_event_name"),)

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    event_id = Column(
        UUIDType,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(100), nullable=False)
    permissions = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class EventCollaborator(Base):
    """Membership of an account on an event.

    Exactly one of ``system_roles`` and ``custom_role_id`` is set.
    """

    __tablename__ = "event_collaborators"
    __table_args__ = (
        UniqueConstraint("event_id", "account_id", name="uq_event_collaborators_event_account"),
        CheckConstraint(
            "(system_roles IS NULL) <> (custom_role_id IS NULL)",
            name="ck_event_collaborators_single_grant",
        ),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    event_id = Column(
        UUIDType,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_id = Column(
        UUIDType,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    system_roles = Column(JSON(none_as_null=True), nullable=True)
    custom_role_id = Column(
        UUIDType,
        ForeignKey("custom_roles.id", ondelete="RESTRICT"),
        nullable=True,
    )
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
