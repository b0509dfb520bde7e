from sqlalchemy import Column, DateTime, ForeignKey, String, func

from eventplan.core.database import Base
from eventplan.models.shared import UUIDType, generate_uuid


class Event(Base):
    __tablename__ = "events"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    owner_id = Column(
        UUIDType,
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
