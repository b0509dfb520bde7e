from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from eventplan.core.database import Base
from eventplan.models.shared import UUIDType, generate_uuid


class AccountRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class Account(Base):
    __tablename__ = "accounts"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=AccountRole.USER.value)

    # Event creation quota
    base_quota = Column(Integer, nullable=False, default=1)
    topup_credits = Column(Integer, nullable=False, default=0)
    is_unlimited = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN.value
