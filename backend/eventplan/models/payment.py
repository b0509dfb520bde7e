"""Payment model for tracking mobile-money charges."""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, func

from eventplan.core.database import Base
from eventplan.models.shared import UUIDType, generate_uuid


class PaymentStatus(str, Enum):
    """Payment status enum."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING


class PaymentMethod(str, Enum):
    """Supported mobile-money operators."""

    MTN_MOBILE_MONEY = "mtn_mobile_money"
    AIRTEL_MONEY = "airtel_money"


class Payment(Base):
    """Payment model - one row per charge attempt.

    A failed attempt is never reused: retrying creates a new row.
    """

    __tablename__ = "payments"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    event_id = Column(
        UUIDType, ForeignKey("events.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    account_id = Column(
        UUIDType, ForeignKey("accounts.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    subscription_id = Column(
        UUIDType, ForeignKey("subscriptions.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # What the charge is for
    plan_type = Column(String(50), nullable=True)
    intent = Column(String(20), nullable=True)

    # Payment details
    amount = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="XAF")
    method = Column(String(30), nullable=False)
    phone_number = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True)

    # Provider info
    transaction_reference = Column(String(255), nullable=True, index=True)

    # Extra data
    failure_reason = Column(Text, nullable=True)
    payment_metadata = Column(JSON, nullable=True, default=dict)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)
