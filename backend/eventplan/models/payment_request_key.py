"""Client-chosen key naming one purchase attempt."""

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, func

from eventplan.core.database import Base
from eventplan.models.shared import UUIDType, generate_uuid


class PaymentRequestKey(Base):
    """Binds an ``Idempotency-Key`` to the charge the provider accepted for it."""

    __tablename__ = "payment_request_keys"
    __table_args__ = (
        UniqueConstraint(
            "account_id", "idempotency_key", name="uq_payment_request_keys_account_key"
        ),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    account_id = Column(
        UUIDType,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    idempotency_key = Column(String(255), nullable=False)
    payment_id = Column(
        UUIDType,
        ForeignKey("payments.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
