"""Record of a payment having been applied to a subscription."""

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, func

from eventplan.core.database import Base
from eventplan.models.shared import UUIDType, generate_uuid


class SubscriptionActivation(Base):
    __tablename__ = "subscription_activations"
    __table_args__ = (UniqueConstraint("payment_id", name="uq_subscription_activations_payment"),)

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    payment_id = Column(
        UUIDType,
        ForeignKey("payments.id", ondelete="RESTRICT"),
        nullable=False,
    )
    subscription_id = Column(
        UUIDType,
        ForeignKey("subscriptions.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    intent = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
