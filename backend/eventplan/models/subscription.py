from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, func

from eventplan.core.database import Base
from eventplan.models.shared import UUIDType, as_aware, generate_uuid, utc_now


class SubscriptionPaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class SubscriptionState(str, Enum):
    ACTIVE = "active"
    CANCELED = "canceled"


class ActivationIntent(str, Enum):
    NEW_SUBSCRIBE = "new-subscribe"
    UPGRADE = "upgrade"
    RENEW = "renew"


class Subscription(Base):
    """Plan entitlements owned by an account, for one event or account-wide.

    Account-level subscriptions (the trial) have no ``event_id``. Rows are never
    deleted; cancellation only moves ``state`` to canceled.
    """

    __tablename__ = "subscriptions"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    event_id = Column(
        UUIDType,
        ForeignKey("events.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    account_id = Column(
        UUIDType,
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    plan_type = Column(String(50), nullable=False)
    features = Column(JSON, nullable=False, default=dict)
    limits = Column(JSON, nullable=False, default=dict)
    payment_status = Column(
        String(20), nullable=False, default=SubscriptionPaymentStatus.PENDING.value
    )
    state = Column(String(20), nullable=False, default=SubscriptionState.ACTIVE.value, index=True)
    starts_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def is_authoritative(self, now: datetime | None = None) -> bool:
        """Features and limits only count while paid, not canceled and unexpired."""
        now = now or utc_now()
        return (
            self.payment_status == SubscriptionPaymentStatus.PAID.value
            and self.state == SubscriptionState.ACTIVE.value
            and now < as_aware(self.expires_at)  # type: ignore[arg-type]
        )
