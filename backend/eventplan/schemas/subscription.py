"""Subscription schemas.

Responses carry only ``plan_type``, ``payment_status`` and ``expires_at``.
When parsing, the older ``plan``, ``status`` and ``ends_at`` names are still
accepted as fallbacks.
"""

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from eventplan.models.subscription import SubscriptionPaymentStatus, SubscriptionState


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_id: UUID | None = None
    account_id: UUID
    plan_type: str = Field(validation_alias=AliasChoices("plan_type", "plan"))
    features: dict[str, bool] = Field(default_factory=dict)
    limits: dict[str, int] = Field(default_factory=dict)
    payment_status: SubscriptionPaymentStatus = Field(
        validation_alias=AliasChoices("payment_status", "status")
    )
    state: SubscriptionState = SubscriptionState.ACTIVE
    starts_at: datetime | None = None
    expires_at: datetime = Field(validation_alias=AliasChoices("expires_at", "ends_at"))
    canceled_at: datetime | None = None


class AccountSubscribeRequest(BaseModel):
    plan_id: str


class EventSubscribeRequest(BaseModel):
    plan_type: str
    payment_id: UUID | None = None


class UpgradeRequest(BaseModel):
    plan_type: str
    payment_id: UUID


class RenewRequest(BaseModel):
    payment_id: UUID


class SubscribeResponse(BaseModel):
    """Result of a subscribe call.

    ``requires_payment`` is false when the subscription was created directly
    (trial or zero-cost plan, or a completed payment was supplied).
    """

    requires_payment: bool
    subscription: SubscriptionResponse | None = None
    amount: int | None = None
    currency: str | None = None
