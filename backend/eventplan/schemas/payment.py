"""Payment schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from eventplan.models.payment import PaymentMethod, PaymentStatus
from eventplan.models.subscription import ActivationIntent


class PaymentInitiate(BaseModel):
    """Schema for starting a mobile-money charge.

    Either ``plan_type`` (priced from the catalog) or an explicit ``amount``
    must be given. ``method`` is optional; it is detected from the phone
    number prefix when omitted.
    """

    event_id: UUID | None = None
    phone_number: str = Field(..., min_length=1, max_length=32)
    method: PaymentMethod | None = None
    plan_type: str | None = None
    amount: int | None = Field(default=None, gt=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    intent: ActivationIntent = ActivationIntent.NEW_SUBSCRIBE


class PaymentResponse(BaseModel):
    """Schema for payment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_id: UUID | None = None
    account_id: UUID
    subscription_id: UUID | None = None
    plan_type: str | None = None
    intent: str | None = None
    amount: int
    currency: str
    method: str
    phone_number: str
    status: PaymentStatus
    transaction_reference: str | None = None
    failure_reason: str | None = None
    payment_metadata: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None


class PaymentInitResponse(BaseModel):
    message: str
    payment: PaymentResponse
    reference: str | None = None
    provider: str


class PaymentPollResponse(BaseModel):
    payment: PaymentResponse
    is_completed: bool
    is_failed: bool
    is_pending: bool

