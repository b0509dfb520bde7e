from pydantic import BaseModel


class PlanResponse(BaseModel):
    code: str
    name: str
    price: int
    currency: str
    duration_days: int | None = None
    duration_months: int | None = None
    is_trial: bool
    requires_payment: bool
    features: dict[str, bool]
    limits: dict[str, int]


class TrialAvailability(BaseModel):
    available: bool
    plan: PlanResponse | None = None
