from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

UNLIMITED = -1


class Entitlements(BaseModel):
    """Feature flags and limits granted by the event owner's plan."""

    plan_type: str | None = None
    subscription_id: UUID | None = None
    expires_at: datetime | None = None
    is_active: bool = False
    is_trial: bool = False
    features: dict[str, bool] = Field(default_factory=dict)
    limits: dict[str, int] = Field(default_factory=dict)

    def has_feature(self, key: str) -> bool:
        return bool(self.features.get(key, False))

    def get_limit(self, key: str) -> int:
        return int(self.limits.get(key, 0))

    def is_unlimited(self, key: str) -> bool:
        return self.get_limit(key) == UNLIMITED
