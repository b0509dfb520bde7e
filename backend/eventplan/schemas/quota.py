from enum import Enum

from pydantic import BaseModel


class QuotaWarning(str, Enum):
    QUOTA_REACHED = "quota_reached"
    QUOTA_90 = "quota_90"
    QUOTA_80 = "quota_80"


class Quota(BaseModel):
    """Account-level event creation quota.

    ``remaining`` is ``None`` when the quota is unlimited.
    """

    base_quota: int
    topup_credits: int
    total_quota: int
    used: int
    remaining: int | None
    is_unlimited: bool
    percentage_used: float
    can_create: bool


class QuotaResponse(BaseModel):
    quota: Quota
    warning: QuotaWarning | None = None
