"""Account-level event creation quota."""

from uuid import UUID

from sqlalchemy.orm import Session

from eventplan.repositories.account_repository import AccountRepository
from eventplan.repositories.event_repository import EventRepository
from eventplan.schemas.quota import Quota, QuotaResponse, QuotaWarning


def compute_quota(base_quota: int, topup_credits: int, used: int, is_unlimited: bool) -> Quota:
    total = base_quota + topup_credits
    remaining = None if is_unlimited else max(0, total - used)
    percentage = 0.0 if is_unlimited or total <= 0 else round(used * 100 / total, 2)
    return Quota(
        base_quota=base_quota,
        topup_credits=topup_credits,
        total_quota=total,
        used=used,
        remaining=remaining,
        is_unlimited=is_unlimited,
        percentage_used=percentage,
        can_create=is_unlimited or (remaining is not None and remaining > 0),
    )


def classify_warning(quota: Quota) -> QuotaWarning | None:
    """First matching threshold wins: reached, then 90%, then 80%."""
    if quota.is_unlimited:
        return None
    if quota.remaining is not None and quota.remaining <= 0:
        return QuotaWarning.QUOTA_REACHED
    total = quota.total_quota
    if total <= 0:
        return None
    if quota.used * 100 >= 90 * total:
        return QuotaWarning.QUOTA_90
    if quota.used * 100 >= 80 * total:
        return QuotaWarning.QUOTA_80
    return None


class QuotaService:
    def __init__(self, db: Session):
        self.db = db
        self.account_repo = AccountRepository(db)
        self.event_repo = EventRepository(db)

    def quota_for(self, account_id: UUID) -> QuotaResponse:
        """Raises ValueError if the account does not exist."""
        account = self.account_repo.get_by_id(account_id)
        if not account:
            raise ValueError(f"Account {account_id} not found")
        quota = compute_quota(
            base_quota=int(account.base_quota),
            topup_credits=int(account.topup_credits),
            used=self.event_repo.count_by_owner(account_id),
            is_unlimited=bool(account.is_unlimited),
        )
        return QuotaResponse(quota=quota, warning=classify_warning(quota))
