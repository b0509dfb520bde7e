"""Subscription period arithmetic."""

import calendar as cal
from datetime import datetime, timedelta

from eventplan.models.shared import as_aware
from eventplan.services.plan_catalog import PlanDefinition


def _add_months(dt: datetime, months: int) -> datetime:
    """Add months to a datetime, clamping to last day of month."""
    month = dt.month - 1 + months
    year = dt.year + month // 12
    month = month % 12 + 1
    max_day = cal.monthrange(year, month)[1]
    day = min(dt.day, max_day)
    return dt.replace(year=year, month=month, day=day)


def period_end(plan: PlanDefinition, start: datetime) -> datetime:
    """End of one billing period of ``plan`` starting at ``start``."""
    if plan.duration_days is not None:
        return start + timedelta(days=plan.duration_days)
    if plan.duration_months is not None:
        return _add_months(start, plan.duration_months)
    raise ValueError(f"Plan {plan.code} has no billing period")


def renewal_expiry(plan: PlanDefinition, current_expires_at: datetime, now: datetime) -> datetime:
    """New expiry after renewing.

    The period is added to whichever is later of now and the current expiry,
    so renewing early never loses remaining time and renewing late never
    backdates the new period.
    """
    base = max(as_aware(now), as_aware(current_expires_at))
    return period_end(plan, base)
