"""Subscription repository for data access."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.orm import Query, Session

from eventplan.models.shared import utc_now
from eventplan.models.subscription import (
    Subscription,
    SubscriptionPaymentStatus,
    SubscriptionState,
)
from eventplan.services.plan_catalog import TRIAL_PLAN_CODE


class SubscriptionRepository:
    """Repository for Subscription model."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, subscription_id: UUID) -> Subscription | None:
        return self.db.query(Subscription).filter(Subscription.id == subscription_id).first()

    def get_latest_for_event(self, event_id: UUID) -> Subscription | None:
        """Most recent non-canceled subscription of an event, whatever its payment state."""
        return (
            self.db.query(Subscription)
            .filter(
                Subscription.event_id == event_id,
                Subscription.state == SubscriptionState.ACTIVE.value,
            )
            .order_by(Subscription.expires_at.desc())
            .first()
        )

    def get_authoritative_for_event(
        self, event_id: UUID, now: datetime | None = None
    ) -> Subscription | None:
        """The paid, active and unexpired subscription of an event, if any."""
        return self._authoritative(
            self.db.query(Subscription).filter(Subscription.event_id == event_id), now
        )

    def get_authoritative_for_account(
        self, account_id: UUID, now: datetime | None = None
    ) -> Subscription | None:
        """The paid, active and unexpired account-level subscription (not tied to an event)."""
        return self._authoritative(
            self.db.query(Subscription).filter(
                Subscription.account_id == account_id,
                Subscription.event_id.is_(None),
            ),
            now,
        )

    def _authoritative(
        self, query: Query[Subscription], now: datetime | None
    ) -> Subscription | None:
        now = now or utc_now()
        candidates = (
            query.filter(
                Subscription.payment_status == SubscriptionPaymentStatus.PAID.value,
                Subscription.state == SubscriptionState.ACTIVE.value,
            )
            .order_by(Subscription.expires_at.desc())
            .all()
        )
        # SQLite returns naive datetimes, so expiry is compared in Python
        for subscription in candidates:
            if subscription.is_authoritative(now):
                return subscription
        return None

    def fingerprint_for_event(self, event_id: UUID, owner_id: UUID) -> frozenset[tuple[Any, ...]]:
        """Summary of every row that can grant entitlements to an event.

        Any write that could change the event's entitlements changes the
        summary. JSON columns are left out; they only change with ``plan_type``.
        """
        rows = (
            self.db.query(
                Subscription.id,
                Subscription.plan_type,
                Subscription.payment_status,
                Subscription.state,
                Subscription.expires_at,
            )
            .filter(
                or_(
                    Subscription.event_id == event_id,
                    and_(Subscription.account_id == owner_id, Subscription.event_id.is_(None)),
                )
            )
            .all()
        )
        return frozenset(tuple(row) for row in rows)

    def has_used_trial(self, account_id: UUID) -> bool:
        return (
            self.db.query(Subscription)
            .filter(
                Subscription.account_id == account_id,
                Subscription.plan_type == TRIAL_PLAN_CODE,
            )
            .count()
            > 0
        )

    def cancel(self, subscription: Subscription) -> Subscription:
        subscription.state = SubscriptionState.CANCELED.value  # type: ignore[assignment]
        subscription.canceled_at = utc_now()  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(subscription)
        return subscription
