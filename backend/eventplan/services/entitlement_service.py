"""Entitlement source: the event owner's plan features and limits."""

import logging
import threading
from typing import Any, NamedTuple
from uuid import UUID

from cachetools import TTLCache
from sqlalchemy.orm import Session

from eventplan.core.config import settings
from eventplan.models.shared import as_aware, utc_now
from eventplan.models.subscription import Subscription
from eventplan.repositories.event_repository import EventRepository
from eventplan.repositories.subscription_repository import SubscriptionRepository
from eventplan.schemas.entitlement import Entitlements
from eventplan.services.plan_catalog import PLANS

logger = logging.getLogger(__name__)


class CachedEntitlements(NamedTuple):
    owner_id: UUID
    fingerprint: frozenset[tuple[Any, ...]]
    entitlements: Entitlements


class EntitlementCache:
    """Short-lived per-event entitlement snapshots.

    Entries remember the owning account so account-level changes (a trial
    starting) can drop every event of that owner at once. They also keep the
    subscription fingerprint they were built from, so a reader can tell when
    another process has changed the rows since.
    """

    def __init__(
        self,
        maxsize: int = settings.ENTITLEMENTS_CACHE_MAXSIZE,
        ttl: float = settings.ENTITLEMENTS_CACHE_TTL_SECONDS,
    ):
        self._cache: TTLCache[UUID, CachedEntitlements] = TTLCache(
            maxsize=maxsize, ttl=ttl
        )
        self._lock = threading.Lock()

    def get(self, event_id: UUID) -> Entitlements | None:
        entry = self.get_entry(event_id)
        return entry.entitlements if entry else None

    def get_entry(self, event_id: UUID) -> CachedEntitlements | None:
        with self._lock:
            return self._cache.get(event_id)

    def set(
        self,
        event_id: UUID,
        owner_id: UUID,
        entitlements: Entitlements,
        fingerprint: frozenset[tuple[Any, ...]] = frozenset(),
    ) -> None:
        with self._lock:
            self._cache[event_id] = CachedEntitlements(owner_id, fingerprint, entitlements)

    def invalidate(self, event_id: UUID) -> None:
        with self._lock:
            self._cache.pop(event_id, None)

    def invalidate_owner(self, owner_id: UUID) -> None:
        with self._lock:
            stale = [key for key, entry in self._cache.items() if entry.owner_id == owner_id]
            for key in stale:
                self._cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()


entitlement_cache = EntitlementCache()


def get_entitlement_cache() -> EntitlementCache:
    return entitlement_cache


def entitlements_from_subscription(subscription: Subscription | None) -> Entitlements:
    """Snapshot a subscription. No subscription means no features and zero limits."""
    if subscription is None:
        return Entitlements()
    plan = PLANS.get(str(subscription.plan_type))
    return Entitlements(
        plan_type=str(subscription.plan_type),
        subscription_id=subscription.id,  # type: ignore[arg-type]
        expires_at=subscription.expires_at,  # type: ignore[arg-type]
        is_active=True,
        is_trial=bool(plan and plan.is_trial),
        features=dict(subscription.features or {}),
        limits=dict(subscription.limits or {}),
    )


class EntitlementService:
    def __init__(self, db: Session, cache: EntitlementCache | None = None):
        self.db = db
        self.cache = cache or entitlement_cache
        self.event_repo = EventRepository(db)
        self.subscription_repo = SubscriptionRepository(db)

    def entitlements_for_event(self, event_id: UUID) -> Entitlements:
        """Entitlements granted to an event by its owner's plan.

        The event's own paid subscription wins; otherwise the owner's
        account-level subscription (the trial) applies. Collaborators always
        see the owner's plan, never their own.

        A cached snapshot is only served while its subscription is unexpired
        and the subscription rows still match the ones it was built from.

        Raises:
            ValueError: If the event does not exist.
        """
        entry = self.cache.get_entry(event_id)
        if entry is not None and self._is_fresh(event_id, entry):
            return entry.entitlements

        event = self.event_repo.get_by_id(event_id)
        if not event:
            raise ValueError(f"Event {event_id} not found")
        owner_id: UUID = event.owner_id  # type: ignore[assignment]

        # Taken first, so a concurrent write can only make the entry look stale
        fingerprint = self.subscription_repo.fingerprint_for_event(event_id, owner_id)

        subscription = self.subscription_repo.get_authoritative_for_event(event_id)
        if subscription is None:
            subscription = self.subscription_repo.get_authoritative_for_account(owner_id)
        if subscription is None:
            logger.debug("Event %s has no authoritative subscription", event_id)

        entitlements = entitlements_from_subscription(subscription)
        self.cache.set(event_id, owner_id, entitlements, fingerprint)
        return entitlements

    def _is_fresh(self, event_id: UUID, entry: CachedEntitlements) -> bool:
        expires_at = entry.entitlements.expires_at
        if expires_at is not None and as_aware(expires_at) <= utc_now():
            return False
        # The worker activates payments from another process with its own cache
        current = self.subscription_repo.fingerprint_for_event(event_id, entry.owner_id)
        return current == entry.fingerprint
