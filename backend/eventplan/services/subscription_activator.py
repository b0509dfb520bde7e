"""Applies completed payments to subscriptions.

Every activation is recorded against its payment id in
``subscription_activations``. The record and all subscription field changes
are committed together, so a reader sees either the whole change or none of
it, and a second activation for the same payment returns the stored result.
"""

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eventplan.core.errors import AccessDeniedError, ActivationError
from eventplan.models.event import Event
from eventplan.models.payment import Payment, PaymentStatus
from eventplan.models.shared import generate_uuid, utc_now
from eventplan.models.subscription import (
    ActivationIntent,
    Subscription,
    SubscriptionPaymentStatus,
)
from eventplan.models.subscription_activation import SubscriptionActivation
from eventplan.repositories.event_repository import EventRepository
from eventplan.repositories.payment_repository import PaymentRepository
from eventplan.repositories.subscription_activation_repository import (
    SubscriptionActivationRepository,
)
from eventplan.repositories.subscription_repository import SubscriptionRepository
from eventplan.schemas.actor import ActorContext
from eventplan.services.entitlement_service import EntitlementCache, entitlement_cache
from eventplan.services.plan_catalog import PlanDefinition, get_plan
from eventplan.services.subscription_dates import period_end, renewal_expiry

logger = logging.getLogger(__name__)


class SubscriptionActivator:
    def __init__(self, db: Session, cache: EntitlementCache | None = None):
        self.db = db
        self.cache = cache or entitlement_cache
        self.event_repo = EventRepository(db)
        self.payment_repo = PaymentRepository(db)
        self.subscription_repo = SubscriptionRepository(db)
        self.activation_repo = SubscriptionActivationRepository(db)

    def _owned_event(self, actor: ActorContext, event_id: UUID) -> Event:
        event = self.event_repo.get_by_id(event_id)
        if not event:
            raise ValueError(f"Event {event_id} not found")
        if event.owner_id != actor.account_id and not actor.is_admin:
            raise AccessDeniedError("Only the event owner can change its subscription")
        return event

    def _paid_subscription(
        self,
        plan: PlanDefinition,
        account_id: UUID,
        event_id: UUID | None,
    ) -> Subscription:
        now = utc_now()
        return Subscription(
            id=generate_uuid(),
            event_id=event_id,
            account_id=account_id,
            plan_type=plan.code,
            features=dict(plan.features),
            limits=dict(plan.limits),
            payment_status=SubscriptionPaymentStatus.PAID.value,
            starts_at=now,
            expires_at=period_end(plan, now),
        )

    def start_trial(self, actor: ActorContext, plan_code: str) -> Subscription:
        """Create an account-level subscription for a plan that needs no payment.

        Raises:
            ValueError: If the plan is unknown, needs payment, or the trial was already used.
        """
        plan = get_plan(plan_code)
        if plan.requires_payment:
            raise ValueError(f"Plan {plan_code} requires payment")
        if plan.is_trial and self.subscription_repo.has_used_trial(actor.account_id):
            raise ValueError("The free trial has already been used")

        subscription = self._paid_subscription(plan, actor.account_id, None)
        self.db.add(subscription)
        self.db.commit()
        self.db.refresh(subscription)
        self.cache.invalidate_owner(actor.account_id)
        logger.info("Account %s started plan %s", actor.account_id, plan.code)
        return subscription

    def subscribe_event(
        self,
        actor: ActorContext,
        event_id: UUID,
        plan_code: str,
        payment_id: UUID | None = None,
    ) -> Subscription | None:
        """Subscribe an event to a plan.

        Zero-cost plans are created immediately without any payment. Paid
        plans need a completed payment; without one, None is returned and the
        caller must start a payment first.
        """
        event = self._owned_event(actor, event_id)
        plan = get_plan(plan_code)
        if plan.is_trial:
            raise ValueError("The trial is an account plan, subscribe to it without an event")

        if not plan.requires_payment:
            subscription = self._paid_subscription(
                plan, event.owner_id, event_id  # type: ignore[arg-type]
            )
            self.db.add(subscription)
            self.db.commit()
            self.db.refresh(subscription)
            self.cache.invalidate(event_id)
            return subscription

        if payment_id is None:
            return None
        self._check_payment(payment_id, event_id, plan_code)
        return self.activate(payment_id, ActivationIntent.NEW_SUBSCRIBE)

    def upgrade(
        self, actor: ActorContext, event_id: UUID, plan_code: str, payment_id: UUID
    ) -> Subscription:
        self._owned_event(actor, event_id)
        get_plan(plan_code)
        self._check_payment(payment_id, event_id, plan_code)
        return self.activate(payment_id, ActivationIntent.UPGRADE)

    def renew(self, actor: ActorContext, event_id: UUID, payment_id: UUID) -> Subscription:
        self._owned_event(actor, event_id)
        self._check_payment(payment_id, event_id, None)
        return self.activate(payment_id, ActivationIntent.RENEW)

    def cancel(self, actor: ActorContext, event_id: UUID) -> Subscription:
        """Mark the event's subscription canceled. The row is kept."""
        self._owned_event(actor, event_id)
        subscription = self.subscription_repo.get_latest_for_event(event_id)
        if not subscription:
            raise ValueError(f"Event {event_id} has no active subscription")
        subscription = self.subscription_repo.cancel(subscription)
        self.cache.invalidate(event_id)
        logger.info("Subscription %s canceled", subscription.id)
        return subscription

    def _check_payment(self, payment_id: UUID, event_id: UUID, plan_code: str | None) -> None:
        payment = self.payment_repo.get_by_id(payment_id)
        if not payment:
            raise ValueError(f"Payment {payment_id} not found")
        if payment.event_id != event_id:
            raise ActivationError("Payment does not belong to this event")
        if plan_code is not None and payment.plan_type and payment.plan_type != plan_code:
            raise ActivationError(f"Payment was made for plan {payment.plan_type}")

    def activate(self, payment_id: UUID, intent: ActivationIntent) -> Subscription:
        """Apply a completed payment. Safe to call more than once per payment.

        Raises:
            ValueError: If the payment does not exist.
            ActivationError: If the payment is not completed, was made for another
                intent, or there is no subscription to upgrade or renew.
        """
        existing = self._already_activated(payment_id)
        if existing is not None:
            return existing

        payment = self.payment_repo.get_by_id(payment_id)
        if not payment:
            raise ValueError(f"Payment {payment_id} not found")
        if payment.status != PaymentStatus.COMPLETED.value:
            raise ActivationError(f"Payment {payment_id} is {payment.status}, not completed")
        if payment.intent and payment.intent != intent.value:
            raise ActivationError(f"Payment {payment_id} was made to {payment.intent}")
        if payment.event_id is None:
            raise ActivationError(f"Payment {payment_id} is not tied to an event")

        event_id: UUID = payment.event_id  # type: ignore[assignment]
        subscription = self._apply(payment, intent, event_id)

        self.db.add(
            SubscriptionActivation(
                payment_id=payment_id,
                subscription_id=subscription.id,
                intent=intent.value,
            )
        )
        payment.subscription_id = subscription.id
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent activation of the same payment
            self.db.rollback()
            existing = self._already_activated(payment_id)
            if existing is None:
                raise
            return existing

        self.db.refresh(subscription)
        self.cache.invalidate(event_id)
        logger.info(
            "Activated %s for subscription %s with payment %s",
            intent.value,
            subscription.id,
            payment_id,
        )
        return subscription

    def _already_activated(self, payment_id: UUID) -> Subscription | None:
        activation = self.activation_repo.get_by_payment_id(payment_id)
        if activation is None:
            return None
        logger.info("Payment %s already activated, returning current state", payment_id)
        return self.subscription_repo.get_by_id(activation.subscription_id)  # type: ignore[arg-type]

    def _apply(self, payment: Payment, intent: ActivationIntent, event_id: UUID) -> Subscription:
        """Stage the subscription changes for ``intent`` without committing."""
        if intent == ActivationIntent.NEW_SUBSCRIBE:
            event = self.event_repo.get_by_id(event_id)
            if not event:
                raise ValueError(f"Event {event_id} not found")
            if not payment.plan_type:
                raise ActivationError(f"Payment {payment.id} carries no plan")
            subscription = self._paid_subscription(
                get_plan(str(payment.plan_type)),
                event.owner_id,  # type: ignore[arg-type]
                event_id,
            )
            self.db.add(subscription)
            return subscription

        current = self.subscription_repo.get_latest_for_event(event_id)
        if current is None:
            raise ActivationError(f"Event {event_id} has no subscription to {intent.value}")

        if intent == ActivationIntent.UPGRADE:
            if not payment.plan_type:
                raise ActivationError(f"Payment {payment.id} carries no plan")
            plan = get_plan(str(payment.plan_type))
            current.plan_type = plan.code  # type: ignore[assignment]
            current.features = dict(plan.features)  # type: ignore[assignment]
            current.limits = dict(plan.limits)  # type: ignore[assignment]
        else:
            plan = get_plan(str(payment.plan_type or current.plan_type))
            current.expires_at = renewal_expiry(  # type: ignore[assignment]
                plan, current.expires_at, utc_now()  # type: ignore[arg-type]
            )

        current.payment_status = SubscriptionPaymentStatus.PAID.value  # type: ignore[assignment]
        return current


def activate_completed_payment(
    db: Session, payment: Payment, cache: EntitlementCache | None = None
) -> Subscription | None:
    """Activate a payment confirmed outside the client flow (callback or reconciliation).

    Payments that cannot be applied are logged and left for the client.
    """
    if payment.status != PaymentStatus.COMPLETED.value or not payment.intent:
        return None
    try:
        return SubscriptionActivator(db, cache).activate(
            payment.id,  # type: ignore[arg-type]
            ActivationIntent(payment.intent),
        )
    except (ActivationError, ValueError) as exc:
        logger.warning("Could not activate payment %s: %s", payment.id, exc)
        return None
