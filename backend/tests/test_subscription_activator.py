"""Tests for applying completed payments to subscriptions."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from eventplan.core.errors import AccessDeniedError, ActivationError
from eventplan.models.payment import Payment
from eventplan.models.shared import as_aware
from eventplan.models.subscription import (
    ActivationIntent,
    Subscription,
    SubscriptionPaymentStatus,
    SubscriptionState,
)
from eventplan.models.subscription_activation import SubscriptionActivation
from eventplan.schemas.actor import ActorContext
from eventplan.schemas.entitlement import Entitlements
from eventplan.services.entitlement_service import EntitlementCache
from eventplan.services.subscription_activator import (
    SubscriptionActivator,
    activate_completed_payment,
)
from eventplan.services.plan_catalog import get_plan
from eventplan.services.subscription_dates import _add_months, renewal_expiry
from tests.conftest import make_event, make_payment, make_subscription


class TestSubscriptionDates:
    def test_add_months_clamps_to_month_end(self):
        assert _add_months(datetime(2026, 10, 31, tzinfo=UTC), 4) == datetime(
            2027, 2, 28, tzinfo=UTC
        )

    def test_renewal_extends_from_future_expiry(self):
        now = datetime(2026, 10, 18, tzinfo=UTC)
        expires = datetime(2026, 12, 1, tzinfo=UTC)
        assert renewal_expiry(get_plan("starter"), expires, now) == datetime(
            2027, 4, 1, tzinfo=UTC
        )

    def test_renewal_after_expiry_starts_now(self):
        now = datetime(2026, 10, 18, tzinfo=UTC)
        expired = datetime(2026, 1, 1)
        assert renewal_expiry(get_plan("starter"), expired, now) == datetime(
            2027, 2, 18, tzinfo=UTC
        )


class TestStartTrial:
    def test_trial_is_account_level(self, db_session: Session, owner):
        subscription = SubscriptionActivator(db_session).start_trial(
            ActorContext(owner.id), "trial"
        )

        assert subscription.event_id is None
        assert subscription.plan_type == "trial"
        assert subscription.payment_status == SubscriptionPaymentStatus.PAID.value
        duration = as_aware(subscription.expires_at) - as_aware(subscription.starts_at)
        assert duration == timedelta(days=14)

    def test_trial_only_once(self, db_session: Session, owner):
        activator = SubscriptionActivator(db_session)
        activator.start_trial(ActorContext(owner.id), "trial")

        with pytest.raises(ValueError, match="already been used"):
            activator.start_trial(ActorContext(owner.id), "trial")

    def test_paid_plan_is_rejected(self, db_session: Session, owner):
        with pytest.raises(ValueError, match="requires payment"):
            SubscriptionActivator(db_session).start_trial(ActorContext(owner.id), "pro")


class TestSubscribeEvent:
    def test_paid_plan_without_payment(self, db_session: Session, owner, event):
        result = SubscriptionActivator(db_session).subscribe_event(
            ActorContext(owner.id), event.id, "starter"
        )

        assert result is None
        assert db_session.query(Subscription).count() == 0

    def test_paid_plan_with_completed_payment(self, db_session: Session, owner, event):
        payment = make_payment(db_session, owner, event, "starter")

        subscription = SubscriptionActivator(db_session).subscribe_event(
            ActorContext(owner.id), event.id, "starter", payment.id
        )

        assert subscription is not None
        assert subscription.event_id == event.id
        assert subscription.plan_type == "starter"
        assert subscription.features["guests.import"] is True

    def test_payment_for_another_plan(self, db_session: Session, owner, event):
        payment = make_payment(db_session, owner, event, "starter")

        with pytest.raises(ActivationError, match="plan starter"):
            SubscriptionActivator(db_session).subscribe_event(
                ActorContext(owner.id), event.id, "pro", payment.id
            )

    def test_payment_for_another_event(self, db_session: Session, owner, event):
        other_event = make_event(db_session, owner, "Bapteme")
        payment = make_payment(db_session, owner, other_event, "starter")

        with pytest.raises(ActivationError, match="does not belong"):
            SubscriptionActivator(db_session).subscribe_event(
                ActorContext(owner.id), event.id, "starter", payment.id
            )

    def test_trial_cannot_be_attached_to_an_event(self, db_session: Session, owner, event):
        with pytest.raises(ValueError, match="account plan"):
            SubscriptionActivator(db_session).subscribe_event(
                ActorContext(owner.id), event.id, "trial"
            )

    def test_only_owner(self, db_session: Session, event, collaborator):
        with pytest.raises(AccessDeniedError):
            SubscriptionActivator(db_session).subscribe_event(
                ActorContext(collaborator.id), event.id, "starter"
            )

    def test_unknown_event(self, db_session: Session, owner):
        with pytest.raises(ValueError, match="not found"):
            SubscriptionActivator(db_session).subscribe_event(
                ActorContext(owner.id), uuid4(), "starter"
            )


class TestActivate:
    def test_activation_is_idempotent(self, db_session: Session, owner, event):
        payment = make_payment(db_session, owner, event, "starter")
        activator = SubscriptionActivator(db_session)

        first = activator.activate(payment.id, ActivationIntent.NEW_SUBSCRIBE)
        second = activator.activate(payment.id, ActivationIntent.NEW_SUBSCRIBE)

        assert first.id == second.id
        assert db_session.query(Subscription).count() == 1
        assert db_session.query(SubscriptionActivation).count() == 1
        db_session.refresh(payment)
        assert payment.subscription_id == first.id

    def test_renew_twice_with_same_payment_extends_once(self, db_session: Session, owner, event):
        expires = datetime.now(UTC) + timedelta(days=30)
        make_subscription(db_session, owner, event, "starter", expires_at=expires)
        payment = make_payment(db_session, owner, event, "starter", ActivationIntent.RENEW)
        activator = SubscriptionActivator(db_session)

        first = activator.activate(payment.id, ActivationIntent.RENEW)
        first_expiry = as_aware(first.expires_at)
        second = activator.activate(payment.id, ActivationIntent.RENEW)

        assert first_expiry == _add_months(expires, 4)
        assert as_aware(second.expires_at) == first_expiry

    def test_renew_of_expired_subscription_starts_now(self, db_session: Session, owner, event):
        make_subscription(
            db_session,
            owner,
            event,
            "starter",
            expires_at=datetime.now(UTC) - timedelta(days=60),
        )
        payment = make_payment(db_session, owner, event, "starter", ActivationIntent.RENEW)
        before = datetime.now(UTC)

        renewed = SubscriptionActivator(db_session).activate(payment.id, ActivationIntent.RENEW)

        assert as_aware(renewed.expires_at) >= _add_months(before, 4)
        assert renewed.is_authoritative()

    def test_upgrade_keeps_expiry(self, db_session: Session, owner, event):
        expires = datetime.now(UTC) + timedelta(days=45)
        current = make_subscription(db_session, owner, event, "starter", expires_at=expires)
        payment = make_payment(db_session, owner, event, "pro", ActivationIntent.UPGRADE)

        upgraded = SubscriptionActivator(db_session).activate(
            payment.id, ActivationIntent.UPGRADE
        )

        assert upgraded.id == current.id
        assert upgraded.plan_type == "pro"
        assert upgraded.limits["guests.max_per_event"] == -1
        assert as_aware(upgraded.expires_at) == expires

    def test_upgrade_without_subscription(self, db_session: Session, owner, event):
        payment = make_payment(db_session, owner, event, "pro", ActivationIntent.UPGRADE)

        with pytest.raises(ActivationError, match="no subscription"):
            SubscriptionActivator(db_session).activate(payment.id, ActivationIntent.UPGRADE)
        assert db_session.query(SubscriptionActivation).count() == 0

    def test_pending_payment_is_not_activated(self, db_session: Session, owner, event):
        payment = make_payment(db_session, owner, event, completed=False)

        with pytest.raises(ActivationError, match="not completed"):
            SubscriptionActivator(db_session).activate(
                payment.id, ActivationIntent.NEW_SUBSCRIBE
            )

    def test_intent_must_match_payment(self, db_session: Session, owner, event):
        payment = make_payment(db_session, owner, event, "starter", ActivationIntent.RENEW)

        with pytest.raises(ActivationError, match="was made to renew"):
            SubscriptionActivator(db_session).activate(
                payment.id, ActivationIntent.NEW_SUBSCRIBE
            )

    def test_unknown_payment(self, db_session: Session):
        with pytest.raises(ValueError, match="not found"):
            SubscriptionActivator(db_session).activate(uuid4(), ActivationIntent.RENEW)

    def test_activation_invalidates_cache(self, db_session: Session, owner, event):
        cache = EntitlementCache()
        cache.set(event.id, owner.id, Entitlements())
        payment = make_payment(db_session, owner, event, "starter")

        SubscriptionActivator(db_session, cache).activate(
            payment.id, ActivationIntent.NEW_SUBSCRIBE
        )

        assert cache.get(event.id) is None


class TestUpgradeRenewCancel:
    def test_upgrade(self, db_session: Session, owner, event):
        make_subscription(db_session, owner, event, "starter")
        payment = make_payment(db_session, owner, event, "pro", ActivationIntent.UPGRADE)

        subscription = SubscriptionActivator(db_session).upgrade(
            ActorContext(owner.id), event.id, "pro", payment.id
        )

        assert subscription.plan_type == "pro"

    def test_admin_may_renew_for_owner(self, db_session: Session, owner, event, admin):
        make_subscription(db_session, owner, event, "starter")
        payment = make_payment(db_session, owner, event, "starter", ActivationIntent.RENEW)

        subscription = SubscriptionActivator(db_session).renew(
            ActorContext(admin.id, is_admin=True), event.id, payment.id
        )

        assert subscription.account_id == owner.id

    def test_cancel_keeps_the_row(self, db_session: Session, owner, event):
        current = make_subscription(db_session, owner, event, "starter")

        canceled = SubscriptionActivator(db_session).cancel(ActorContext(owner.id), event.id)

        assert canceled.id == current.id
        assert canceled.state == SubscriptionState.CANCELED.value
        assert canceled.canceled_at is not None
        assert db_session.query(Subscription).count() == 1
        assert canceled.is_authoritative() is False

    def test_cancel_without_subscription(self, db_session: Session, owner, event):
        with pytest.raises(ValueError, match="no active subscription"):
            SubscriptionActivator(db_session).cancel(ActorContext(owner.id), event.id)


class TestActivateCompletedPayment:
    def test_activates(self, db_session: Session, owner, event):
        payment = make_payment(db_session, owner, event, "starter")

        subscription = activate_completed_payment(db_session, payment)

        assert subscription is not None
        assert subscription.plan_type == "starter"

    def test_problems_are_logged_not_raised(self, db_session: Session, owner, event):
        payment = make_payment(db_session, owner, event, "pro", ActivationIntent.UPGRADE)

        assert activate_completed_payment(db_session, payment) is None

    def test_skips_pending_payment(self, db_session: Session, owner, event):
        payment = make_payment(db_session, owner, event, completed=False)
        assert activate_completed_payment(db_session, payment) is None

    def test_skips_payment_without_intent(self, db_session: Session):
        payment = Payment(id=uuid4(), status="completed", intent=None)
        assert activate_completed_payment(db_session, payment) is None
