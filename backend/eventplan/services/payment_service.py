"""Payment initiation and status tracking."""

import logging
from collections.abc import Callable
from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from eventplan.core.config import settings
from eventplan.core.errors import AccessDeniedError, PaymentProviderError, PhoneValidationError
from eventplan.models.payment import Payment, PaymentMethod, PaymentStatus
from eventplan.models.shared import as_aware, utc_now
from eventplan.models.subscription import ActivationIntent
from eventplan.repositories.event_repository import EventRepository
from eventplan.repositories.payment_repository import PaymentRepository
from eventplan.repositories.payment_request_key_repository import PaymentRequestKeyRepository
from eventplan.repositories.subscription_repository import SubscriptionRepository
from eventplan.schemas.actor import ActorContext
from eventplan.schemas.payment import PaymentInitiate
from eventplan.services.mobile_money import MobileMoneyProvider, get_mobile_money_provider
from eventplan.services.phone import detect_method, validate_phone
from eventplan.services.plan_catalog import get_plan

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[PaymentMethod], MobileMoneyProvider]


class PaymentService:
    def __init__(self, db: Session, provider_factory: ProviderFactory | None = None):
        self.db = db
        self.payment_repo = PaymentRepository(db)
        self.request_keys = PaymentRequestKeyRepository(db)
        self.event_repo = EventRepository(db)
        self.subscription_repo = SubscriptionRepository(db)
        self.provider_factory = provider_factory or get_mobile_money_provider

    def initiate(
        self,
        actor: ActorContext,
        data: PaymentInitiate,
        idempotency_key: str | None = None,
    ) -> tuple[Payment, bool]:
        """Start a charge, or return the charge already in flight for the same purchase.

        A key names one purchase attempt: once the provider accepted a charge
        for it, the same key returns that payment. A key whose charge failed
        starts a new one. Returns the payment and whether it was reused.

        Raises:
            PhoneValidationError: If the number is malformed or no operator can be determined.
            AccessDeniedError: If the actor does not own the event.
            ValueError: If the event or plan is unknown, or nothing is being bought.
            PaymentProviderError: If the provider did not accept the charge.
        """
        sandbox = settings.is_sandbox
        phone = validate_phone(data.phone_number, sandbox)
        method = data.method or detect_method(phone, sandbox)
        if method is None:
            raise PhoneValidationError("Cannot detect the operator, select a payment method")

        plan_type = data.plan_type
        if data.event_id is not None:
            event = self.event_repo.get_by_id(data.event_id)
            if not event:
                raise ValueError(f"Event {data.event_id} not found")
            if event.owner_id != actor.account_id and not actor.is_admin:
                raise AccessDeniedError("Only the event owner can pay for its subscription")
            if plan_type is None and data.intent != ActivationIntent.NEW_SUBSCRIBE:
                current = self.subscription_repo.get_latest_for_event(data.event_id)
                plan_type = str(current.plan_type) if current else None

        if plan_type is not None:
            plan = get_plan(plan_type)
            if not plan.requires_payment:
                raise ValueError(f"Plan {plan_type} does not require payment")
            amount = plan.price_for(sandbox)
            currency = settings.billing_currency
        elif data.amount is not None:
            amount = data.amount
            currency = data.currency or settings.billing_currency
        else:
            raise ValueError("Either plan_type or amount is required")

        if idempotency_key:
            keyed = self.request_keys.get_payment(actor.account_id, idempotency_key)
            if keyed is not None and keyed.status != PaymentStatus.FAILED.value:
                purchase = (data.event_id, plan_type, data.intent.value)
                if (keyed.event_id, keyed.plan_type, keyed.intent) != purchase:
                    raise ValueError("Idempotency-Key was already used for another purchase")
                logger.info("Replaying payment %s for key %s", keyed.id, idempotency_key)
                return keyed, True

        if data.event_id is not None:
            in_flight = self._in_flight(actor.account_id, data.event_id, plan_type, data.intent)
            if in_flight is not None:
                logger.info("Reusing in-flight payment %s", in_flight.id)
                self._bind_key(actor, idempotency_key, in_flight)
                return in_flight, True

        payment = self.payment_repo.create(
            account_id=actor.account_id,
            event_id=data.event_id,
            amount=amount,
            currency=currency,
            method=method,
            phone_number=phone,
            plan_type=plan_type,
            intent=data.intent.value,
            metadata={"sandbox": sandbox},
        )

        provider = self.provider_factory(method)
        description = f"Subscription {plan_type}" if plan_type else "Event plan payment"
        try:
            charge = provider.request_payment(
                payment_id=payment.id,  # type: ignore[arg-type]
                amount=amount,
                currency=currency,
                phone_number=phone,
                description=description,
            )
        except PaymentProviderError as exc:
            # Never charged, so a retry must start from a new payment
            logger.warning("Provider refused payment %s: %s", payment.id, exc)
            self.payment_repo.mark_failed(payment.id, str(exc))  # type: ignore[arg-type]
            raise

        payment = self.payment_repo.set_reference(payment, charge.reference)
        self._bind_key(actor, idempotency_key, payment)
        if charge.status.is_terminal:
            self.apply_status(payment, charge.status)
        return payment, False

    def retry(
        self, actor: ActorContext, payment: Payment, idempotency_key: str | None = None
    ) -> tuple[Payment, bool]:
        """Charge again for the purchase a failed payment was made for.

        The failed row is kept as history and a new payment is started.

        Raises:
            ValueError: If the payment did not fail.
        """
        if payment.status != PaymentStatus.FAILED.value:
            raise ValueError(f"Only failed payments can be retried, this one is {payment.status}")

        data = PaymentInitiate(
            event_id=payment.event_id,
            phone_number=str(payment.phone_number),
            method=PaymentMethod(payment.method),
            plan_type=payment.plan_type,
            amount=None if payment.plan_type else payment.amount,
            currency=None if payment.plan_type else payment.currency,
            intent=ActivationIntent(payment.intent or ActivationIntent.NEW_SUBSCRIBE.value),
        )
        logger.info("Retrying failed payment %s", payment.id)
        return self.initiate(actor, data, idempotency_key)

    def _bind_key(
        self, actor: ActorContext, idempotency_key: str | None, payment: Payment
    ) -> None:
        if idempotency_key:
            payment_id: UUID = payment.id  # type: ignore[assignment]
            self.request_keys.bind(actor.account_id, idempotency_key, payment_id)

    def _in_flight(
        self,
        account_id: UUID,
        event_id: UUID,
        plan_type: str | None,
        intent: ActivationIntent,
    ) -> Payment | None:
        window_start = utc_now() - timedelta(seconds=settings.PAYMENT_POLL_TIMEOUT_SECONDS)
        for payment in self.payment_repo.get_all(
            account_id=account_id, event_id=event_id, status=PaymentStatus.PENDING
        ):
            if payment.plan_type != plan_type or payment.intent != intent.value:
                continue
            if payment.created_at and as_aware(payment.created_at) >= window_start:  # type: ignore[arg-type]
                return payment
        return None

    def refresh_status(self, payment: Payment) -> Payment:
        """Ask the provider about a pending payment and record a terminal answer.

        Provider transport errors leave the payment pending.
        """
        if PaymentStatus(payment.status).is_terminal or not payment.transaction_reference:
            return payment

        provider = self.provider_factory(PaymentMethod(payment.method))
        try:
            result = provider.get_status(str(payment.transaction_reference))
        except PaymentProviderError as exc:
            logger.warning("Status check for payment %s failed: %s", payment.id, exc)
            return payment

        if result.status.is_terminal:
            self.apply_status(payment, result.status, result.reason)
        return payment

    def apply_status(
        self, payment: Payment, status: PaymentStatus, reason: str | None = None
    ) -> bool:
        """Record a terminal status once. Returns False for a duplicate notification."""
        payment_id: UUID = payment.id  # type: ignore[assignment]
        if status == PaymentStatus.COMPLETED:
            applied = self.payment_repo.mark_completed(payment_id)
        elif status == PaymentStatus.FAILED:
            applied = self.payment_repo.mark_failed(payment_id, reason or "Payment failed")
        else:
            raise ValueError(f"{status.value} is not a provider outcome")

        self.db.refresh(payment)
        if applied:
            logger.info("Payment %s is now %s", payment_id, status.value)
        else:
            logger.info(
                "Ignoring %s notification for payment %s already %s",
                status.value,
                payment_id,
                payment.status,
            )
        return applied

    def apply_callback(self, method: PaymentMethod, payload: dict[str, Any]) -> Payment | None:
        """Apply a provider notification. Returns None if the payment is unknown."""
        provider = self.provider_factory(method)
        result = provider.parse_callback(payload)

        payment: Payment | None = None
        if result.payment_id:
            payment = self.payment_repo.get_by_id(result.payment_id)
        if not payment and result.reference:
            payment = self.payment_repo.get_by_reference(result.reference)
        if not payment:
            logger.info("Callback for unknown payment ignored: %s", result.reference)
            return None

        if result.status is not None and result.status.is_terminal:
            self.apply_status(payment, result.status, result.reason)
        return payment

    def verify_callback(self, method: PaymentMethod, payload: bytes, signature: str) -> bool:
        return self.provider_factory(method).verify_callback_signature(payload, signature)
