"""Drives one mobile-money payment from method selection to a final outcome.

The flow is an explicit state machine. Polling runs in its own asyncio task
with a wall-clock deadline; it issues one status request at a time and stops
for good once a final status is seen or the flow is cancelled.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from eventplan.client.api_client import ApiError, TransportError
from eventplan.core.config import settings
from eventplan.core.errors import PhoneValidationError
from eventplan.models.payment import PaymentMethod
from eventplan.models.subscription import ActivationIntent
from eventplan.schemas.payment import (
    PaymentInitiate,
    PaymentInitResponse,
    PaymentPollResponse,
    PaymentResponse,
)
from eventplan.services.phone import detect_method, validate_phone

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    IDLE = "idle"
    METHOD_SELECTED = "method_selected"
    SUBMITTING = "submitting"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class OutcomeMessage(str, Enum):
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    UNRESOLVED = "unresolved"


class InvalidTransitionError(Exception):
    def __init__(self, current: FlowState, target: FlowState):
        super().__init__(f"Cannot go from {current.value} to {target.value}")
        self.current = current
        self.target = target


OUTCOMES = frozenset({FlowState.SUCCEEDED, FlowState.FAILED, FlowState.TIMED_OUT})

TRANSITIONS: dict[FlowState, set[FlowState]] = {
    FlowState.IDLE: {FlowState.METHOD_SELECTED, FlowState.CANCELLED},
    FlowState.METHOD_SELECTED: {
        FlowState.METHOD_SELECTED,
        FlowState.SUBMITTING,
        FlowState.CANCELLED,
    },
    FlowState.SUBMITTING: {
        FlowState.AWAITING_CONFIRMATION,
        FlowState.METHOD_SELECTED,
        FlowState.CANCELLED,
    },
    FlowState.AWAITING_CONFIRMATION: {
        FlowState.SUCCEEDED,
        FlowState.FAILED,
        FlowState.TIMED_OUT,
        FlowState.METHOD_SELECTED,
        FlowState.CANCELLED,
    },
    FlowState.SUCCEEDED: set(),
    # A retry always starts over with a new payment
    FlowState.FAILED: {FlowState.IDLE},
    FlowState.TIMED_OUT: {FlowState.IDLE},
    FlowState.CANCELLED: set(),
}


class PaymentGateway(Protocol):
    async def initiate_payment(
        self, data: PaymentInitiate, idempotency_key: str | None = None
    ) -> PaymentInitResponse: ...

    async def get_payment_status(self, payment_id: UUID) -> PaymentPollResponse: ...

    async def subscribe_event(
        self, event_id: UUID, plan_type: str, payment_id: UUID | None = None
    ) -> Any: ...

    async def upgrade(self, event_id: UUID, plan_type: str, payment_id: UUID) -> Any: ...

    async def renew(self, event_id: UUID, payment_id: UUID) -> Any: ...


OnSucceeded = Callable[[PaymentResponse], Awaitable[Any]]


class PaymentOrchestrator:
    def __init__(
        self,
        gateway: PaymentGateway,
        *,
        event_id: UUID | None = None,
        plan_type: str | None = None,
        amount: int | None = None,
        intent: ActivationIntent = ActivationIntent.NEW_SUBSCRIBE,
        on_succeeded: OnSucceeded | None = None,
        on_state_change: Callable[[FlowState], None] | None = None,
        sandbox: bool | None = None,
        poll_interval: float = settings.PAYMENT_POLL_INTERVAL_SECONDS,
        poll_timeout: float = settings.PAYMENT_POLL_TIMEOUT_SECONDS,
        max_poll_errors: int = settings.PAYMENT_POLL_MAX_ERRORS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.gateway = gateway
        self.event_id = event_id
        self.plan_type = plan_type
        self.amount = amount
        self.intent = intent
        self.on_succeeded = on_succeeded or self._activate_by_intent
        self.on_state_change = on_state_change
        self.sandbox = settings.is_sandbox if sandbox is None else sandbox
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self.max_poll_errors = max_poll_errors
        self._clock = clock
        self._sleep = sleep

        self._state = FlowState.IDLE
        self._method: PaymentMethod | None = None
        self._method_is_explicit = False
        self._phone: str | None = None
        self._poll_task: asyncio.Task[None] | None = None
        self._activated: set[UUID] = set()
        self.payment: PaymentResponse | None = None
        self.last_error: str | None = None
        self.activation_error: str | None = None
        self.poll_count = 0

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def method(self) -> PaymentMethod | None:
        return self._method

    @property
    def method_is_explicit(self) -> bool:
        return self._method_is_explicit

    @property
    def outcome_message(self) -> OutcomeMessage | None:
        """User-facing message class of the final state.

        A cancelled flow that already sent a charge is unresolved, because the
        provider may still complete it.
        """
        if self._state == FlowState.SUCCEEDED:
            return OutcomeMessage.SUCCESS
        if self._state == FlowState.FAILED:
            return OutcomeMessage.RETRYABLE_FAILURE
        if self._state == FlowState.TIMED_OUT:
            return OutcomeMessage.UNRESOLVED
        if self._state == FlowState.CANCELLED and self.payment is not None:
            return OutcomeMessage.UNRESOLVED
        return None

    def _transition(self, target: FlowState) -> None:
        if target not in TRANSITIONS[self._state]:
            raise InvalidTransitionError(self._state, target)
        logger.debug("Payment flow %s -> %s", self._state.value, target.value)
        self._state = target
        if self.on_state_change is not None:
            self.on_state_change(target)

    def select_method(self, method: PaymentMethod) -> None:
        """Explicit choice by the actor. Always wins over detection."""
        self._method = method
        self._method_is_explicit = True
        self._transition(FlowState.METHOD_SELECTED)

    def set_phone(self, phone: str) -> PaymentMethod | None:
        """Record the number and suggest a method from its prefix.

        The suggestion never replaces a method the actor picked explicitly.
        Returns the detected method, if any.
        """
        self._phone = phone
        detected = detect_method(phone, self.sandbox)
        if detected is not None and not self._method_is_explicit:
            self._method = detected
            if self._state in (FlowState.IDLE, FlowState.METHOD_SELECTED):
                self._transition(FlowState.METHOD_SELECTED)
        return detected

    async def submit(
        self, phone: str | None = None, idempotency_key: str | None = None
    ) -> FlowState:
        """Validate and send the charge, then start polling.

        Raises:
            PhoneValidationError: If the number is invalid or no method is selected.
                The state is left unchanged.
        """
        if phone is not None:
            self.set_phone(phone)
        if self._phone is None:
            raise PhoneValidationError("Phone number is required")
        normalized = validate_phone(self._phone, self.sandbox)
        if self._method is None:
            raise PhoneValidationError("Select a payment method")

        self._transition(FlowState.SUBMITTING)
        self.last_error = None
        request = PaymentInitiate(
            event_id=self.event_id,
            phone_number=normalized,
            method=self._method,
            plan_type=self.plan_type,
            amount=self.amount,
            intent=self.intent,
        )
        try:
            response = await self.gateway.initiate_payment(request, idempotency_key)
        except (TransportError, ApiError) as exc:
            if self._state == FlowState.CANCELLED:
                return self._state
            logger.warning("Payment initiation failed: %s", exc)
            self.last_error = str(exc)
            self._transition(FlowState.METHOD_SELECTED)
            return self._state

        # The charge went out even if the actor closed the flow meanwhile
        self.payment = response.payment
        if self._state == FlowState.CANCELLED:
            logger.info("Payment %s sent after the flow was cancelled", response.payment.id)
            return self._state

        self._transition(FlowState.AWAITING_CONFIRMATION)
        self._poll_task = asyncio.create_task(self._poll(response.payment.id))
        return self._state

    async def wait(self) -> FlowState:
        """Wait for polling to end and return the state it ended in."""
        if self._poll_task is not None:
            try:
                await self._poll_task
            except asyncio.CancelledError:
                if self._state != FlowState.CANCELLED:
                    raise
        return self._state

    async def run(self, phone: str, idempotency_key: str | None = None) -> FlowState:
        await self.submit(phone, idempotency_key)
        return await self.wait()

    def cancel(self) -> bool:
        """Close the flow and stop polling. The provider-side charge is left alone.

        Returns False if the flow had already reached an outcome.
        """
        if self._state in OUTCOMES or self._state == FlowState.CANCELLED:
            return False
        self._transition(FlowState.CANCELLED)
        if self._poll_task is not None and not self._poll_task.done():
            self._poll_task.cancel()
        return True

    def reset(self) -> None:
        """Start over after a failure or timeout, keeping phone and method."""
        self._transition(FlowState.IDLE)
        self.payment = None
        self.last_error = None
        self.poll_count = 0
        if self._method is not None:
            self._transition(FlowState.METHOD_SELECTED)

    def _awaiting(self) -> bool:
        return self._state == FlowState.AWAITING_CONFIRMATION

    async def _poll(self, payment_id: UUID) -> None:
        deadline = self._clock() + self.poll_timeout
        errors = 0
        while self._awaiting():
            remaining = deadline - self._clock()
            if remaining <= 0:
                self._transition(FlowState.TIMED_OUT)
                return
            await self._sleep(min(self.poll_interval, remaining))
            if not self._awaiting():
                return
            remaining = deadline - self._clock()
            if remaining <= 0:
                self._transition(FlowState.TIMED_OUT)
                return

            self.poll_count += 1
            try:
                async with asyncio.timeout(remaining):
                    result = await self.gateway.get_payment_status(payment_id)
            except TimeoutError:
                if self._awaiting():
                    self._transition(FlowState.TIMED_OUT)
                return
            except (TransportError, ApiError) as exc:
                if not self._awaiting():
                    return
                errors += 1
                logger.warning("Status poll %d for %s failed: %s", errors, payment_id, exc)
                if errors >= self.max_poll_errors:
                    self.last_error = str(exc)
                    self._transition(FlowState.METHOD_SELECTED)
                    return
                continue

            # cancelled while the request was in flight
            if not self._awaiting():
                return
            errors = 0
            self.payment = result.payment
            if result.is_completed:
                self._transition(FlowState.SUCCEEDED)
                await self._activate(result.payment)
                return
            if result.is_failed:
                self._transition(FlowState.FAILED)
                return

    async def _activate(self, payment: PaymentResponse) -> None:
        if payment.id in self._activated:
            return
        self._activated.add(payment.id)
        try:
            await self.on_succeeded(payment)
        except (TransportError, ApiError) as exc:
            # The server activates confirmed payments on its own as well
            logger.warning("Activation for payment %s failed: %s", payment.id, exc)
            self.activation_error = str(exc)

    async def _activate_by_intent(self, payment: PaymentResponse) -> None:
        """Apply the payment to the event's subscription through the API."""
        event_id = payment.event_id or self.event_id
        plan_type = payment.plan_type or self.plan_type
        if event_id is None:
            logger.info("Payment %s has no event; nothing to activate", payment.id)
            return
        if self.intent == ActivationIntent.RENEW:
            await self.gateway.renew(event_id, payment.id)
            return
        if plan_type is None:
            logger.warning("Payment %s has no plan; nothing to activate", payment.id)
            return
        if self.intent == ActivationIntent.UPGRADE:
            await self.gateway.upgrade(event_id, plan_type, payment.id)
        else:
            await self.gateway.subscribe_event(event_id, plan_type, payment.id)
