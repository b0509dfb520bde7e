"""Tests for the client-side payment flow state machine."""

import asyncio
from uuid import UUID, uuid4

import pytest

from eventplan.client.api_client import ApiError, TransportError
from eventplan.client.payment_flow import (
    TRANSITIONS,
    FlowState,
    InvalidTransitionError,
    OutcomeMessage,
    PaymentOrchestrator,
)
from eventplan.core.errors import PhoneValidationError
from eventplan.models.payment import PaymentMethod, PaymentStatus
from eventplan.models.subscription import ActivationIntent
from eventplan.schemas.payment import (
    PaymentInitiate,
    PaymentInitResponse,
    PaymentPollResponse,
    PaymentResponse,
)
from tests.conftest import SUCCESS_NUMBER, FakeTime


def _payment(payment_id: UUID, status: PaymentStatus) -> PaymentResponse:
    return PaymentResponse(
        id=payment_id,
        account_id=uuid4(),
        amount=150,
        currency="EUR",
        method=PaymentMethod.MTN_MOBILE_MONEY.value,
        phone_number=SUCCESS_NUMBER,
        status=status,
    )


class FakeGateway:
    def __init__(self, statuses=(), initiate_errors=()):
        self.statuses = list(statuses)
        self.initiate_errors = list(initiate_errors)
        self.requests: list[PaymentInitiate] = []
        self.polls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.activations: list[tuple] = []

    async def initiate_payment(self, data, idempotency_key=None):
        self.requests.append(data)
        if self.initiate_errors:
            raise self.initiate_errors.pop(0)
        payment = _payment(uuid4(), PaymentStatus.PENDING)
        return PaymentInitResponse(
            message="Payment request sent",
            payment=payment,
            reference="ref",
            provider=data.method.value,
        )

    async def get_payment_status(self, payment_id):
        self.polls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            outcome = self.statuses.pop(0) if self.statuses else PaymentStatus.PENDING
            if isinstance(outcome, Exception):
                raise outcome
            return PaymentPollResponse(
                payment=_payment(payment_id, outcome),
                is_completed=outcome == PaymentStatus.COMPLETED,
                is_failed=outcome == PaymentStatus.FAILED,
                is_pending=outcome == PaymentStatus.PENDING,
            )
        finally:
            self.in_flight -= 1

    async def subscribe_event(self, event_id, plan_type, payment_id=None):
        self.activations.append(("subscribe", event_id, plan_type, payment_id))

    async def upgrade(self, event_id, plan_type, payment_id):
        self.activations.append(("upgrade", event_id, plan_type, payment_id))

    async def renew(self, event_id, payment_id):
        self.activations.append(("renew", event_id, payment_id))


def _orchestrator(gateway, fake_time: FakeTime, **kwargs) -> PaymentOrchestrator:
    kwargs.setdefault("poll_interval", 3.0)
    kwargs.setdefault("poll_timeout", 10.0)
    kwargs.setdefault("max_poll_errors", 3)
    return PaymentOrchestrator(
        gateway,
        event_id=uuid4(),
        plan_type="starter",
        sandbox=True,
        clock=fake_time.clock,
        sleep=fake_time.sleep,
        **kwargs,
    )


class TestMethodSelection:
    def test_detection_from_phone(self):
        flow = _orchestrator(FakeGateway(), FakeTime())

        assert flow.set_phone("05 123 4567") == PaymentMethod.AIRTEL_MONEY
        assert flow.method == PaymentMethod.AIRTEL_MONEY
        assert flow.method_is_explicit is False
        assert flow.state == FlowState.METHOD_SELECTED

    def test_explicit_choice_is_never_overridden(self):
        flow = _orchestrator(FakeGateway(), FakeTime())
        flow.select_method(PaymentMethod.AIRTEL_MONEY)

        detected = flow.set_phone("06 123 4567")

        assert detected == PaymentMethod.MTN_MOBILE_MONEY
        assert flow.method == PaymentMethod.AIRTEL_MONEY

    def test_later_detection_replaces_earlier_detection(self):
        flow = _orchestrator(FakeGateway(), FakeTime())
        flow.set_phone("061234567")
        flow.set_phone("041234567")
        assert flow.method == PaymentMethod.AIRTEL_MONEY

    def test_unknown_prefix_keeps_idle(self):
        flow = _orchestrator(FakeGateway(), FakeTime())
        assert flow.set_phone("091234567") is None
        assert flow.state == FlowState.IDLE


class TestSubmit:
    @pytest.mark.asyncio
    async def test_success(self):
        gateway = FakeGateway([PaymentStatus.PENDING, PaymentStatus.COMPLETED])
        activated = []

        async def on_succeeded(payment):
            activated.append(payment.id)

        flow = _orchestrator(gateway, FakeTime(), on_succeeded=on_succeeded)

        state = await flow.run(SUCCESS_NUMBER, idempotency_key="k1")

        assert state == FlowState.SUCCEEDED
        assert flow.outcome_message == OutcomeMessage.SUCCESS
        assert activated == [flow.payment.id]
        assert gateway.requests[0].phone_number == SUCCESS_NUMBER
        assert gateway.requests[0].method == PaymentMethod.MTN_MOBILE_MONEY
        assert gateway.requests[0].plan_type == "starter"
        assert flow.poll_count == 2

    @pytest.mark.asyncio
    async def test_failure(self):
        flow = _orchestrator(FakeGateway([PaymentStatus.FAILED]), FakeTime())

        assert await flow.run(SUCCESS_NUMBER) == FlowState.FAILED
        assert flow.outcome_message == OutcomeMessage.RETRYABLE_FAILURE

    @pytest.mark.asyncio
    async def test_times_out_exactly_at_the_bound(self):
        fake_time = FakeTime()
        gateway = FakeGateway()
        flow = _orchestrator(gateway, fake_time)

        state = await flow.run(SUCCESS_NUMBER)

        assert state == FlowState.TIMED_OUT
        assert fake_time.now == pytest.approx(10.0)
        assert gateway.polls == 3
        assert flow.outcome_message == OutcomeMessage.UNRESOLVED

    @pytest.mark.asyncio
    async def test_one_poll_in_flight(self):
        gateway = FakeGateway([PaymentStatus.PENDING] * 3 + [PaymentStatus.COMPLETED])
        flow = _orchestrator(gateway, FakeTime(), poll_timeout=60.0)

        await flow.run(SUCCESS_NUMBER)

        assert gateway.max_in_flight == 1

    @pytest.mark.asyncio
    async def test_invalid_phone_leaves_state(self):
        flow = _orchestrator(FakeGateway(), FakeTime())
        flow.select_method(PaymentMethod.MTN_MOBILE_MONEY)

        with pytest.raises(PhoneValidationError):
            await flow.submit("123")

        assert flow.state == FlowState.METHOD_SELECTED

    @pytest.mark.asyncio
    async def test_phone_required(self):
        flow = PaymentOrchestrator(FakeGateway(), sandbox=False, plan_type="starter")

        with pytest.raises(PhoneValidationError, match="Phone number is required"):
            await flow.submit()

        assert flow.state == FlowState.IDLE

    @pytest.mark.asyncio
    async def test_transport_error_returns_to_method_selected(self):
        gateway = FakeGateway(
            [PaymentStatus.COMPLETED], initiate_errors=[TransportError("offline")]
        )
        flow = _orchestrator(gateway, FakeTime())

        assert await flow.submit(SUCCESS_NUMBER) == FlowState.METHOD_SELECTED
        assert flow.last_error == "offline"
        assert flow.payment is None

        assert await flow.run(SUCCESS_NUMBER) == FlowState.SUCCEEDED
        assert len(gateway.requests) == 2

    @pytest.mark.asyncio
    async def test_rejected_request(self):
        flow = _orchestrator(
            FakeGateway(initiate_errors=[ApiError(422, "Invalid phone number")]), FakeTime()
        )

        assert await flow.submit(SUCCESS_NUMBER) == FlowState.METHOD_SELECTED
        assert "Invalid phone number" in flow.last_error

    @pytest.mark.asyncio
    async def test_repeated_poll_errors_give_up(self):
        errors = [TransportError("down")] * 3
        gateway = FakeGateway(errors)
        flow = _orchestrator(gateway, FakeTime(), poll_timeout=60.0)

        assert await flow.run(SUCCESS_NUMBER) == FlowState.METHOD_SELECTED
        assert gateway.polls == 3
        assert flow.last_error == "down"

    @pytest.mark.asyncio
    async def test_single_poll_error_is_tolerated(self):
        gateway = FakeGateway([TransportError("blip"), PaymentStatus.COMPLETED])
        flow = _orchestrator(gateway, FakeTime())

        assert await flow.run(SUCCESS_NUMBER) == FlowState.SUCCEEDED


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_stops_polling(self):
        gateway = FakeGateway()
        fake_time = FakeTime()
        flow = _orchestrator(gateway, fake_time, poll_timeout=600.0)
        await flow.submit(SUCCESS_NUMBER)
        for _ in range(5):
            await asyncio.sleep(0)

        assert flow.cancel() is True
        polls_at_cancel = gateway.polls
        assert await flow.wait() == FlowState.CANCELLED
        for _ in range(5):
            await asyncio.sleep(0)

        assert gateway.polls == polls_at_cancel
        assert flow.outcome_message == OutcomeMessage.UNRESOLVED

    @pytest.mark.asyncio
    async def test_cancel_while_a_poll_is_in_flight(self):
        release = asyncio.Event()
        gateway = FakeGateway([PaymentStatus.COMPLETED])
        original = gateway.get_payment_status

        async def slow_status(payment_id):
            await release.wait()
            return await original(payment_id)

        gateway.get_payment_status = slow_status
        flow = _orchestrator(gateway, FakeTime(), poll_timeout=600.0)
        await flow.submit(SUCCESS_NUMBER)
        for _ in range(10):
            await asyncio.sleep(0)
        assert flow.poll_count == 1

        flow.cancel()
        release.set()

        assert await flow.wait() == FlowState.CANCELLED
        assert flow.poll_count == 1
        assert gateway.activations == []

    @pytest.mark.asyncio
    async def test_cancel_while_submitting_keeps_the_sent_payment(self):
        release = asyncio.Event()
        gateway = FakeGateway()
        original = gateway.initiate_payment

        async def slow_initiate(data, idempotency_key=None):
            await release.wait()
            return await original(data, idempotency_key)

        gateway.initiate_payment = slow_initiate
        flow = _orchestrator(gateway, FakeTime())
        submit = asyncio.create_task(flow.submit(SUCCESS_NUMBER))
        await asyncio.sleep(0)
        assert flow.state == FlowState.SUBMITTING

        assert flow.cancel() is True
        release.set()

        assert await submit == FlowState.CANCELLED
        assert len(gateway.requests) == 1
        assert flow.payment is not None
        assert flow.outcome_message == OutcomeMessage.UNRESOLVED
        assert gateway.polls == 0

    def test_cancel_before_submit(self):
        flow = _orchestrator(FakeGateway(), FakeTime())

        assert flow.cancel() is True
        assert flow.state == FlowState.CANCELLED
        assert flow.outcome_message is None

    @pytest.mark.asyncio
    async def test_cancel_after_outcome_is_refused(self):
        flow = _orchestrator(FakeGateway([PaymentStatus.COMPLETED]), FakeTime())
        await flow.run(SUCCESS_NUMBER)

        assert flow.cancel() is False
        assert flow.state == FlowState.SUCCEEDED

    @pytest.mark.asyncio
    async def test_cancel_during_submit_skips_polling(self):
        gateway = FakeGateway()
        flow = _orchestrator(gateway, FakeTime())
        original = gateway.initiate_payment

        async def initiate_then_cancel(data, idempotency_key=None):
            response = await original(data, idempotency_key)
            flow.cancel()
            return response

        gateway.initiate_payment = initiate_then_cancel

        assert await flow.submit(SUCCESS_NUMBER) == FlowState.CANCELLED
        assert await flow.wait() == FlowState.CANCELLED
        assert gateway.polls == 0
        assert flow.payment is not None
        assert flow.outcome_message == OutcomeMessage.UNRESOLVED


class TestActivationAndReset:
    @pytest.mark.asyncio
    async def test_activation_failure_is_recorded(self):
        async def on_succeeded(payment):
            raise TransportError("offline")

        flow = _orchestrator(
            FakeGateway([PaymentStatus.COMPLETED]), FakeTime(), on_succeeded=on_succeeded
        )

        assert await flow.run(SUCCESS_NUMBER) == FlowState.SUCCEEDED
        assert flow.activation_error == "offline"

    @pytest.mark.asyncio
    async def test_activation_runs_once_per_payment(self):
        calls = []

        async def on_succeeded(payment):
            calls.append(payment.id)

        flow = _orchestrator(
            FakeGateway([PaymentStatus.COMPLETED]), FakeTime(), on_succeeded=on_succeeded
        )
        await flow.run(SUCCESS_NUMBER)
        await flow._activate(flow.payment)

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_default_activation_subscribes_the_event(self):
        gateway = FakeGateway([PaymentStatus.COMPLETED])
        flow = _orchestrator(gateway, FakeTime())

        await flow.run(SUCCESS_NUMBER)

        assert gateway.activations == [("subscribe", flow.event_id, "starter", flow.payment.id)]

    @pytest.mark.asyncio
    async def test_default_activation_upgrades(self):
        gateway = FakeGateway([PaymentStatus.COMPLETED])
        flow = _orchestrator(gateway, FakeTime(), intent=ActivationIntent.UPGRADE)

        await flow.run(SUCCESS_NUMBER)

        assert gateway.activations == [("upgrade", flow.event_id, "starter", flow.payment.id)]

    @pytest.mark.asyncio
    async def test_default_activation_renews(self):
        gateway = FakeGateway([PaymentStatus.COMPLETED])
        flow = _orchestrator(gateway, FakeTime(), intent=ActivationIntent.RENEW)

        await flow.run(SUCCESS_NUMBER)

        assert gateway.activations == [("renew", flow.event_id, flow.payment.id)]

    @pytest.mark.asyncio
    async def test_failed_payment_activates_nothing(self):
        gateway = FakeGateway([PaymentStatus.FAILED])
        flow = _orchestrator(gateway, FakeTime())

        await flow.run(SUCCESS_NUMBER)

        assert gateway.activations == []

    @pytest.mark.asyncio
    async def test_reset_after_failure_creates_new_payment(self):
        gateway = FakeGateway([PaymentStatus.FAILED, PaymentStatus.COMPLETED])
        flow = _orchestrator(gateway, FakeTime())
        await flow.run(SUCCESS_NUMBER)
        first_payment = flow.payment.id

        flow.reset()
        assert flow.state == FlowState.METHOD_SELECTED
        assert flow.payment is None

        assert await flow.run(SUCCESS_NUMBER) == FlowState.SUCCEEDED
        assert flow.payment.id != first_payment

    def test_reset_requires_outcome(self):
        flow = _orchestrator(FakeGateway(), FakeTime())
        with pytest.raises(InvalidTransitionError):
            flow.reset()

    def test_state_changes_are_reported(self):
        seen = []
        flow = _orchestrator(FakeGateway(), FakeTime(), on_state_change=seen.append)
        flow.select_method(PaymentMethod.MTN_MOBILE_MONEY)
        flow.cancel()
        assert seen == [FlowState.METHOD_SELECTED, FlowState.CANCELLED]

    def test_terminal_states_have_no_way_out(self):
        assert TRANSITIONS[FlowState.SUCCEEDED] == set()
        assert TRANSITIONS[FlowState.CANCELLED] == set()
