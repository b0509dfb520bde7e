from eventplan.client.access import AccessResolver, AccessSnapshot
from eventplan.client.api_client import ApiError, EventPlanClient, TransportError
from eventplan.client.payment_flow import (
    FlowState,
    InvalidTransitionError,
    OutcomeMessage,
    PaymentOrchestrator,
)

__all__ = [
    "AccessResolver",
    "AccessSnapshot",
    "ApiError",
    "EventPlanClient",
    "FlowState",
    "InvalidTransitionError",
    "OutcomeMessage",
    "PaymentOrchestrator",
    "TransportError",
]
