from eventplan.models.account import Account, AccountRole
from eventplan.models.collaborator import CustomRole, EventCollaborator
from eventplan.models.event import Event
from eventplan.models.payment import Payment, PaymentMethod, PaymentStatus
from eventplan.models.payment_request_key import PaymentRequestKey
from eventplan.models.subscription import (
    ActivationIntent,
    Subscription,
    SubscriptionPaymentStatus,
    SubscriptionState,
)
from eventplan.models.subscription_activation import SubscriptionActivation

__all__ = [
    "Account",
    "AccountRole",
    "ActivationIntent",
    "CustomRole",
    "Event",
    "EventCollaborator",
    "Payment",
    "PaymentMethod",
    "PaymentRequestKey",
    "PaymentStatus",
    "Subscription",
    "SubscriptionActivation",
    "SubscriptionPaymentStatus",
    "SubscriptionState",
]
