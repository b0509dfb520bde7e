from eventplan.repositories.account_repository import AccountRepository
from eventplan.repositories.collaborator_repository import CollaboratorRepository
from eventplan.repositories.event_repository import EventRepository
from eventplan.repositories.payment_repository import PaymentRepository
from eventplan.repositories.payment_request_key_repository import PaymentRequestKeyRepository
from eventplan.repositories.subscription_activation_repository import (
    SubscriptionActivationRepository,
)
from eventplan.repositories.subscription_repository import SubscriptionRepository

__all__ = [
    "AccountRepository",
    "CollaboratorRepository",
    "EventRepository",
    "PaymentRepository",
    "PaymentRequestKeyRepository",
    "SubscriptionActivationRepository",
    "SubscriptionRepository",
]
