from eventplan.schemas.access import (
    AccessView,
    BudgetAccess,
    CollaboratorsAccess,
    GuestsAccess,
    TasksAccess,
)
from eventplan.schemas.actor import ActorContext
from eventplan.schemas.entitlement import UNLIMITED, Entitlements
from eventplan.schemas.payment import (
    PaymentInitiate,
    PaymentInitResponse,
    PaymentPollResponse,
    PaymentResponse,
)
from eventplan.schemas.permission import (
    BudgetPermissions,
    CollaboratorsPermissions,
    CustomRoleGrant,
    GuestsPermissions,
    PermissionSet,
    PhotosPermissions,
    SystemRoles,
    TasksPermissions,
)
from eventplan.schemas.plan import PlanResponse, TrialAvailability
from eventplan.schemas.quota import Quota, QuotaResponse, QuotaWarning
from eventplan.schemas.subscription import (
    AccountSubscribeRequest,
    EventSubscribeRequest,
    RenewRequest,
    SubscribeResponse,
    SubscriptionResponse,
    UpgradeRequest,
)

__all__ = [
    "AccessView",
    "AccountSubscribeRequest",
    "ActorContext",
    "BudgetAccess",
    "BudgetPermissions",
    "CollaboratorsAccess",
    "CollaboratorsPermissions",
    "CustomRoleGrant",
    "Entitlements",
    "EventSubscribeRequest",
    "GuestsAccess",
    "GuestsPermissions",
    "PaymentInitResponse",
    "PaymentInitiate",
    "PaymentPollResponse",
    "PaymentResponse",
    "PermissionSet",
    "PhotosPermissions",
    "PlanResponse",
    "Quota",
    "QuotaResponse",
    "QuotaWarning",
    "RenewRequest",
    "SubscribeResponse",
    "SubscriptionResponse",
    "SystemRoles",
    "TasksAccess",
    "TasksPermissions",
    "TrialAvailability",
    "UNLIMITED",
    "UpgradeRequest",
]
