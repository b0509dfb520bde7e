"""Static catalog of subscription plans.

Prices are whole units of the billing currency (XAF has no minor unit).
Sandbox deployments bill in EUR at the sandbox price.
"""

from dataclasses import dataclass, field

from eventplan.schemas.entitlement import UNLIMITED
from eventplan.schemas.plan import PlanResponse

TRIAL_PLAN_CODE = "trial"

FEATURE_KEYS = (
    "budget.enabled",
    "planning.enabled",
    "tasks.enabled",
    "guests.manage",
    "guests.import",
    "guests.export",
    "invitations.sms",
    "invitations.whatsapp",
    "collaborators.manage",
    "roles_permissions.enabled",
    "exports.pdf",
    "exports.excel",
    "exports.csv",
    "history.enabled",
    "reporting.enabled",
    "branding.custom",
    "support.whatsapp_priority",
    "support.dedicated",
    "multi_client.enabled",
    "assistance.human",
)

LIMIT_KEYS = (
    "events.creations_per_billing_period",
    "guests.max_per_event",
    "collaborators.max_per_event",
    "photos.max_per_event",
)


def _features(*enabled: str) -> dict[str, bool]:
    unknown = set(enabled) - set(FEATURE_KEYS)
    if unknown:
        raise ValueError(f"Unknown feature keys: {sorted(unknown)}")
    return {key: key in enabled for key in FEATURE_KEYS}


def _limits(limits: dict[str, int]) -> dict[str, int]:
    if set(limits) != set(LIMIT_KEYS):
        raise ValueError(f"Plan limits must define exactly {list(LIMIT_KEYS)}")
    return limits


@dataclass(frozen=True)
class PlanDefinition:
    code: str
    name: str
    price: int
    sandbox_price: int
    features: dict[str, bool] = field(default_factory=dict)
    limits: dict[str, int] = field(default_factory=dict)
    duration_months: int | None = None
    duration_days: int | None = None
    is_trial: bool = False

    @property
    def requires_payment(self) -> bool:
        return not self.is_trial and self.price > 0

    def price_for(self, sandbox: bool) -> int:
        return self.sandbox_price if sandbox else self.price

    def to_response(self, sandbox: bool, currency: str) -> PlanResponse:
        return PlanResponse(
            code=self.code,
            name=self.name,
            price=self.price_for(sandbox),
            currency=currency,
            duration_days=self.duration_days,
            duration_months=self.duration_months,
            is_trial=self.is_trial,
            requires_payment=self.requires_payment,
            features=dict(self.features),
            limits=dict(self.limits),
        )


PLANS: dict[str, PlanDefinition] = {
    TRIAL_PLAN_CODE: PlanDefinition(
        code=TRIAL_PLAN_CODE,
        name="Essai gratuit",
        price=0,
        sandbox_price=0,
        duration_days=14,
        is_trial=True,
        features=_features(
            "budget.enabled",
            "planning.enabled",
            "tasks.enabled",
            "guests.manage",
            "guests.export",
            "collaborators.manage",
            "exports.csv",
        ),
        limits=_limits(
            {
                "events.creations_per_billing_period": 1,
                "guests.max_per_event": 50,
                "collaborators.max_per_event": 2,
                "photos.max_per_event": 20,
            }
        ),
    ),
    "starter": PlanDefinition(
        code="starter",
        name="Starter",
        price=5000,
        sandbox_price=150,
        duration_months=4,
        features=_features(
            "budget.enabled",
            "planning.enabled",
            "tasks.enabled",
            "guests.manage",
            "guests.import",
            "guests.export",
            "invitations.whatsapp",
            "collaborators.manage",
            "exports.csv",
        ),
        limits=_limits(
            {
                "events.creations_per_billing_period": 1,
                "guests.max_per_event": 200,
                "collaborators.max_per_event": 3,
                "photos.max_per_event": 100,
            }
        ),
    ),
    "pro": PlanDefinition(
        code="pro",
        name="Pro",
        price=15000,
        sandbox_price=300,
        duration_months=8,
        features=_features(*FEATURE_KEYS),
        limits=_limits(
            {
                "events.creations_per_billing_period": 1,
                "guests.max_per_event": UNLIMITED,
                "collaborators.max_per_event": UNLIMITED,
                "photos.max_per_event": UNLIMITED,
            }
        ),
    ),
}


def get_plan(code: str) -> PlanDefinition:
    """Look up a plan by code.

    Raises:
        ValueError: If the code is not in the catalog.
    """
    plan = PLANS.get(code)
    if plan is None:
        raise ValueError(f"Unknown plan: {code}")
    return plan
