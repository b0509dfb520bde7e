"""Account-level subscription endpoints: plan catalog, trial and subscribe."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from eventplan.core.auth import get_current_actor
from eventplan.core.config import settings
from eventplan.core.database import get_db
from eventplan.repositories.subscription_repository import SubscriptionRepository
from eventplan.schemas.actor import ActorContext
from eventplan.schemas.plan import PlanResponse, TrialAvailability
from eventplan.schemas.subscription import (
    AccountSubscribeRequest,
    SubscribeResponse,
    SubscriptionResponse,
)
from eventplan.services.entitlement_service import EntitlementCache, get_entitlement_cache
from eventplan.services.plan_catalog import PLANS, TRIAL_PLAN_CODE, get_plan
from eventplan.services.subscription_activator import SubscriptionActivator

router = APIRouter()


@router.get("/plans", response_model=list[PlanResponse], summary="List plans")
async def list_plans() -> list[PlanResponse]:
    """Plan catalog priced in the deployment's billing currency."""
    return [
        plan.to_response(settings.is_sandbox, settings.billing_currency) for plan in PLANS.values()
    ]


@router.get("/trial", response_model=TrialAvailability, summary="Trial availability")
async def get_trial(
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> TrialAvailability:
    """The trial can be started once per account."""
    available = not SubscriptionRepository(db).has_used_trial(actor.account_id)
    plan = get_plan(TRIAL_PLAN_CODE).to_response(settings.is_sandbox, settings.billing_currency)
    return TrialAvailability(available=available, plan=plan if available else None)


@router.post(
    "/subscribe",
    response_model=SubscribeResponse,
    summary="Subscribe the calling account to a plan",
    responses={400: {"description": "Unknown plan or trial already used"}},
)
async def subscribe(
    data: AccountSubscribeRequest,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
    cache: EntitlementCache = Depends(get_entitlement_cache),
) -> SubscribeResponse:
    """Trial and free plans are activated immediately.

    Paid plans answer ``requires_payment=true``; they are bought per event.
    """
    try:
        plan = get_plan(data.plan_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None

    if plan.requires_payment:
        return SubscribeResponse(
            requires_payment=True,
            amount=plan.price_for(settings.is_sandbox),
            currency=settings.billing_currency,
        )

    try:
        subscription = SubscriptionActivator(db, cache).start_trial(actor, plan.code)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return SubscribeResponse(
        requires_payment=False,
        subscription=SubscriptionResponse.model_validate(subscription),
    )
