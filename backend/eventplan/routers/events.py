"""Event-scoped access endpoints: permissions, entitlements, resolved access and subscription."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from eventplan.core.auth import get_current_actor
from eventplan.core.config import settings
from eventplan.core.database import get_db
from eventplan.core.errors import AccessDeniedError, ActivationError
from eventplan.models.subscription import Subscription
from eventplan.repositories.event_repository import EventRepository
from eventplan.repositories.subscription_repository import SubscriptionRepository
from eventplan.schemas.access import AccessView
from eventplan.schemas.actor import ActorContext
from eventplan.schemas.entitlement import Entitlements
from eventplan.schemas.permission import PermissionSet
from eventplan.schemas.subscription import (
    EventSubscribeRequest,
    RenewRequest,
    SubscribeResponse,
    SubscriptionResponse,
    UpgradeRequest,
)
from eventplan.services.entitlement_service import (
    EntitlementCache,
    EntitlementService,
    get_entitlement_cache,
)
from eventplan.services.feature_access import resolve_access
from eventplan.services.permission_service import PermissionService
from eventplan.services.plan_catalog import get_plan
from eventplan.services.subscription_activator import SubscriptionActivator

router = APIRouter()


def _require_event(db: Session, event_id: UUID) -> None:
    if not EventRepository(db).get_by_id(event_id):
        raise HTTPException(status_code=404, detail="Event not found")


def _require_member(db: Session, actor: ActorContext, event_id: UUID) -> None:
    if actor.is_admin:
        return
    if PermissionService(db).permissions_for(actor, event_id).grant is None:
        raise HTTPException(status_code=403, detail="Not a member of this event")


@router.get(
    "/{event_id}/permissions",
    response_model=PermissionSet,
    summary="Caller's permissions on an event",
    responses={404: {"description": "Event not found"}},
)
async def get_permissions(
    event_id: UUID,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> PermissionSet:
    """Return the caller's role grant and capability strings. Non-members get an empty set."""
    _require_event(db, event_id)
    return PermissionService(db).permissions_for(actor, event_id)


@router.get(
    "/{event_id}/entitlements",
    response_model=Entitlements,
    summary="Event owner's plan entitlements",
    responses={
        403: {"description": "Caller is not a member of the event"},
        404: {"description": "Event not found"},
    },
)
async def get_entitlements(
    event_id: UUID,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
    cache: EntitlementCache = Depends(get_entitlement_cache),
) -> Entitlements:
    """Features and limits of the owner's plan, shared by every collaborator."""
    _require_event(db, event_id)
    _require_member(db, actor, event_id)
    return EntitlementService(db, cache).entitlements_for_event(event_id)


@router.get(
    "/{event_id}/access",
    response_model=AccessView,
    summary="Resolved feature access for the caller",
    responses={404: {"description": "Event not found"}},
)
async def get_access(
    event_id: UUID,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
    cache: EntitlementCache = Depends(get_entitlement_cache),
) -> AccessView:
    """Combine the owner's entitlements with the caller's permissions."""
    _require_event(db, event_id)
    permissions = PermissionService(db).permissions_for(actor, event_id)
    entitlements: Entitlements | None = None
    if actor.is_admin or permissions.grant is not None:
        entitlements = EntitlementService(db, cache).entitlements_for_event(event_id)
    return resolve_access(actor, entitlements, permissions)


@router.get(
    "/{event_id}/subscription",
    response_model=SubscriptionResponse,
    summary="Current subscription of an event",
    responses={
        403: {"description": "Caller is not a member of the event"},
        404: {"description": "Event or subscription not found"},
    },
)
async def get_event_subscription(
    event_id: UUID,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> Subscription:
    _require_event(db, event_id)
    _require_member(db, actor, event_id)
    subscription = SubscriptionRepository(db).get_latest_for_event(event_id)
    if not subscription:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return subscription


@router.post(
    "/{event_id}/subscription",
    response_model=SubscribeResponse,
    summary="Subscribe an event to a plan",
    responses={
        400: {"description": "Unknown plan"},
        403: {"description": "Caller does not own the event"},
        404: {"description": "Event not found"},
        409: {"description": "Payment cannot be applied"},
    },
)
async def subscribe_event(
    event_id: UUID,
    data: EventSubscribeRequest,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
    cache: EntitlementCache = Depends(get_entitlement_cache),
) -> SubscribeResponse:
    """Subscribe directly for free plans, or with a completed payment for paid ones.

    Without ``payment_id`` a paid plan answers ``requires_payment=true`` with the price.
    """
    _require_event(db, event_id)
    activator = SubscriptionActivator(db, cache)
    try:
        subscription = activator.subscribe_event(actor, event_id, data.plan_type, data.payment_id)
    except AccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e)) from None
    except ActivationError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None

    if subscription is None:
        plan = get_plan(data.plan_type)
        return SubscribeResponse(
            requires_payment=True,
            amount=plan.price_for(settings.is_sandbox),
            currency=settings.billing_currency,
        )
    return SubscribeResponse(
        requires_payment=False,
        subscription=SubscriptionResponse.model_validate(subscription),
    )


@router.post(
    "/{event_id}/subscription/upgrade",
    response_model=SubscriptionResponse,
    summary="Upgrade an event's plan",
    responses={
        400: {"description": "Unknown plan or payment"},
        403: {"description": "Caller does not own the event"},
        404: {"description": "Event not found"},
        409: {"description": "Payment cannot be applied"},
    },
)
async def upgrade_subscription(
    event_id: UUID,
    data: UpgradeRequest,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
    cache: EntitlementCache = Depends(get_entitlement_cache),
) -> Subscription:
    """Replace plan, features and limits. The expiry date is kept."""
    _require_event(db, event_id)
    try:
        return SubscriptionActivator(db, cache).upgrade(
            actor, event_id, data.plan_type, data.payment_id
        )
    except AccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e)) from None
    except ActivationError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.post(
    "/{event_id}/subscription/renew",
    response_model=SubscriptionResponse,
    summary="Renew an event's subscription",
    responses={
        400: {"description": "Unknown payment"},
        403: {"description": "Caller does not own the event"},
        404: {"description": "Event not found"},
        409: {"description": "Payment cannot be applied"},
    },
)
async def renew_subscription(
    event_id: UUID,
    data: RenewRequest,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
    cache: EntitlementCache = Depends(get_entitlement_cache),
) -> Subscription:
    """Extend the expiry by one billing period from the later of now and the current expiry."""
    _require_event(db, event_id)
    try:
        return SubscriptionActivator(db, cache).renew(actor, event_id, data.payment_id)
    except AccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e)) from None
    except ActivationError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.post(
    "/{event_id}/subscription/cancel",
    status_code=204,
    summary="Cancel an event's subscription",
    responses={
        400: {"description": "No active subscription"},
        403: {"description": "Caller does not own the event"},
        404: {"description": "Event not found"},
    },
)
async def cancel_subscription(
    event_id: UUID,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
    cache: EntitlementCache = Depends(get_entitlement_cache),
) -> None:
    _require_event(db, event_id)
    try:
        SubscriptionActivator(db, cache).cancel(actor, event_id)
    except AccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
