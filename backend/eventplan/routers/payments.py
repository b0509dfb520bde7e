"""Payment API endpoints."""

from collections.abc import Callable
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from eventplan.core.auth import get_current_actor
from eventplan.core.database import get_db
from eventplan.core.errors import AccessDeniedError, PaymentProviderError, PhoneValidationError
from eventplan.models.payment import Payment, PaymentMethod, PaymentStatus
from eventplan.repositories.event_repository import EventRepository
from eventplan.repositories.payment_repository import PaymentRepository
from eventplan.schemas.actor import ActorContext
from eventplan.schemas.payment import (
    PaymentInitiate,
    PaymentInitResponse,
    PaymentPollResponse,
    PaymentResponse,
)
from eventplan.services.entitlement_service import EntitlementCache, get_entitlement_cache
from eventplan.services.payment_service import PaymentService
from eventplan.services.subscription_activator import activate_completed_payment

router = APIRouter()


def _get_visible_payment(db: Session, payment_id: UUID, actor: ActorContext) -> Payment:
    repo = PaymentRepository(db)
    payment = repo.get_by_id(payment_id, None if actor.is_admin else actor.account_id)
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    return payment


@router.get("/", response_model=list[PaymentResponse], summary="Payment history")
async def list_payments(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    event_id: UUID | None = None,
    status: PaymentStatus | None = None,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> list[Payment]:
    """List the calling account's payments, newest first."""
    repo = PaymentRepository(db)
    return repo.get_all(
        account_id=actor.account_id,
        event_id=event_id,
        status=status,
        skip=skip,
        limit=limit,
    )


def _init_response(
    payment: Payment, reused: bool, idempotency_key: str | None, response: Response
) -> PaymentInitResponse:
    if reused and idempotency_key:
        response.headers["Idempotency-Replayed"] = "true"
    return PaymentInitResponse(
        message="Payment already in progress" if reused else "Payment request sent",
        payment=PaymentResponse.model_validate(payment),
        reference=payment.transaction_reference,  # type: ignore[arg-type]
        provider=str(payment.method),
    )


def _charge(call: Callable[[], tuple[Payment, bool]]) -> tuple[Payment, bool]:
    try:
        return call()
    except PhoneValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None
    except AccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e)) from None
    except PaymentProviderError as e:
        raise HTTPException(
            status_code=502, detail=f"Payment provider unavailable: {e!s}"
        ) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.post(
    "/initiate",
    response_model=PaymentInitResponse,
    status_code=201,
    summary="Start a mobile-money payment",
    responses={
        400: {"description": "Unknown plan, nothing to pay, or key used for another purchase"},
        403: {"description": "Caller does not own the event"},
        404: {"description": "Event not found"},
        422: {"description": "Invalid phone number"},
        502: {"description": "Payment provider unavailable"},
    },
)
async def initiate_payment(
    data: PaymentInitiate,
    response: Response,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> PaymentInitResponse:
    """Send a charge request to the subscriber's phone.

    A pending payment for the same purchase is returned instead of charging
    twice. Once a charge was accepted, repeating the request with the same
    ``Idempotency-Key`` returns that payment.
    """
    if data.event_id and not EventRepository(db).get_by_id(data.event_id):
        raise HTTPException(status_code=404, detail="Event not found")

    service = PaymentService(db)
    payment, reused = _charge(lambda: service.initiate(actor, data, idempotency_key))
    return _init_response(payment, reused, idempotency_key, response)


@router.post(
    "/{payment_id}/retry",
    response_model=PaymentInitResponse,
    status_code=201,
    summary="Retry a failed payment",
    responses={
        400: {"description": "Payment did not fail"},
        404: {"description": "Payment not found"},
        502: {"description": "Payment provider unavailable"},
    },
)
async def retry_payment(
    payment_id: UUID,
    response: Response,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> PaymentInitResponse:
    """Charge again for the event, plan and intent of a failed payment."""
    failed = _get_visible_payment(db, payment_id, actor)

    service = PaymentService(db)
    payment, reused = _charge(lambda: service.retry(actor, failed, idempotency_key))
    return _init_response(payment, reused, idempotency_key, response)


@router.get("/{payment_id}", response_model=PaymentResponse, summary="Get payment")
async def get_payment(
    payment_id: UUID,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> Payment:
    return _get_visible_payment(db, payment_id, actor)


@router.get(
    "/{payment_id}/status",
    response_model=PaymentPollResponse,
    summary="Poll payment status",
)
async def poll_payment_status(
    payment_id: UUID,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> PaymentPollResponse:
    """Check a pending payment with its provider and return the latest status."""
    payment = _get_visible_payment(db, payment_id, actor)
    payment = PaymentService(db).refresh_status(payment)
    status = PaymentStatus(payment.status)
    return PaymentPollResponse(
        payment=PaymentResponse.model_validate(payment),
        is_completed=status == PaymentStatus.COMPLETED,
        is_failed=status == PaymentStatus.FAILED,
        is_pending=status == PaymentStatus.PENDING,
    )


@router.post("/callback/{method}", summary="Provider payment notification")
async def payment_callback(
    method: PaymentMethod,
    request: Request,
    signature: str | None = Header(None, alias="X-Callback-Signature"),
    db: Session = Depends(get_db),
    cache: EntitlementCache = Depends(get_entitlement_cache),
) -> dict[str, Any]:
    """Record the outcome a provider pushes for a payment.

    The body must be signed. Repeated notifications for a settled payment
    change nothing.
    """
    payload = await request.body()

    service = PaymentService(db)
    if not service.verify_callback(method, payload, signature or ""):
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload_json = await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from None

    payment = service.apply_callback(method, payload_json)
    if payment is None:
        return {"status": "ignored", "reason": "payment not found"}

    activate_completed_payment(db, payment, cache)
    return {"status": "processed", "payment_status": payment.status}
