import logging
from datetime import timedelta
from typing import Any

from arq import cron
from arq.connections import RedisSettings

from eventplan.core.config import settings
from eventplan.core.database import SessionLocal
from eventplan.models.payment import PaymentStatus
from eventplan.models.shared import utc_now
from eventplan.repositories.payment_repository import PaymentRepository
from eventplan.repositories.payment_request_key_repository import PaymentRequestKeyRepository
from eventplan.services.payment_service import PaymentService
from eventplan.services.subscription_activator import activate_completed_payment

logger = logging.getLogger(__name__)

# Redis connection settings
redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)


async def reconcile_pending_payments_task(ctx: dict[str, Any]) -> int:
    """Background task: settle payments the client stopped following.

    Pending payments are checked with their provider, since a charge may be
    confirmed after the client gave up polling. Completed payments that were
    never applied to a subscription are activated with the intent they were
    made for. Runs every minute.
    """
    db = SessionLocal()
    try:
        payment_repo = PaymentRepository(db)
        service = PaymentService(db)
        resolved = 0
        for payment in payment_repo.get_pending():
            service.refresh_status(payment)
            if payment.status != PaymentStatus.PENDING.value:
                resolved += 1

        activated = 0
        for payment in payment_repo.get_completed_unactivated():
            if activate_completed_payment(db, payment) is not None:
                activated += 1

        if resolved or activated:
            logger.info("Resolved %d pending payments, activated %d", resolved, activated)
        return resolved + activated
    finally:
        db.close()


async def expire_abandoned_payments_task(ctx: dict[str, Any]) -> int:
    """Background task: fail payments that stayed pending past the abandon window.

    Runs hourly.
    """
    db = SessionLocal()
    try:
        payment_repo = PaymentRepository(db)
        cutoff = utc_now() - timedelta(hours=settings.PAYMENT_ABANDON_AFTER_HOURS)
        count = 0
        for payment in payment_repo.get_pending(created_before=cutoff):
            if payment_repo.mark_failed(payment.id, "expired"):  # type: ignore[arg-type]
                count += 1

        if count > 0:
            logger.info("Expired %d abandoned payments", count)
        return count
    finally:
        db.close()


async def cleanup_payment_request_keys_task(ctx: dict[str, Any]) -> int:
    """Background task: forget payment keys older than a day. Runs daily."""
    db = SessionLocal()
    try:
        cutoff = utc_now() - timedelta(hours=24)
        count = PaymentRequestKeyRepository(db).delete_created_before(cutoff)
        if count > 0:
            logger.info("Deleted %d expired payment keys", count)
        return count
    finally:
        db.close()


class WorkerSettings:
    functions = [
        reconcile_pending_payments_task,
        expire_abandoned_payments_task,
        cleanup_payment_request_keys_task,
    ]
    cron_jobs = [
        cron(reconcile_pending_payments_task, second={0}),  # every minute
        cron(expire_abandoned_payments_task, minute={0}),  # hourly
        cron(cleanup_payment_request_keys_task, hour={3}, minute={0}),  # daily
    ]
    redis_settings = redis_settings
