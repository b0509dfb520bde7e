"""Payment repository for data access."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from eventplan.models.payment import Payment, PaymentMethod, PaymentStatus


class PaymentRepository:
    """Repository for Payment model."""

    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        account_id: UUID | None = None,
        event_id: UUID | None = None,
        status: PaymentStatus | None = None,
    ) -> list[Payment]:
        """Get all payments with optional filters."""
        query = self.db.query(Payment)

        if account_id is not None:
            query = query.filter(Payment.account_id == account_id)
        if event_id:
            query = query.filter(Payment.event_id == event_id)
        if status:
            query = query.filter(Payment.status == status.value)

        return query.order_by(Payment.created_at.desc()).offset(skip).limit(limit).all()

    def get_by_id(self, payment_id: UUID, account_id: UUID | None = None) -> Payment | None:
        """Get a payment by ID, optionally restricted to one account."""
        query = self.db.query(Payment).filter(Payment.id == payment_id)
        if account_id is not None:
            query = query.filter(Payment.account_id == account_id)
        return query.first()

    def get_by_reference(self, transaction_reference: str) -> Payment | None:
        """Get a payment by the provider's transaction reference."""
        return (
            self.db.query(Payment)
            .filter(Payment.transaction_reference == transaction_reference)
            .first()
        )

    def get_pending(self, created_before: datetime | None = None, limit: int = 100) -> list[Payment]:
        query = self.db.query(Payment).filter(Payment.status == PaymentStatus.PENDING.value)
        if created_before is not None:
            query = query.filter(Payment.created_at < created_before)
        return query.order_by(Payment.created_at.asc()).limit(limit).all()

    def get_completed_unactivated(self, limit: int = 100) -> list[Payment]:
        """Completed payments with an intent that no subscription records yet."""
        return (
            self.db.query(Payment)
            .filter(
                Payment.status == PaymentStatus.COMPLETED.value,
                Payment.subscription_id.is_(None),
                Payment.event_id.isnot(None),
                Payment.intent.isnot(None),
            )
            .order_by(Payment.completed_at.asc())
            .limit(limit)
            .all()
        )

    def create(
        self,
        *,
        account_id: UUID,
        amount: int,
        currency: str,
        method: PaymentMethod,
        phone_number: str,
        event_id: UUID | None = None,
        plan_type: str | None = None,
        intent: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Payment:
        """Create a new pending payment."""
        payment = Payment(
            account_id=account_id,
            event_id=event_id,
            amount=amount,
            currency=currency,
            method=method.value,
            phone_number=phone_number,
            plan_type=plan_type,
            intent=intent,
            status=PaymentStatus.PENDING.value,
            payment_metadata=metadata or {},
        )
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def set_reference(self, payment: Payment, transaction_reference: str) -> Payment:
        payment.transaction_reference = transaction_reference  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def mark_completed(self, payment_id: UUID) -> bool:
        """Move a pending payment to completed. Returns False if it was not pending."""
        return self._finish(payment_id, PaymentStatus.COMPLETED, None)

    def mark_failed(self, payment_id: UUID, reason: str | None = None) -> bool:
        """Move a pending payment to failed. Returns False if it was not pending."""
        return self._finish(payment_id, PaymentStatus.FAILED, reason)

    def _finish(self, payment_id: UUID, status: PaymentStatus, reason: str | None) -> bool:
        # The status filter makes the transition a compare-and-set
        values: dict[str, Any] = {
            Payment.status: status.value,
            Payment.updated_at: datetime.now(UTC),
        }
        if status == PaymentStatus.COMPLETED:
            values[Payment.completed_at] = datetime.now(UTC)
        if reason is not None:
            values[Payment.failure_reason] = reason
        updated = (
            self.db.query(Payment)
            .filter(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING.value)
            .update(values, synchronize_session=False)
        )
        self.db.commit()
        self.db.expire_all()
        return bool(updated)
