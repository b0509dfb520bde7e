from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from eventplan.models.payment import Payment
from eventplan.models.payment_request_key import PaymentRequestKey


class PaymentRequestKeyRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_payment(self, account_id: UUID, idempotency_key: str) -> Payment | None:
        return (
            self.db.query(Payment)
            .join(PaymentRequestKey, PaymentRequestKey.payment_id == Payment.id)
            .filter(
                PaymentRequestKey.account_id == account_id,
                PaymentRequestKey.idempotency_key == idempotency_key,
            )
            .first()
        )

    def bind(self, account_id: UUID, idempotency_key: str, payment_id: UUID) -> PaymentRequestKey:
        """Point the key at a payment, replacing the charge it named before."""
        record = (
            self.db.query(PaymentRequestKey)
            .filter(
                PaymentRequestKey.account_id == account_id,
                PaymentRequestKey.idempotency_key == idempotency_key,
            )
            .first()
        )
        if record is None:
            record = PaymentRequestKey(account_id=account_id, idempotency_key=idempotency_key)
            self.db.add(record)
        record.payment_id = payment_id  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(record)
        return record

    def delete_created_before(self, cutoff: datetime) -> int:
        count = (
            self.db.query(PaymentRequestKey)
            .filter(PaymentRequestKey.created_at < cutoff)
            .delete()
        )
        self.db.commit()
        return int(count)
