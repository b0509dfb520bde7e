from uuid import UUID

from sqlalchemy.orm import Session

from eventplan.models.subscription_activation import SubscriptionActivation


class SubscriptionActivationRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_payment_id(self, payment_id: UUID) -> SubscriptionActivation | None:
        return (
            self.db.query(SubscriptionActivation)
            .filter(SubscriptionActivation.payment_id == payment_id)
            .first()
        )
