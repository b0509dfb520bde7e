from uuid import UUID

from sqlalchemy.orm import Session

from eventplan.models.account import Account


class AccountRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, account_id: UUID) -> Account | None:
        return self.db.query(Account).filter(Account.id == account_id).first()

