from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from eventplan.core.config import settings
from eventplan.core.database import get_db
from eventplan.repositories.account_repository import AccountRepository
from eventplan.schemas.actor import ActorContext


def create_access_token(account_id: UUID, expires_in: timedelta = timedelta(hours=12)) -> str:
    """Issue a signed token identifying an account."""
    now = datetime.now(UTC)
    payload = {
        "sub": str(account_id),
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> UUID:
    """Return the account id carried by a token.

    Raises:
        jwt.InvalidTokenError: If the token is malformed, expired or badly signed.
        KeyError, ValueError: If ``sub`` is missing or not a UUID.
    """
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    return UUID(payload["sub"])


def get_current_actor(
    request: Request,
    db: Session = Depends(get_db),
) -> ActorContext:
    """Resolve the calling account from the bearer token in the Authorization header.

    The admin flag comes from the account row, so every downstream decision
    receives it explicitly through the returned context.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Authorization header is required")

    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    token = auth_header[7:]
    if not token:
        raise HTTPException(status_code=401, detail="Token is required")

    try:
        account_id = decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired") from None
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token") from None

    account = AccountRepository(db).get_by_id(account_id)
    if not account:
        raise HTTPException(status_code=401, detail="Unknown account")

    return ActorContext(account_id=account.id, is_admin=account.is_admin)  # type: ignore[arg-type]
