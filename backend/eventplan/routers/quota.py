from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from eventplan.core.auth import get_current_actor
from eventplan.core.database import get_db
from eventplan.schemas.actor import ActorContext
from eventplan.schemas.quota import QuotaResponse
from eventplan.services.quota_service import QuotaService

router = APIRouter()


@router.get("/quota", response_model=QuotaResponse, summary="Event creation quota")
async def get_quota(
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> QuotaResponse:
    """Quota of the calling account with its warning level."""
    try:
        return QuotaService(db).quota_for(actor.account_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
