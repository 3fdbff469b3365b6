from fastapi import APIRouter, Depends

from medportal.auth import Session
from medportal.authorization import require_roles
from medportal.roles import CLINICAL_STAFF

router = APIRouter()


@router.get("")
async def list_messages(session: Session = Depends(require_roles(*CLINICAL_STAFF))):
    # Messaging is not implemented; the page renders an empty inbox.
    return {"messages": [], "total": 0}
