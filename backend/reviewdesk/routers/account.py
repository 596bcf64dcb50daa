from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from reviewdesk.core.auth import get_current_user
from reviewdesk.core.database import get_db
from reviewdesk.services.account_service import (
    ACCOUNT_DELETED_MESSAGE,
    AUTH_DATA_NOTE,
    AccountService,
)

router = APIRouter()


@router.delete(
    "",
    summary="Delete account data",
    responses={401: {"description": "Unauthorized"}},
)
async def delete_account(
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> dict[str, Any]:
    """Delete the caller's profile, plan, saved cards and reviews.

    Billing records are kept. The auth user itself is removed by an administrator.
    """
    AccountService(db).delete_account_data(user_id)
    return {"success": True, "message": ACCOUNT_DELETED_MESSAGE, "note": AUTH_DATA_NOTE}
