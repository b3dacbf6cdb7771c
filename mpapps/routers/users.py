from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel

from mpapps.auth.deps import CurrentUser, get_current_user
from mpapps.ministry_platform.provider import MinistryPlatformProvider, get_provider
from mpapps.services import users as users_service

router = APIRouter(prefix="/users", tags=["users"])


class CongregationUpdate(BaseModel):
    congregation_id: int


@router.get("/me")
def my_profile(
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    try:
        # An impersonating admin sees the impersonated contact.
        if user.simulation is not None and user.simulation.type == "impersonate":
            return users_service.get_user_profile_by_contact_id(mp, user.contact_id)
        return users_service.get_user_profile(mp, user.session.sub)
    except users_service.UserNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found") from exc


@router.put("/me/congregation", status_code=status.HTTP_204_NO_CONTENT)
def update_my_congregation(
    payload: CongregationUpdate,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> Response:
    if not user.contact_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No contact linked to this account")
    users_service.update_web_congregation(mp, user.contact_id, payload.congregation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
