from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from mpapps.auth.deps import CurrentUser, get_current_user, get_optional_user
from mpapps.auth.permissions import is_prayer_staff
from mpapps.ministry_platform.provider import MinistryPlatformProvider, get_provider
from mpapps.schemas.prayers import PrayedRequest, PrayerCreate, PrayerStats
from mpapps.services import prayers as prayers_service

router = APIRouter(prefix="/prayers", tags=["prayers"])


def _require_contact(user: CurrentUser) -> int:
    if not user.contact_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No contact linked to this account")
    return user.contact_id


@router.get("")
def list_prayers(
    user: CurrentUser | None = Depends(get_optional_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> list[dict]:
    return prayers_service.list_prayers_with_counts(mp, user.contact_id if user else None)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_prayer(
    payload: PrayerCreate,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    return prayers_service.create_prayer(
        mp,
        contact_id=_require_contact(user),
        description=payload.description,
        title=payload.title,
        feedback_type_id=payload.feedback_type_id,
        ongoing=payload.ongoing,
    )


@router.get("/search")
def search_prayers(
    q: str | None = Query(default=None),
    limit: int = Query(default=6, ge=1, le=50),
    _: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> list[dict]:
    return prayers_service.search_prayers(mp, q, limit)


@router.get("/my-requests")
def my_requests(
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> list[dict]:
    return prayers_service.list_my_prayers(mp, _require_contact(user))


@router.get("/stats", response_model=PrayerStats)
def prayer_stats(
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> PrayerStats:
    return PrayerStats(**prayers_service.get_user_prayer_stats(mp, _require_contact(user)))


@router.get("/widget-data")
def widget_data(
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    return prayers_service.get_widget_data(mp, _require_contact(user))


@router.post("/{prayer_id}/pray", status_code=status.HTTP_201_CREATED)
def pray_for(
    prayer_id: int,
    payload: PrayedRequest | None = None,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    contact_id = _require_contact(user)
    if prayers_service.get_prayer(mp, prayer_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prayer not found")
    response = prayers_service.record_prayed(mp, prayer_id, contact_id, payload.message if payload else None)
    return {"response": response, "prayer_count": prayers_service.get_prayer_count(mp, prayer_id)}


@router.post("/{prayer_id}/approve")
def approve_prayer(
    prayer_id: int,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    if not is_prayer_staff(user.roles):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only staff members can approve prayers")
    try:
        return prayers_service.approve_prayer(mp, prayer_id, user_id=user.user_id)
    except prayers_service.PrayerNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prayer not found") from exc
