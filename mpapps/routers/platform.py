from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from mpapps.auth.deps import CurrentUser, get_user_provider, require_roles
from mpapps.auth.permissions import PLATFORM_ROLES
from mpapps.ministry_platform.provider import MinistryPlatformProvider

router = APIRouter(prefix="/platform", tags=["platform"], dependencies=[Depends(require_roles(*PLATFORM_ROLES))])


@router.get("/domain")
def domain_info(mp: MinistryPlatformProvider = Depends(get_user_provider)) -> dict:
    return mp.domain.get_domain_info()


@router.get("/domain/filters")
def global_filters(
    ignore_permissions: bool | None = Query(default=None),
    user: CurrentUser = Depends(require_roles(*PLATFORM_ROLES)),
    mp: MinistryPlatformProvider = Depends(get_user_provider),
) -> list[dict]:
    return mp.domain.get_global_filters(ignore_permissions=ignore_permissions, user_id=user.user_id)


@router.get("/procedures")
def list_procedures(
    search: str | None = Query(default=None),
    mp: MinistryPlatformProvider = Depends(get_user_provider),
) -> list[dict]:
    return mp.procedures.list_procedures(search)
