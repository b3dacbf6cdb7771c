from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from mpapps.auth.deps import CurrentUser, get_current_user
from mpapps.auth.permissions import (
    resolve_announcement_permissions,
    resolve_budget_permissions,
    resolve_rsvp_permissions,
)
from mpapps.auth.simulation import decode_app_simulation
from mpapps.core.config import settings
from mpapps.core.db import get_db
from mpapps.ministry_platform.provider import MinistryPlatformProvider, get_provider
from mpapps.models.application import Application
from mpapps.schemas.permissions import AppAccessOut, ApplicationOut, AppRoleCheck
from mpapps.services import app_permissions as app_permissions_service

router = APIRouter(tags=["permissions"])


@router.get("/permissions", response_model=AppAccessOut)
def get_app_permissions(
    request: Request,
    application_id: int = Query(...),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> AppAccessOut:
    application = db.get(Application, application_id)
    if not application:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    cookie = decode_app_simulation(request.cookies.get(settings.APP_SIMULATION_COOKIE_NAME))
    access = app_permissions_service.check_app_access(db, application.key, user, cookie)
    return AppAccessOut(**access.as_dict())


@router.get("/permissions/capabilities")
def get_capabilities(user: CurrentUser = Depends(get_current_user)) -> dict[str, dict]:
    return {
        "budgets": resolve_budget_permissions(user.roles).as_dict(),
        "announcements": resolve_announcement_permissions(user.roles).as_dict(),
        "rsvp": resolve_rsvp_permissions(user.roles).as_dict(),
    }


@router.get("/permissions/app-role", response_model=AppRoleCheck)
def check_app_role(
    app_key: str = Query(..., min_length=1),
    role_key: str = Query(..., min_length=1),
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> AppRoleCheck:
    has_role = app_permissions_service.has_app_role(mp.procedures, user, app_key, role_key)
    return AppRoleCheck(app_key=app_key, role_key=role_key, has_role=has_role)


@router.get("/applications", response_model=list[ApplicationOut])
def list_applications(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> list[ApplicationOut]:
    applications = app_permissions_service.list_user_applications(db, user)
    return [ApplicationOut.model_validate(application) for application in applications]
