from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from mpapps.auth.deps import CurrentUser, require_admin
from mpapps.auth.simulation import (
    AppSimulation,
    Simulation,
    clear_simulation_cookie,
    decode_app_simulation,
    encode_app_simulation,
    encode_simulation,
    set_simulation_cookie,
)
from mpapps.core.config import settings
from mpapps.core.db import get_db
from mpapps.ministry_platform.provider import MinistryPlatformProvider, get_provider
from mpapps.models.application import Application
from mpapps.schemas.permissions import AppRoleOut
from mpapps.schemas.simulation import (
    ActionResult,
    AppSimulationCookieStatus,
    AppSimulationRecord,
    AppSimulationRequest,
    AppSimulationStatus,
    AppSimulationToggle,
    ImpersonationRequest,
    RoleSimulationRequest,
    SimulationStatus,
)
from mpapps.services import app_permissions as app_permissions_service
from mpapps.services.users import UserNotFoundError, get_user_profile_by_contact_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/simulation", tags=["admin"])


def _get_application_or_404(db: Session, application_id: int) -> Application:
    application = db.get(Application, application_id)
    if not application:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return application


def _require_email(user: CurrentUser) -> str:
    if not user.session.email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Session has no email address")
    return user.session.email


@router.post("/roles", response_model=ActionResult)
def simulate_roles(
    payload: RoleSimulationRequest,
    response: Response,
    admin: CurrentUser = Depends(require_admin),
) -> ActionResult:
    token = encode_simulation(Simulation(type="roles", admin_user_id=admin.session.sub, roles=payload.roles))
    set_simulation_cookie(response, settings.SIMULATION_COOKIE_NAME, token)
    logger.info("simulation_roles_started", extra={"admin": admin.session.sub, "roles": payload.roles})
    return ActionResult()


@router.post("/impersonate", response_model=ActionResult)
def impersonate(
    payload: ImpersonationRequest,
    response: Response,
    admin: CurrentUser = Depends(require_admin),
) -> ActionResult:
    token = encode_simulation(
        Simulation(type="impersonate", admin_user_id=admin.session.sub, contact_id=payload.contact_id)
    )
    set_simulation_cookie(response, settings.SIMULATION_COOKIE_NAME, token)
    logger.info("simulation_impersonation_started", extra={"admin": admin.session.sub, "contact_id": payload.contact_id})
    return ActionResult()


@router.get("/status", response_model=SimulationStatus)
def simulation_status(
    admin: CurrentUser = Depends(require_admin),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> SimulationStatus:
    simulation = admin.simulation
    if simulation is None:
        return SimulationStatus(active=False)
    if simulation.type == "roles":
        return SimulationStatus(active=True, type="roles", roles=simulation.roles)
    try:
        profile = get_user_profile_by_contact_id(mp, simulation.contact_id)
    except UserNotFoundError:
        return SimulationStatus(active=False)
    return SimulationStatus(active=True, type="impersonate", user=profile)


@router.delete("", response_model=ActionResult)
def stop_simulation(response: Response, admin: CurrentUser = Depends(require_admin)) -> ActionResult:
    clear_simulation_cookie(response, settings.SIMULATION_COOKIE_NAME)
    logger.info("simulation_stopped", extra={"admin": admin.session.sub})
    return ActionResult()


@router.get("/app", response_model=AppSimulationCookieStatus)
def app_simulation_cookie(request: Request, _: CurrentUser = Depends(require_admin)) -> AppSimulationCookieStatus:
    cookie = decode_app_simulation(request.cookies.get(settings.APP_SIMULATION_COOKIE_NAME))
    if cookie is None:
        return AppSimulationCookieStatus(active=False)
    return AppSimulationCookieStatus(active=True, application_id=cookie.application_id, roles=cookie.roles)


@router.post("/app", response_model=ActionResult)
def set_app_simulation_cookie(
    payload: AppSimulationRequest,
    response: Response,
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_admin),
) -> ActionResult:
    if payload.application_id is None:
        clear_simulation_cookie(response, settings.APP_SIMULATION_COOKIE_NAME)
        return ActionResult(message="Permission simulation disabled")
    application = _get_application_or_404(db, payload.application_id)
    token = encode_app_simulation(AppSimulation(application_id=application.id, roles=payload.roles))
    set_simulation_cookie(response, settings.APP_SIMULATION_COOKIE_NAME, token)
    return ActionResult(message=f"Simulating {len(payload.roles)} role(s) for {application.name}")


@router.post("/app/enable", response_model=ActionResult)
def enable_app_simulation(
    payload: AppSimulationToggle,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
) -> ActionResult:
    application = _get_application_or_404(db, payload.application_id)
    app_permissions_service.enable_app_simulation(db, application.id, _require_email(admin))
    return ActionResult(message=f"Permission simulation enabled for {application.name}")


@router.post("/app/disable", response_model=ActionResult)
def disable_app_simulation(
    payload: AppSimulationToggle,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
) -> ActionResult:
    application = _get_application_or_404(db, payload.application_id)
    if not app_permissions_service.disable_app_simulation(db, application.id, _require_email(admin)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active simulation found")
    return ActionResult(message=f"Permission simulation disabled for {application.name}")


@router.get("/app/status", response_model=AppSimulationStatus)
def app_simulation_status(
    application_id: int = Query(...),
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
) -> AppSimulationStatus:
    simulation = app_permissions_service.get_app_simulation(db, application_id, _require_email(admin))
    if simulation is None or not simulation.is_active:
        return AppSimulationStatus(active=False)
    return AppSimulationStatus(active=True, simulation=AppSimulationRecord.model_validate(simulation))


@router.get("/app/roles", response_model=list[AppRoleOut])
def app_simulation_roles(
    application_id: int = Query(...),
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_admin),
) -> list[AppRoleOut]:
    _get_application_or_404(db, application_id)
    roles = app_permissions_service.list_application_roles(db, application_id)
    return [AppRoleOut(**vars(role)) for role in roles]
