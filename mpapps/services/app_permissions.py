from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Iterable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from mpapps.auth.deps import CurrentUser, get_current_user
from mpapps.auth.simulation import AppSimulation as AppSimulationCookie
from mpapps.auth.simulation import decode_app_simulation
from mpapps.core.config import settings
from mpapps.core.db import get_db
from mpapps.ministry_platform.envelope import first_record
from mpapps.ministry_platform.errors import MinistryPlatformError
from mpapps.ministry_platform.procedures import ProcedureService
from mpapps.models.application import Application, AppPermission, AppSimulation

logger = logging.getLogger(__name__)

CHECK_APP_ROLE_PROC = "api_Custom_Platform_CheckUserAppRole_JSON"


@dataclass
class AppAccess:
    has_access: bool = False
    can_edit: bool = False
    can_delete: bool = False

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class AppRole:
    role_name: str
    can_view: bool = False
    can_edit: bool = False
    can_delete: bool = False


FULL_ACCESS = AppAccess(has_access=True, can_edit=True, can_delete=True)


def get_application_by_key(db: Session, app_key: str) -> Application | None:
    return db.query(Application).filter(Application.key == app_key).first()


def check_app_permissions(
    db: Session,
    application_id: int,
    email: str | None,
    roles: Iterable[str],
) -> AppAccess:
    """OR the flags of every permission row matching one of the roles or the email."""

    role_list = [role for role in roles if role]
    if settings.ADMIN_ROLE in role_list:
        return AppAccess(**FULL_ACCESS.as_dict())

    matchers = []
    if role_list:
        matchers.append(AppPermission.role_name.in_(role_list))
    if email:
        matchers.append(AppPermission.user_email == email)
    if not matchers:
        return AppAccess()

    rows = (
        db.query(AppPermission)
        .filter(AppPermission.application_id == application_id, or_(*matchers))
        .all()
    )
    access = AppAccess()
    for row in rows:
        access.has_access = access.has_access or bool(row.can_view)
        access.can_edit = access.can_edit or bool(row.can_edit)
        access.can_delete = access.can_delete or bool(row.can_delete)
    return access


def _active_app_simulation(
    db: Session,
    application_id: int,
    email: str | None,
    cookie: AppSimulationCookie | None,
) -> AppSimulationCookie | None:
    if cookie is None or cookie.application_id != application_id or not email:
        return None
    row = get_app_simulation(db, application_id, email)
    if row is None or not row.is_active:
        return None
    return cookie


def check_app_access(
    db: Session,
    app_key: str,
    user: CurrentUser,
    app_simulation: AppSimulationCookie | None = None,
) -> AppAccess:
    application = get_application_by_key(db, app_key)
    if application is None:
        logger.error("app_permission_unknown_application", extra={"app_key": app_key})
        return AppAccess()

    email = user.session.email
    roles = list(user.roles)
    if user.is_admin:
        simulated = _active_app_simulation(db, application.id, email, app_simulation)
        if simulated is not None:
            roles = simulated.roles

    return check_app_permissions(db, application.id, email, roles)


def list_application_roles(db: Session, application_id: int) -> list[AppRole]:
    """Distinct role names configured for an application, flags merged across rows."""

    rows = (
        db.query(AppPermission)
        .filter(AppPermission.application_id == application_id, AppPermission.role_name.isnot(None))
        .order_by(AppPermission.role_name.asc())
        .all()
    )
    merged: dict[str, AppRole] = {}
    for row in rows:
        if not row.role_name:
            continue
        role = merged.setdefault(row.role_name, AppRole(role_name=row.role_name))
        role.can_view = role.can_view or bool(row.can_view)
        role.can_edit = role.can_edit or bool(row.can_edit)
        role.can_delete = role.can_delete or bool(row.can_delete)
    return list(merged.values())


def get_app_simulation(db: Session, application_id: int, email: str) -> AppSimulation | None:
    return (
        db.query(AppSimulation)
        .filter(AppSimulation.application_id == application_id, AppSimulation.user_email == email)
        .order_by(AppSimulation.id.desc())
        .first()
    )


def enable_app_simulation(db: Session, application_id: int, email: str) -> AppSimulation:
    simulation = get_app_simulation(db, application_id, email)
    if simulation is None:
        simulation = AppSimulation(application_id=application_id, user_email=email, is_active=True)
        db.add(simulation)
    else:
        simulation.is_active = True
    db.commit()
    db.refresh(simulation)
    logger.info("app_simulation_enabled", extra={"application_id": application_id, "user_email": email})
    return simulation


def disable_app_simulation(db: Session, application_id: int, email: str) -> bool:
    simulation = get_app_simulation(db, application_id, email)
    if simulation is None or not simulation.is_active:
        return False
    simulation.is_active = False
    db.commit()
    logger.info("app_simulation_disabled", extra={"application_id": application_id, "user_email": email})
    return True


def has_app_role(
    procedures: ProcedureService,
    user: CurrentUser,
    app_key: str,
    role_key: str,
) -> bool:
    if settings.ADMIN_ROLE in user.roles:
        return True
    try:
        result = procedures.execute_json(
            CHECK_APP_ROLE_PROC,
            {
                "@UserName": user.user_name,
                "@ApplicationKey": app_key,
                "@RoleKey": role_key,
                "@DomainID": settings.MINISTRY_PLATFORM_DOMAIN_ID,
            },
        )
    except (MinistryPlatformError, ValueError):
        logger.warning(
            "app_role_check_failed",
            extra={"app_key": app_key, "role_key": role_key, "user": user.user_name},
            exc_info=True,
        )
        return False

    record = first_record(result) if isinstance(result, list) else result
    if not isinstance(record, dict):
        return False
    return record.get("HasRole") is True or record.get("HasRole") == 1


def list_user_applications(db: Session, user: CurrentUser) -> list[Application]:
    applications = (
        db.query(Application)
        .filter(Application.is_active.is_(True))
        .order_by(Application.sort_order, Application.name)
        .all()
    )
    if user.is_admin and not user.is_simulating:
        return applications
    email = user.session.email
    return [app for app in applications if check_app_permissions(db, app.id, email, user.roles).has_access]


def require_app_access(app_key: str, *, edit: bool = False, delete: bool = False):
    """Dependency factory guarding a router with the local permission table."""

    def checker(
        request: Request,
        user: CurrentUser = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> AppAccess:
        cookie = decode_app_simulation(request.cookies.get(settings.APP_SIMULATION_COOKIE_NAME))
        access = check_app_access(db, app_key, user, cookie)
        if not access.has_access or (edit and not access.can_edit) or (delete and not access.can_delete):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return access

    return checker
