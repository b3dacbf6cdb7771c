from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from mpapps.auth.session import SessionError, SessionUser, decode_session_token
from mpapps.auth.simulation import Simulation, decode_simulation
from mpapps.core.config import settings
from mpapps.ministry_platform.provider import MinistryPlatformProvider, get_provider

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    """A signed-in user plus any admin simulation layered on top."""

    session: SessionUser
    simulation: Simulation | None = None

    @property
    def real_roles(self) -> list[str]:
        return self.session.roles

    @property
    def roles(self) -> list[str]:
        if self.simulation is not None and self.simulation.type == "roles":
            return self.simulation.roles
        return self.session.roles

    @property
    def contact_id(self) -> int | None:
        if self.simulation is not None and self.simulation.type == "impersonate":
            return self.simulation.contact_id
        return self.session.contact_id

    @property
    def user_id(self) -> int | None:
        return self.session.user_id

    @property
    def user_name(self) -> str:
        return self.session.user_name

    @property
    def is_admin(self) -> bool:
        return self.session.is_admin

    @property
    def is_simulating(self) -> bool:
        return self.simulation is not None


def _resolve_simulation(request: Request, session: SessionUser) -> Simulation | None:
    if not session.is_admin:
        return None
    simulation = decode_simulation(request.cookies.get(settings.SIMULATION_COOKIE_NAME))
    if simulation is None or simulation.admin_user_id != session.sub:
        return None
    return simulation


def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentUser | None:
    if not credentials:
        return None
    try:
        session = decode_session_token(credentials.credentials)
    except SessionError:
        return None
    return CurrentUser(session=session, simulation=_resolve_simulation(request, session))


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentUser:
    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        session = decode_session_token(credentials.credentials)
    except SessionError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc
    return CurrentUser(session=session, simulation=_resolve_simulation(request, session))


def require_roles(*roles: str) -> Callable[[CurrentUser], CurrentUser]:
    def checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not any(role in user.roles for role in roles):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return checker


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator privileges required")
    return user


def get_user_provider(
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> MinistryPlatformProvider:
    """MP services acting as the signed-in user when their token is still valid."""

    token = user.session.access_token
    if token and not user.session.access_token_expired():
        return mp.for_user(token)
    return mp
