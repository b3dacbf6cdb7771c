from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from mpapps.auth.deps import CurrentUser, get_current_user
from mpapps.auth.session import SessionUser, issue_session_token, roles_from_claims
from mpapps.auth.simulation import clear_simulation_cookie
from mpapps.core.config import settings
from mpapps.ministry_platform.errors import MinistryPlatformAuthError
from mpapps.ministry_platform.provider import MinistryPlatformProvider, get_provider
from mpapps.schemas.auth import (
    AuthorizeUrlResponse,
    CallbackRequest,
    SessionResponse,
    SimulationInfo,
    WhoAmIResponse,
)
from mpapps.services.users import UserNotFoundError, get_user_profile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _int_claim(value) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _session_response(user: SessionUser) -> SessionResponse:
    return SessionResponse(access_token=issue_session_token(user), expires_at=user.expires_at)


@router.get("/login", response_model=AuthorizeUrlResponse)
def login(
    redirect_uri: str = Query(..., min_length=1),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> AuthorizeUrlResponse:
    state = secrets.token_urlsafe(16)
    return AuthorizeUrlResponse(authorize_url=mp.client.build_authorize_url(redirect_uri, state), state=state)


@router.post("/callback", response_model=SessionResponse)
def callback(payload: CallbackRequest, mp: MinistryPlatformProvider = Depends(get_provider)) -> SessionResponse:
    try:
        tokens = mp.client.exchange_authorization_code(payload.code, payload.redirect_uri)
        claims = mp.client.get_user_info(tokens.access_token)
    except MinistryPlatformAuthError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Sign-in failed") from exc

    subject = claims.get("sub")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Sign-in failed")

    contact_id = None
    try:
        contact_id = get_user_profile(mp, str(subject))["contact_id"]
    except UserNotFoundError:
        logger.warning("session_contact_missing", extra={"sub": subject})

    user = SessionUser(
        sub=str(subject),
        user_id=_int_claim(claims.get("user_id")),
        contact_id=contact_id,
        email=claims.get("email"),
        name=claims.get("name"),
        first_name=claims.get("given_name"),
        last_name=claims.get("family_name"),
        roles=roles_from_claims(claims),
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_at=tokens.expires_at,
    )
    logger.info("session_started", extra={"sub": user.sub, "roles": user.roles})
    return _session_response(user)


@router.post("/refresh", response_model=SessionResponse)
def refresh(
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> SessionResponse:
    session = user.session
    if not session.access_token_expired():
        return _session_response(session)
    if not session.refresh_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired")
    try:
        tokens = mp.client.refresh_user_token(session.refresh_token)
    except MinistryPlatformAuthError as exc:
        logger.warning("session_refresh_failed", extra={"sub": session.sub})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired") from exc

    session.access_token = tokens.access_token
    session.refresh_token = tokens.refresh_token
    session.expires_at = tokens.expires_at
    return _session_response(session)


@router.get("/whoami", response_model=WhoAmIResponse)
def whoami(user: CurrentUser = Depends(get_current_user)) -> WhoAmIResponse:
    simulation = None
    if user.simulation is not None:
        simulation = SimulationInfo(
            type=user.simulation.type,
            roles=user.simulation.roles,
            contact_id=user.simulation.contact_id,
        )
    return WhoAmIResponse(
        sub=user.session.sub,
        user_id=user.user_id,
        contact_id=user.contact_id,
        email=user.session.email,
        name=user.session.name,
        first_name=user.session.first_name,
        last_name=user.session.last_name,
        roles=user.roles,
        real_roles=user.real_roles,
        is_admin=user.is_admin,
        simulation=simulation,
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout() -> Response:
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    clear_simulation_cookie(response, settings.SIMULATION_COOKIE_NAME)
    clear_simulation_cookie(response, settings.APP_SIMULATION_COOKIE_NAME)
    return response
