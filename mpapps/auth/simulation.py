from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Literal

from fastapi import Response
from jose import JWTError, jwt

from mpapps.core.config import settings

logger = logging.getLogger(__name__)

SimulationType = Literal["roles", "impersonate"]


@dataclass
class Simulation:
    """Admin preview state carried in the ``admin-simulation`` cookie."""

    type: SimulationType
    admin_user_id: str
    roles: list[str] = field(default_factory=list)
    contact_id: int | None = None


@dataclass
class AppSimulation:
    application_id: int
    roles: list[str] = field(default_factory=list)


def _encode(payload: dict) -> str:
    payload = dict(payload)
    payload["exp"] = datetime.now(UTC) + timedelta(seconds=settings.SIMULATION_MAX_AGE_SECONDS)
    return jwt.encode(payload, settings.SESSION_SECRET, algorithm=settings.JWT_ALG)


def _decode(token: str, cookie_name: str) -> dict | None:
    try:
        return jwt.decode(token, settings.SESSION_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError:
        logger.warning("simulation_cookie_rejected", extra={"cookie": cookie_name})
        return None


def encode_simulation(simulation: Simulation) -> str:
    return _encode(
        {
            "type": simulation.type,
            "admin_user_id": simulation.admin_user_id,
            "roles": simulation.roles,
            "contact_id": simulation.contact_id,
        }
    )


def decode_simulation(token: str | None) -> Simulation | None:
    if not token:
        return None
    payload = _decode(token, settings.SIMULATION_COOKIE_NAME)
    if payload is None:
        return None
    sim_type = payload.get("type")
    if sim_type == "roles":
        return Simulation(type="roles", admin_user_id=str(payload.get("admin_user_id")), roles=list(payload.get("roles") or []))
    if sim_type == "impersonate" and payload.get("contact_id") is not None:
        return Simulation(
            type="impersonate",
            admin_user_id=str(payload.get("admin_user_id")),
            contact_id=int(payload["contact_id"]),
        )
    logger.warning("simulation_cookie_unknown_type", extra={"type": sim_type})
    return None


def encode_app_simulation(simulation: AppSimulation) -> str:
    return _encode({"application_id": simulation.application_id, "roles": simulation.roles})


def decode_app_simulation(token: str | None) -> AppSimulation | None:
    if not token:
        return None
    payload = _decode(token, settings.APP_SIMULATION_COOKIE_NAME)
    if payload is None or payload.get("application_id") is None:
        return None
    return AppSimulation(application_id=int(payload["application_id"]), roles=list(payload.get("roles") or []))


def set_simulation_cookie(response: Response, name: str, value: str) -> None:
    response.set_cookie(
        key=name,
        value=value,
        max_age=settings.SIMULATION_MAX_AGE_SECONDS,
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
        path="/",
    )


def clear_simulation_cookie(response: Response, name: str) -> None:
    response.delete_cookie(key=name, path="/")
