from __future__ import annotations

import hashlib
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import jwe, jwt
from jose.exceptions import JOSEError

from mpapps.core.config import settings


class SessionError(Exception):
    """Raised when a session token cannot be decoded."""


@dataclass
class SessionUser:
    sub: str
    user_id: int | None = None
    contact_id: int | None = None
    email: str | None = None
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    roles: list[str] = field(default_factory=list)
    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: float | None = None

    @property
    def is_admin(self) -> bool:
        return settings.ADMIN_ROLE in self.roles

    @property
    def user_name(self) -> str:
        return self.email or self.sub

    def access_token_expired(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        current = now if now is not None else datetime.now(UTC).timestamp()
        return current >= self.expires_at


def roles_from_claims(claims: dict[str, Any]) -> list[str]:
    roles = claims.get("roles") or claims.get("role") or []
    if isinstance(roles, str):
        roles = [roles]
    return [str(role) for role in roles]


SESSION_ENCRYPTION = "A256GCM"


def _session_key() -> bytes:
    return hashlib.sha256(settings.SESSION_SECRET.encode()).digest()


def issue_session_token(user: SessionUser, expires_minutes: int | None = None) -> str:
    """Sign the session and encrypt it so the MP tokens it carries stay opaque to the browser."""

    minutes = expires_minutes if expires_minutes is not None else settings.SESSION_EXPIRE_MINUTES
    payload = asdict(user)
    payload["exp"] = datetime.now(UTC) + timedelta(minutes=minutes)
    signed = jwt.encode(payload, settings.SESSION_SECRET, algorithm=settings.JWT_ALG)
    return jwe.encrypt(signed, _session_key(), algorithm="dir", encryption=SESSION_ENCRYPTION).decode()


def decode_session_token(token: str) -> SessionUser:
    try:
        signed = jwe.decrypt(token, _session_key()).decode()
        payload = jwt.decode(signed, settings.SESSION_SECRET, algorithms=[settings.JWT_ALG])
    except (JOSEError, UnicodeDecodeError) as exc:
        raise SessionError("Invalid session token") from exc

    subject = payload.get("sub")
    if not subject:
        raise SessionError("Invalid session payload")

    return SessionUser(
        sub=str(subject),
        user_id=payload.get("user_id"),
        contact_id=payload.get("contact_id"),
        email=payload.get("email"),
        name=payload.get("name"),
        first_name=payload.get("first_name"),
        last_name=payload.get("last_name"),
        roles=list(payload.get("roles") or []),
        access_token=payload.get("access_token"),
        refresh_token=payload.get("refresh_token"),
        expires_at=payload.get("expires_at"),
    )
