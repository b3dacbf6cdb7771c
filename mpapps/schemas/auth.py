from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel


class AuthorizeUrlResponse(BaseModel):
    authorize_url: str
    state: str


class CallbackRequest(BaseModel):
    code: str
    redirect_uri: str


class SessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: Optional[float] = None


class SimulationInfo(BaseModel):
    type: Literal["roles", "impersonate"]
    roles: list[str] = []
    contact_id: Optional[int] = None


class WhoAmIResponse(BaseModel):
    sub: str
    user_id: Optional[int] = None
    contact_id: Optional[int] = None
    email: Optional[str] = None
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    roles: list[str]
    real_roles: list[str]
    is_admin: bool = False
    simulation: Optional[SimulationInfo] = None
