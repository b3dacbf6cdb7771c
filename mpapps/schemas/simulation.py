from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, validator


class RoleSimulationRequest(BaseModel):
    roles: list[str]

    @validator("roles")
    def strip_blank_roles(cls, value: list[str]) -> list[str]:
        return [role.strip() for role in value if role and role.strip()]


class ImpersonationRequest(BaseModel):
    contact_id: int = Field(..., gt=0)


class SimulationStatus(BaseModel):
    active: bool
    type: Optional[Literal["roles", "impersonate"]] = None
    roles: Optional[list[str]] = None
    user: Optional[dict[str, Any]] = None


class AppSimulationRequest(BaseModel):
    application_id: Optional[int] = None
    roles: list[str] = []


class AppSimulationToggle(BaseModel):
    application_id: int


class AppSimulationCookieStatus(BaseModel):
    active: bool
    application_id: Optional[int] = None
    roles: list[str] = []


class AppSimulationRecord(BaseModel):
    id: int
    application_id: int
    user_email: str
    is_active: bool

    class Config:
        from_attributes = True


class AppSimulationStatus(BaseModel):
    active: bool
    simulation: Optional[AppSimulationRecord] = None


class ActionResult(BaseModel):
    success: bool = True
    message: Optional[str] = None
