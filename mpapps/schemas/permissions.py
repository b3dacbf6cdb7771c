from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class AppAccessOut(BaseModel):
    has_access: bool
    can_edit: bool
    can_delete: bool


class AppRoleOut(BaseModel):
    role_name: str
    can_view: bool
    can_edit: bool
    can_delete: bool


class ApplicationOut(BaseModel):
    id: int
    name: str
    key: str
    description: Optional[str] = None
    route: str
    icon: Optional[str] = None
    sort_order: int
    requires_auth: bool

    class Config:
        from_attributes = True


class AppRoleCheck(BaseModel):
    app_key: str
    role_key: str
    has_role: bool
