from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from mpapps.auth.deps import CurrentUser, get_current_user
from mpapps.auth.permissions import BudgetPermissions, resolve_budget_permissions
from mpapps.ministry_platform.provider import MinistryPlatformProvider, get_provider
from mpapps.schemas.projects import BudgetIn, ExpenseIn, ProjectIn, ProjectUpdate
from mpapps.services import projects as projects_service
from mpapps.services.app_permissions import AppAccess, require_app_access

APP_KEY = "budgets"

router = APIRouter(prefix="/projects", tags=["projects"])


def require_budget_permission(flag: str, *, edit: bool = False, delete: bool = False):
    """Require both the role-based budget capability and the local ``budgets`` app permission."""

    app_access = require_app_access(APP_KEY, edit=edit, delete=delete)

    def checker(
        user: CurrentUser = Depends(get_current_user),
        _: AppAccess = Depends(app_access),
    ) -> BudgetPermissions:
        permissions = resolve_budget_permissions(user.roles)
        if not getattr(permissions, flag):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return permissions

    return checker


can_view = require_budget_permission("can_view")
can_edit = require_budget_permission("can_edit", edit=True)
can_manage_transactions = require_budget_permission("can_manage_transactions", edit=True)
can_manage_categories = require_budget_permission("can_manage_categories", edit=True)
can_manage_line_items = require_budget_permission("can_manage_line_items", edit=True)
can_create_purchase_requests = require_budget_permission("can_create_purchase_requests")
can_manage_purchase_requests = require_budget_permission("can_manage_purchase_requests", edit=True)
can_approve_purchase_requests = require_budget_permission("can_approve_purchase_requests", edit=True)


def _get_project_or_404(mp: MinistryPlatformProvider, project_id: int) -> dict:
    project = projects_service.get_project(mp, project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project


def _require_record(data: dict[str, Any]) -> dict[str, Any]:
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request body cannot be empty")
    return data


@router.get("/budgets", dependencies=[Depends(can_view)])
def project_budgets(
    project: str | None = Query(default=None),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> list[Any]:
    return projects_service.get_project_budgets(mp, project)


@router.get("/budgets/{slug}", dependencies=[Depends(can_view)])
def project_budget_details(slug: str, mp: MinistryPlatformProvider = Depends(get_provider)) -> dict:
    details = projects_service.get_project_budget_details(mp, slug)
    if not details:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return details


@router.get("/budgets/{slug}/transactions", dependencies=[Depends(can_view)])
def project_transactions(slug: str, mp: MinistryPlatformProvider = Depends(get_provider)) -> list[Any]:
    return projects_service.get_project_transactions(mp, slug)


@router.get("/category-types", dependencies=[Depends(can_view)])
def category_types(mp: MinistryPlatformProvider = Depends(get_provider)) -> list[dict]:
    return projects_service.list_category_types(mp)


@router.get("/upcoming-events", dependencies=[Depends(can_view)])
def upcoming_events(
    search: str | None = Query(default=None),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> list[dict]:
    return projects_service.search_events(mp, search)


@router.get("")
def list_projects(
    nested: bool = Query(default=False),
    user: CurrentUser = Depends(get_current_user),
    _: BudgetPermissions = Depends(can_view),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> list[dict]:
    if nested:
        return projects_service.get_projects_with_nested(mp, user.user_name)
    return projects_service.list_projects(mp)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectIn,
    user: CurrentUser = Depends(get_current_user),
    _: BudgetPermissions = Depends(can_edit),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    return projects_service.create_project(mp, payload.to_record(), user_id=user.user_id)


@router.get("/{project_id}")
def get_project(
    project_id: int,
    nested: bool = Query(default=False),
    user: CurrentUser = Depends(get_current_user),
    _: BudgetPermissions = Depends(can_view),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    if nested:
        projects = projects_service.get_projects_with_nested(mp, user.user_name, project_id)
        if not projects:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
        return projects[0]
    return _get_project_or_404(mp, project_id)


@router.put("/{project_id}")
def update_project(
    project_id: int,
    payload: ProjectUpdate,
    user: CurrentUser = Depends(get_current_user),
    _: BudgetPermissions = Depends(can_edit),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    _get_project_or_404(mp, project_id)
    updated = projects_service.update_project(mp, project_id, _require_record(payload.to_record()), user_id=user.user_id)
    return updated or _get_project_or_404(mp, project_id)


@router.get("/{project_id}/budgets", dependencies=[Depends(can_view)])
def list_budgets(project_id: int, mp: MinistryPlatformProvider = Depends(get_provider)) -> list[dict]:
    return projects_service.list_budgets(mp, project_id)


@router.post("/{project_id}/budgets", status_code=status.HTTP_201_CREATED)
def create_budget(
    project_id: int,
    payload: BudgetIn,
    user: CurrentUser = Depends(get_current_user),
    _: BudgetPermissions = Depends(can_edit),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    _get_project_or_404(mp, project_id)
    return projects_service.create_budget(mp, project_id, payload.to_record(), user_id=user.user_id)


@router.get("/{project_id}/expenses", dependencies=[Depends(can_view)])
def list_expenses(project_id: int, mp: MinistryPlatformProvider = Depends(get_provider)) -> list[dict]:
    return projects_service.list_expenses(mp, project_id)


@router.post("/{project_id}/expenses", status_code=status.HTTP_201_CREATED)
def create_expense(
    project_id: int,
    payload: ExpenseIn,
    user: CurrentUser = Depends(get_current_user),
    _: BudgetPermissions = Depends(can_manage_transactions),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    _get_project_or_404(mp, project_id)
    return projects_service.create_expense(mp, project_id, payload.to_record(requested_by=user.user_id), user_id=user.user_id)
