from __future__ import annotations

import json
import logging
from typing import Any

from mpapps.core.config import settings
from mpapps.ministry_platform.provider import MinistryPlatformProvider

logger = logging.getLogger(__name__)

PROJECTS_PROC = "api_Custom_Projects_JSON"
PROJECT_BUDGETS_PROC = "api_Custom_GetProjectBudgets_JSON"
PROJECT_BUDGET_DETAILS_PROC = "api_Custom_GetProjectBudgetDetails_JSON"
PROJECT_TRANSACTIONS_PROC = "api_Custom_GetProjectTransactions_JSON"
EVENT_SEARCH_LIMIT = 50


def _as_list(data: Any) -> list[Any]:
    if data is None:
        return []
    if isinstance(data, list):
        return data
    return [data]


def _decode_nested(value: Any, default: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            logger.warning("project_nested_json_invalid")
            return default
    return value if value is not None else default


def budget_lookup_params(project_id_or_slug: str | int | None) -> dict[str, Any]:
    if project_id_or_slug is None or str(project_id_or_slug).strip() == "":
        return {}
    value = str(project_id_or_slug).strip()
    if value.isdigit():
        return {"@ProjectID": int(value)}
    return {"@Slug": value}


def get_project_budgets(mp: MinistryPlatformProvider, project_id_or_slug: str | int | None = None) -> list[Any]:
    data = mp.procedures.execute_json(PROJECT_BUDGETS_PROC, budget_lookup_params(project_id_or_slug), default=[])
    return _as_list(data)


def get_project_budget_details(mp: MinistryPlatformProvider, slug: str) -> dict[str, Any] | None:
    data = mp.procedures.execute_json(PROJECT_BUDGET_DETAILS_PROC, {"@Slug": slug}, use_body=False)
    if isinstance(data, list):
        return data[0] if data else None
    return data


def get_project_transactions(mp: MinistryPlatformProvider, slug: str) -> list[Any]:
    return _as_list(mp.procedures.execute_json(PROJECT_TRANSACTIONS_PROC, {"@Slug": slug}, default=[], use_body=False))


def get_projects_with_nested(
    mp: MinistryPlatformProvider,
    user_name: str,
    project_id: int | None = None,
) -> list[dict[str, Any]]:
    """Projects with coordinator, budgets and expenses decoded from their JSON columns."""

    params: dict[str, Any] = {"@UserName": user_name, "@DomainID": settings.MINISTRY_PLATFORM_DOMAIN_ID}
    if project_id:
        params["@ProjectID"] = project_id
    projects = _as_list(mp.procedures.execute_json(PROJECTS_PROC, params, default=[]))
    return [
        {
            **project,
            "Coordinator": _decode_nested(project.get("Coordinator"), None),
            "Budgets": _decode_nested(project.get("Budgets"), []),
            "Expenses": _decode_nested(project.get("Expenses"), []),
        }
        for project in projects
        if isinstance(project, dict)
    ]


def list_projects(mp: MinistryPlatformProvider, filter_expr: str | None = None, order_by: str | None = None) -> list[dict[str, Any]]:
    return mp.tables.get_records("Projects", filter=filter_expr, order_by=order_by or "Project_Start DESC")


def get_project(mp: MinistryPlatformProvider, project_id: int) -> dict[str, Any] | None:
    rows = mp.tables.get_records("Projects", filter=f"Project_ID={int(project_id)}")
    return rows[0] if rows else None


def create_project(mp: MinistryPlatformProvider, data: dict[str, Any], user_id: int | None = None) -> dict[str, Any]:
    created = mp.tables.create_records("Projects", [data], user_id=user_id)
    logger.info("project_created", extra={"title": data.get("Project_Title"), "user_id": user_id})
    return created[0] if created else data


def update_project(mp: MinistryPlatformProvider, project_id: int, data: dict[str, Any], user_id: int | None = None) -> dict[str, Any] | None:
    updated = mp.tables.update_records("Projects", [{**data, "Project_ID": project_id}], user_id=user_id)
    return updated[0] if updated else None


def list_category_types(mp: MinistryPlatformProvider) -> list[dict[str, Any]]:
    return mp.tables.get_records("Project_Category_Types", filter="Discontinued=0", order_by="Sort_Order")


def list_budgets(mp: MinistryPlatformProvider, project_id: int) -> list[dict[str, Any]]:
    return mp.tables.get_records("Project_Budgets", filter=f"Project_ID={int(project_id)}")


def create_budget(mp: MinistryPlatformProvider, project_id: int, data: dict[str, Any], user_id: int | None = None) -> dict[str, Any]:
    record = {**data, "Project_ID": project_id}
    created = mp.tables.create_records("Project_Budgets", [record], user_id=user_id)
    return created[0] if created else record


def list_expenses(mp: MinistryPlatformProvider, project_id: int) -> list[dict[str, Any]]:
    return mp.tables.get_records("Project_Expenses", filter=f"Project_ID={int(project_id)}", order_by="Expense_Date DESC")


def create_expense(mp: MinistryPlatformProvider, project_id: int, data: dict[str, Any], user_id: int | None = None) -> dict[str, Any]:
    record = {**data, "Project_ID": project_id}
    created = mp.tables.create_records("Project_Expenses", [record], user_id=user_id)
    return created[0] if created else record


def search_events(mp: MinistryPlatformProvider, term: str | None = None) -> list[dict[str, Any]]:
    filter_expr = "Event_End_Date >= GETDATE()"
    if term and term.strip():
        escaped = term.strip().replace("'", "''")
        filter_expr = f"Event_Title LIKE '%{escaped}%' AND {filter_expr}"
    return mp.tables.get_records(
        "Events",
        select="Event_ID,Event_Title,Event_Start_Date,Event_End_Date",
        filter=filter_expr,
        order_by="Event_Start_Date ASC",
        top=EVENT_SEARCH_LIMIT,
    )
