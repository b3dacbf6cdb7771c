"""Budget categories, line items, purchase requests and transactions for a project."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from mpapps.core.config import settings
from mpapps.ministry_platform.envelope import first_record
from mpapps.ministry_platform.errors import MinistryPlatformError
from mpapps.ministry_platform.files import UploadFile
from mpapps.ministry_platform.provider import MinistryPlatformProvider

logger = logging.getLogger(__name__)

CATEGORY_TYPE_TABLE = "Project_Category_Types"
CATEGORY_TABLE = "Project_Budget_Categories"
LINE_ITEM_TABLE = "Project_Budget_Expense_Line_Items"
INCOME_LINE_ITEM_TABLE = "Project_Budget_Income_Line_Items"
PURCHASE_REQUEST_TABLE = "Project_Budget_Purchase_Requests"
TRANSACTION_TABLE = "Project_Budget_Transactions"

PURCHASE_REQUESTS_PROC = "api_Custom_GetProjectPurchaseRequests_JSON"
PURCHASE_REQUEST_DETAILS_PROC = "api_Custom_GetPurchaseRequestDetails_JSON"
PENDING_APPROVALS_PROC = "api_Custom_GetPendingPurchaseRequestsForApproval_JSON"
TRANSACTION_DETAILS_PROC = "api_Custom_GetTransactionDetails_JSON"

LINE_ITEM_COLUMNS = (
    "Project_Budget_Expense_Line_Item_ID,Item_Name,Vendor_Name,Estimated_Amount,Status,Item_Description,Sort_Order"
)
INCOME_LINE_ITEM_COLUMNS = "Project_Budget_Income_Line_Item_ID,Income_Source_Name,Description,Expected_Amount,Sort_Order"
TRANSACTION_COLUMNS = (
    "Project_Budget_Transaction_ID,Project_ID,Transaction_Date,Transaction_Type,Payee_Name,Description,Amount,"
    "Payment_Method_ID,Payment_Reference,Notes,Project_Budget_Expense_Line_Item_ID,Purchase_Request_ID"
)

LINE_ITEM_APPROVAL = {"Approved": True, "Rejected": False, "Pending": None}


class BudgetRecordNotFoundError(Exception):
    pass


class BudgetRuleError(Exception):
    """A request that conflicts with the current state of the budget."""


def _now_iso() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat()


def _escape(value: str) -> str:
    return value.replace("'", "''")


def _next_sort_order(mp: MinistryPlatformProvider, table: str, filter_expr: str) -> int:
    rows = mp.tables.get_records(table, select="Sort_Order", filter=filter_expr, order_by="Sort_Order DESC", top=1)
    if not rows:
        return 1
    return (rows[0].get("Sort_Order") or 0) + 1


# -- categories -----------------------------------------------------------------


def _category_type_id(mp: MinistryPlatformProvider, name: str, is_revenue: bool, user_id: int | None) -> int:
    existing = mp.tables.get_records(
        CATEGORY_TYPE_TABLE,
        select="Project_Category_Type_ID",
        filter=f"Project_Category_Type='{_escape(name)}' AND Is_Revenue={int(is_revenue)}",
        top=1,
    )
    if existing:
        return existing[0]["Project_Category_Type_ID"]
    created = mp.tables.create_records(
        CATEGORY_TYPE_TABLE,
        [{"Project_Category_Type": name, "Is_Revenue": is_revenue}],
        select="Project_Category_Type_ID",
        user_id=user_id,
    )
    if not created:
        raise MinistryPlatformError("Failed to create category type", endpoint=CATEGORY_TYPE_TABLE)
    logger.info("budget_category_type_created", extra={"name": name, "is_revenue": is_revenue})
    return created[0]["Project_Category_Type_ID"]


def create_category(
    mp: MinistryPlatformProvider,
    project_id: int,
    data: dict[str, Any],
    user_id: int | None,
) -> dict[str, Any]:
    """Add a budget category, creating its category type on first use."""

    is_revenue = data["type"] == "revenue"
    type_id = _category_type_id(mp, data["name"], is_revenue, user_id)
    sort_order = _next_sort_order(mp, CATEGORY_TABLE, f"Project_ID={int(project_id)}")
    created = mp.tables.create_records(
        CATEGORY_TABLE,
        [
            {
                "Project_ID": project_id,
                "Project_Category_Type_ID": type_id,
                "Budgeted_Amount": data.get("budgeted_amount") or 0,
                "Sort_Order": sort_order,
            }
        ],
        select="Project_Budget_Category_ID,Budgeted_Amount",
        user_id=user_id,
    )
    if not created:
        raise MinistryPlatformError("Failed to create category", endpoint=CATEGORY_TABLE)
    logger.info("budget_category_created", extra={"project_id": project_id, "name": data["name"], "user_id": user_id})
    return {
        "categoryId": created[0]["Project_Budget_Category_ID"],
        "name": data["name"],
        "type": data["type"],
        "sortOrder": sort_order,
        "estimated": created[0].get("Budgeted_Amount") or 0,
        "actual": 0,
        "lineItems": [],
    }


def update_category(mp: MinistryPlatformProvider, category_id: int, budgeted_amount: float, user_id: int | None) -> dict[str, Any]:
    updated = mp.tables.update_records(
        CATEGORY_TABLE,
        [{"Project_Budget_Category_ID": category_id, "Budgeted_Amount": budgeted_amount}],
        select="Project_Budget_Category_ID,Budgeted_Amount",
        user_id=user_id,
    )
    if not updated:
        raise BudgetRecordNotFoundError(f"Category not found: {category_id}")
    return {"categoryId": updated[0]["Project_Budget_Category_ID"], "budgetedAmount": updated[0].get("Budgeted_Amount")}


def delete_category(mp: MinistryPlatformProvider, category_id: int, user_id: int | None) -> None:
    line_items = mp.tables.get_records(
        LINE_ITEM_TABLE,
        select="Project_Budget_Expense_Line_Item_ID",
        filter=f"Project_Budget_Category_ID={int(category_id)}",
        top=1,
    )
    if line_items:
        raise BudgetRuleError("Cannot delete category with line items. Please delete all line items first.")
    mp.tables.delete_records(CATEGORY_TABLE, [category_id], user_id=user_id)
    logger.info("budget_category_deleted", extra={"category_id": category_id, "user_id": user_id})


# -- line items -----------------------------------------------------------------


def _line_item_view(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "lineItemId": row.get("Project_Budget_Expense_Line_Item_ID"),
        "name": row.get("Item_Name"),
        "vendor": row.get("Vendor_Name"),
        "estimated": row.get("Estimated_Amount") or 0,
        "status": row.get("Status"),
        "description": row.get("Item_Description"),
        "sortOrder": row.get("Sort_Order"),
    }


def create_line_item(
    mp: MinistryPlatformProvider,
    category_id: int,
    data: dict[str, Any],
    user_id: int | None,
) -> dict[str, Any]:
    sort_order = _next_sort_order(mp, LINE_ITEM_TABLE, f"Project_Budget_Category_ID={int(category_id)}")
    record = {
        "Project_Budget_Category_ID": category_id,
        "Item_Name": data["name"],
        "Item_Description": data.get("description"),
        "Vendor_Name": data.get("vendor"),
        "Estimated_Amount": data.get("estimated_amount") or 0,
        "Status": data.get("status") or "pending",
        "Sort_Order": sort_order,
    }
    created = mp.tables.create_records(LINE_ITEM_TABLE, [record], select=LINE_ITEM_COLUMNS, user_id=user_id)
    if not created:
        raise MinistryPlatformError("Failed to create line item", endpoint=LINE_ITEM_TABLE)
    return {**_line_item_view(created[0]), "actual": 0}


def update_line_item(
    mp: MinistryPlatformProvider,
    line_item_id: int,
    data: dict[str, Any],
    user_id: int | None,
) -> dict[str, Any]:
    columns = {
        "name": "Item_Name",
        "vendor": "Vendor_Name",
        "estimated_amount": "Estimated_Amount",
        "description": "Item_Description",
        "status": "Status",
    }
    record: dict[str, Any] = {"Project_Budget_Expense_Line_Item_ID": line_item_id}
    record.update({columns[key]: value for key, value in data.items() if key in columns})
    updated = mp.tables.update_records(LINE_ITEM_TABLE, [record], select=LINE_ITEM_COLUMNS, user_id=user_id)
    if not updated:
        raise BudgetRecordNotFoundError(f"Line item not found: {line_item_id}")
    return _line_item_view(updated[0])


def delete_line_item(mp: MinistryPlatformProvider, line_item_id: int, user_id: int | None) -> None:
    transactions = mp.tables.get_records(
        TRANSACTION_TABLE,
        select="Project_Budget_Transaction_ID",
        filter=f"Project_Budget_Expense_Line_Item_ID={int(line_item_id)}",
        top=1,
    )
    if transactions:
        raise BudgetRuleError("Cannot delete line item with transactions. Please delete all transactions first.")
    mp.tables.delete_records(LINE_ITEM_TABLE, [line_item_id], user_id=user_id)
    logger.info("budget_line_item_deleted", extra={"line_item_id": line_item_id, "user_id": user_id})


def set_line_item_approval(mp: MinistryPlatformProvider, line_item_id: int, status: str, user_id: int | None) -> dict[str, Any]:
    updated = mp.tables.update_records(
        LINE_ITEM_TABLE,
        [{"Project_Budget_Expense_Line_Item_ID": line_item_id, "Approved": LINE_ITEM_APPROVAL[status]}],
        select="Project_Budget_Expense_Line_Item_ID,Approved",
        user_id=user_id,
    )
    if not updated:
        raise BudgetRecordNotFoundError(f"Line item not found: {line_item_id}")
    logger.info("budget_line_item_reviewed", extra={"line_item_id": line_item_id, "status": status, "user_id": user_id})
    return {"success": True, "lineItemId": line_item_id, "status": status}


def create_income_line_item(
    mp: MinistryPlatformProvider,
    project_id: int,
    data: dict[str, Any],
    user_id: int | None,
) -> dict[str, Any]:
    sort_order = _next_sort_order(mp, INCOME_LINE_ITEM_TABLE, f"Project_ID={int(project_id)}")
    record = {
        "Project_ID": project_id,
        "Income_Source_Name": data["name"],
        "Description": data.get("description"),
        "Expected_Amount": data.get("expected_amount") or 0,
        "Sort_Order": sort_order,
    }
    created = mp.tables.create_records(INCOME_LINE_ITEM_TABLE, [record], select=INCOME_LINE_ITEM_COLUMNS, user_id=user_id)
    if not created:
        raise MinistryPlatformError("Failed to create income line item", endpoint=INCOME_LINE_ITEM_TABLE)
    row = created[0]
    return {
        "incomeLineItemId": row.get("Project_Budget_Income_Line_Item_ID"),
        "name": row.get("Income_Source_Name"),
        "description": row.get("Description"),
        "expected": row.get("Expected_Amount") or 0,
        "actual": 0,
        "sortOrder": row.get("Sort_Order"),
    }


# -- purchase requests ----------------------------------------------------------


def list_purchase_requests(
    mp: MinistryPlatformProvider,
    project_id: int,
    requested_by_contact_id: int | None = None,
) -> list[Any]:
    data = mp.procedures.execute_json(
        PURCHASE_REQUESTS_PROC,
        {"@ProjectID": project_id, "@RequestedByContactID": requested_by_contact_id},
        default=[],
    )
    return data if isinstance(data, list) else [data]


def get_purchase_request(mp: MinistryPlatformProvider, request_id: int) -> dict[str, Any] | None:
    data = mp.procedures.execute_json(PURCHASE_REQUEST_DETAILS_PROC, {"@PurchaseRequestID": request_id})
    return first_record(data)


def _require_purchase_request(mp: MinistryPlatformProvider, request_id: int) -> dict[str, Any]:
    purchase_request = get_purchase_request(mp, request_id)
    if purchase_request is None:
        raise BudgetRecordNotFoundError(f"Purchase request not found: {request_id}")
    return purchase_request


def create_purchase_request(
    mp: MinistryPlatformProvider,
    project_id: int,
    data: dict[str, Any],
    user_id: int | None,
) -> dict[str, Any]:
    record = {
        "Project_ID": project_id,
        "Project_Budget_Expense_Line_Item_ID": data["line_item_id"],
        "Requested_By_User_ID": user_id,
        "Amount": data["amount"],
        "Description": data.get("description"),
        "Vendor_Name": data.get("vendor_name"),
        "Approval_Status": "Pending",
        "Domain_ID": settings.MINISTRY_PLATFORM_DOMAIN_ID,
    }
    created = mp.tables.create_records(PURCHASE_REQUEST_TABLE, [record], user_id=user_id)
    if not created:
        raise MinistryPlatformError("Failed to create purchase request", endpoint=PURCHASE_REQUEST_TABLE)
    request_id = created[0]["Purchase_Request_ID"]
    logger.info("purchase_request_created", extra={"project_id": project_id, "request_id": request_id, "user_id": user_id})
    return _require_purchase_request(mp, request_id)


def review_purchase_request(
    mp: MinistryPlatformProvider,
    request_id: int,
    approval_status: str,
    user_id: int | None,
    rejection_reason: str | None = None,
) -> dict[str, Any]:
    """Approve, reject or reset a purchase request and return its refreshed details."""

    record: dict[str, Any] = {"Purchase_Request_ID": request_id, "Approval_Status": approval_status}
    if approval_status == "Pending":
        record.update({"Approved_By_User_ID": None, "Approved_Date": None, "Rejection_Reason": None})
    else:
        record.update(
            {
                "Approved_By_User_ID": user_id,
                "Approved_Date": _now_iso(),
                "Rejection_Reason": rejection_reason if approval_status == "Rejected" else None,
            }
        )
    mp.tables.update_records(PURCHASE_REQUEST_TABLE, [record], user_id=user_id)
    logger.info(
        "purchase_request_reviewed",
        extra={"request_id": request_id, "approval_status": approval_status, "user_id": user_id},
    )
    return _require_purchase_request(mp, request_id)


def delete_purchase_request(mp: MinistryPlatformProvider, request_id: int, user_id: int | None) -> None:
    transactions = mp.tables.get_records(
        TRANSACTION_TABLE,
        select="Project_Budget_Transaction_ID",
        filter=f"Purchase_Request_ID={int(request_id)}",
        top=1,
    )
    if transactions:
        raise BudgetRuleError("Cannot delete purchase request with existing transactions")
    mp.tables.delete_records(PURCHASE_REQUEST_TABLE, [request_id], user_id=user_id)
    logger.info("purchase_request_deleted", extra={"request_id": request_id, "user_id": user_id})


def get_pending_approvals(mp: MinistryPlatformProvider, project_id: int) -> dict[str, Any]:
    data = first_record(mp.procedures.execute_json(PENDING_APPROVALS_PROC, {"@ProjectID": project_id}, use_body=False))
    if data is None:
        raise BudgetRecordNotFoundError(f"No pending approval data for project {project_id}")
    pending = data.get("pendingRequests")
    return {**data, "pendingRequests": pending if isinstance(pending, list) else []}


def add_purchase_request_transaction(
    mp: MinistryPlatformProvider,
    project_id: int,
    request_id: int,
    data: dict[str, Any],
    user_id: int | None,
) -> dict[str, Any]:
    purchase_request = _require_purchase_request(mp, request_id)
    if purchase_request.get("approvalStatus") != "Approved":
        raise BudgetRuleError("Cannot add transactions to an unapproved purchase request")

    record = {
        "Project_ID": project_id,
        "Transaction_Type": "Expense",
        "Transaction_Date": data["transaction_date"].isoformat(),
        "Amount": data["amount"],
        "Description": data.get("description"),
        "Payee_Name": data.get("vendor_name") or purchase_request.get("vendorName"),
        "Payment_Method_ID": data.get("payment_method_id"),
        "Project_Budget_Expense_Line_Item_ID": purchase_request.get("lineItemId"),
        "Purchase_Request_ID": request_id,
        "Domain_ID": settings.MINISTRY_PLATFORM_DOMAIN_ID,
    }
    created = mp.tables.create_records(TRANSACTION_TABLE, [record], user_id=user_id)
    if not created:
        raise MinistryPlatformError("Failed to create transaction", endpoint=TRANSACTION_TABLE)
    return {
        "transactionId": created[0]["Project_Budget_Transaction_ID"],
        "purchaseRequest": _require_purchase_request(mp, request_id),
    }


# -- transactions ---------------------------------------------------------------


def _transaction_record(data: dict[str, Any]) -> dict[str, Any]:
    columns = {
        "transaction_date": "Transaction_Date",
        "transaction_type": "Transaction_Type",
        "amount": "Amount",
        "line_item_id": "Project_Budget_Expense_Line_Item_ID",
        "payee_name": "Payee_Name",
        "description": "Description",
        "payment_method_id": "Payment_Method_ID",
        "payment_reference": "Payment_Reference",
        "notes": "Notes",
    }
    record: dict[str, Any] = {}
    for key, value in data.items():
        if key not in columns:
            continue
        record[columns[key]] = value.isoformat() if key == "transaction_date" and value is not None else value
    return record


def create_transaction(
    mp: MinistryPlatformProvider,
    project_id: int,
    data: dict[str, Any],
    user_id: int | None,
) -> dict[str, Any]:
    record = {"Project_ID": project_id, **_transaction_record(data)}
    created = mp.tables.create_records(TRANSACTION_TABLE, [record], select=TRANSACTION_COLUMNS, user_id=user_id)
    if not created:
        raise MinistryPlatformError("Failed to create transaction", endpoint=TRANSACTION_TABLE)
    logger.info(
        "budget_transaction_created",
        extra={"project_id": project_id, "transaction_type": record.get("Transaction_Type"), "user_id": user_id},
    )
    return created[0]


def update_transaction(
    mp: MinistryPlatformProvider,
    transaction_id: int,
    data: dict[str, Any],
    user_id: int | None,
) -> dict[str, Any]:
    record = {"Project_Budget_Transaction_ID": transaction_id, **_transaction_record(data)}
    updated = mp.tables.update_records(TRANSACTION_TABLE, [record], select=TRANSACTION_COLUMNS, user_id=user_id)
    if not updated:
        raise BudgetRecordNotFoundError(f"Transaction not found: {transaction_id}")
    return updated[0]


def delete_transaction(mp: MinistryPlatformProvider, transaction_id: int, user_id: int | None) -> None:
    mp.tables.delete_records(TRANSACTION_TABLE, [transaction_id], user_id=user_id)
    logger.info("budget_transaction_deleted", extra={"transaction_id": transaction_id, "user_id": user_id})


def _file_view(mp: MinistryPlatformProvider, file: dict[str, Any]) -> dict[str, Any]:
    unique_id = file.get("UniqueFileId") or file.get("Unique_File_ID")
    return {**file, "publicUrl": mp.files.file_url(unique_id) if unique_id else None}


def list_transaction_files(mp: MinistryPlatformProvider, transaction_id: int) -> list[dict[str, Any]]:
    return [_file_view(mp, file) for file in mp.files.get_files_by_record(TRANSACTION_TABLE, transaction_id)]


def get_transaction(mp: MinistryPlatformProvider, transaction_id: int) -> dict[str, Any] | None:
    """Transaction details with its attached files."""

    data = first_record(
        mp.procedures.execute_json(TRANSACTION_DETAILS_PROC, {"@TransactionID": transaction_id}, use_body=False)
    )
    if data is None or "error" in data:
        return None
    return {**data, "files": list_transaction_files(mp, transaction_id)}


def upload_transaction_files(
    mp: MinistryPlatformProvider,
    transaction_id: int,
    files: list[UploadFile],
    description: str | None,
    user_id: int | None,
) -> list[dict[str, Any]]:
    uploaded = mp.files.upload_files(TRANSACTION_TABLE, transaction_id, files, description=description, user_id=user_id)
    logger.info("budget_transaction_files_uploaded", extra={"transaction_id": transaction_id, "count": len(uploaded)})
    return [_file_view(mp, file) for file in uploaded]
