from __future__ import annotations

import json

import pytest

from mpapps.core.config import settings


DETAILS_PROC = "/procs/api_Custom_GetPurchaseRequestDetails_JSON"
PURCHASE_REQUESTS = "/tables/Project_Budget_Purchase_Requests"
TRANSACTIONS = "/tables/Project_Budget_Transactions"
LINE_ITEMS = "/tables/Project_Budget_Expense_Line_Items"


def _json_rows(document) -> list:
    return [[{"JsonResult": json.dumps(document)}]]


@pytest.fixture()
def budget_admin(user_factory):
    return user_factory(["Budgets - Admin"], user_id=5, email="treasurer@example.org")


def test_create_purchase_request_starts_pending(client, authorize, fake_mp, staff_user, budgets_app):
    fake_mp.on("POST", PURCHASE_REQUESTS, [{"Purchase_Request_ID": 11}])
    fake_mp.on("POST", DETAILS_PROC, _json_rows({"purchaseRequestId": 11, "approvalStatus": "Pending"}))
    authorize(staff_user)

    response = client.post(
        "/projects/3/purchase-requests",
        json={"line_item_id": 8, "amount": 120, "vendor_name": "Costco"},
    )

    assert response.status_code == 201
    assert response.json() == {"purchaseRequestId": 11, "approvalStatus": "Pending"}
    (record,) = fake_mp.last_json("POST", PURCHASE_REQUESTS)["records"]
    assert record["Project_ID"] == 3
    assert record["Project_Budget_Expense_Line_Item_ID"] == 8
    assert record["Requested_By_User_ID"] == 42
    assert record["Approval_Status"] == "Pending"
    assert record["Domain_ID"] == settings.MINISTRY_PLATFORM_DOMAIN_ID
    assert fake_mp.last_json("POST", DETAILS_PROC) == {"@PurchaseRequestID": 11}


def test_purchase_request_amount_must_be_positive(client, authorize, staff_user, budgets_app):
    authorize(staff_user)
    response = client.post("/projects/3/purchase-requests", json={"line_item_id": 8, "amount": 0})
    assert response.status_code == 422


def test_list_my_purchase_requests_filters_by_contact(client, authorize, fake_mp, staff_user, budgets_app):
    fake_mp.on("POST", "/procs/api_Custom_GetProjectPurchaseRequests_JSON", _json_rows([{"purchaseRequestId": 1}]))
    authorize(staff_user)

    assert client.get("/projects/3/purchase-requests", params={"mine": True}).json() == [{"purchaseRequestId": 1}]
    sent = fake_mp.last_json("POST", "/procs/api_Custom_GetProjectPurchaseRequests_JSON")
    assert sent == {"@ProjectID": 3, "@RequestedByContactID": 1001}


def test_edit_level_cannot_review_purchase_requests(client, authorize, staff_user, budgets_app):
    authorize(staff_user)

    assert client.patch("/projects/3/purchase-requests/11", json={"approval_status": "Approved"}).status_code == 403
    assert client.get("/projects/3/purchase-requests/pending-approval").status_code == 403


def test_approving_records_approver(client, authorize, fake_mp, budget_admin, budgets_app):
    fake_mp.on("PUT", PURCHASE_REQUESTS, [])
    fake_mp.on("POST", DETAILS_PROC, _json_rows({"purchaseRequestId": 11, "approvalStatus": "Approved"}))
    authorize(budget_admin)

    response = client.patch(
        "/projects/3/purchase-requests/11",
        json={"approval_status": "Approved", "rejection_reason": "ignored"},
    )

    assert response.json()["approvalStatus"] == "Approved"
    (record,) = fake_mp.last_json("PUT", PURCHASE_REQUESTS)["records"]
    assert record["Purchase_Request_ID"] == 11
    assert record["Approved_By_User_ID"] == 5
    assert record["Approved_Date"]
    assert record["Rejection_Reason"] is None


def test_resetting_to_pending_clears_review(client, authorize, fake_mp, budget_admin, budgets_app):
    fake_mp.on("PUT", PURCHASE_REQUESTS, [])
    fake_mp.on("POST", DETAILS_PROC, _json_rows({"purchaseRequestId": 11, "approvalStatus": "Pending"}))
    authorize(budget_admin)

    client.patch("/projects/3/purchase-requests/11", json={"approval_status": "Pending"})

    (record,) = fake_mp.last_json("PUT", PURCHASE_REQUESTS)["records"]
    assert record["Approved_By_User_ID"] is None
    assert record["Approved_Date"] is None


def test_pending_approvals_always_carry_a_list(client, authorize, fake_mp, budget_admin, budgets_app):
    fake_mp.on(
        "GET",
        "/procs/api_Custom_GetPendingPurchaseRequestsForApproval_JSON",
        _json_rows({"projectId": 3, "pendingRequests": None}),
    )
    authorize(budget_admin)

    response = client.get("/projects/3/purchase-requests/pending-approval")

    assert response.json() == {"projectId": 3, "pendingRequests": []}


def test_transaction_needs_approved_purchase_request(client, authorize, fake_mp, staff_user, budgets_app):
    fake_mp.on("POST", DETAILS_PROC, _json_rows({"purchaseRequestId": 11, "approvalStatus": "Pending"}))
    authorize(staff_user)

    response = client.post(
        "/projects/3/purchase-requests/11/transactions",
        json={"amount": 80, "transaction_date": "2026-04-02"},
    )

    assert response.status_code == 400
    assert fake_mp.calls("POST", TRANSACTIONS) == []


def test_transaction_on_approved_request_uses_its_line_item(client, authorize, fake_mp, staff_user, budgets_app):
    fake_mp.on(
        "POST",
        DETAILS_PROC,
        _json_rows({"purchaseRequestId": 11, "approvalStatus": "Approved", "lineItemId": 8, "vendorName": "Costco"}),
    )
    fake_mp.on("POST", TRANSACTIONS, [{"Project_Budget_Transaction_ID": 30}])
    authorize(staff_user)

    response = client.post(
        "/projects/3/purchase-requests/11/transactions",
        json={"amount": 80, "transaction_date": "2026-04-02"},
    )

    assert response.status_code == 201
    assert response.json()["transactionId"] == 30
    (record,) = fake_mp.last_json("POST", TRANSACTIONS)["records"]
    assert record["Transaction_Type"] == "Expense"
    assert record["Transaction_Date"] == "2026-04-02"
    assert record["Payee_Name"] == "Costco"
    assert record["Project_Budget_Expense_Line_Item_ID"] == 8
    assert record["Purchase_Request_ID"] == 11


def test_purchase_request_with_transactions_cannot_be_deleted(client, authorize, fake_mp, staff_user, budgets_app):
    fake_mp.on("GET", TRANSACTIONS, [{"Project_Budget_Transaction_ID": 30}])
    authorize(staff_user)

    assert client.delete("/projects/3/purchase-requests/11").status_code == 400
    assert fake_mp.calls("DELETE", PURCHASE_REQUESTS) == []


def test_edit_level_cannot_manage_categories(client, authorize, staff_user, budgets_app):
    authorize(staff_user)
    response = client.post("/projects/3/categories", json={"name": "Food", "type": "expense"})
    assert response.status_code == 403


def test_create_category_adds_type_on_first_use(client, authorize, fake_mp, budget_admin, budgets_app):
    fake_mp.on("GET", "/tables/Project_Category_Types", [])
    fake_mp.on("POST", "/tables/Project_Category_Types", [{"Project_Category_Type_ID": 9}])
    fake_mp.on("GET", "/tables/Project_Budget_Categories", [{"Sort_Order": 2}])
    fake_mp.on(
        "POST",
        "/tables/Project_Budget_Categories",
        [{"Project_Budget_Category_ID": 14, "Budgeted_Amount": 300}],
    )
    authorize(budget_admin)

    response = client.post(
        "/projects/3/categories",
        json={"name": "Kids' Snacks", "type": "expense", "budgeted_amount": 300},
    )

    assert response.status_code == 201
    assert response.json()["categoryId"] == 14
    assert response.json()["sortOrder"] == 3
    lookup = fake_mp.calls("GET", "/tables/Project_Category_Types")[0].url.params
    assert lookup["$filter"] == "Project_Category_Type='Kids'' Snacks' AND Is_Revenue=0"
    (category,) = fake_mp.last_json("POST", "/tables/Project_Budget_Categories")["records"]
    assert category["Project_Category_Type_ID"] == 9
    assert category["Sort_Order"] == 3


def test_category_with_line_items_cannot_be_deleted(client, authorize, fake_mp, budget_admin, budgets_app):
    fake_mp.on("GET", LINE_ITEMS, [{"Project_Budget_Expense_Line_Item_ID": 1}])
    authorize(budget_admin)

    assert client.delete("/projects/3/categories/4").status_code == 400
    assert fake_mp.calls("DELETE", "/tables/Project_Budget_Categories") == []


def test_empty_category_is_deleted(client, authorize, fake_mp, budget_admin, budgets_app):
    fake_mp.on("GET", LINE_ITEMS, [])
    fake_mp.on("DELETE", "/tables/Project_Budget_Categories", [])
    authorize(budget_admin)

    assert client.delete("/projects/3/categories/4").status_code == 204
    request = fake_mp.calls("DELETE", "/tables/Project_Budget_Categories")[0]
    assert request.url.params["id"] == "4"
    assert request.url.params["$userId"] == "5"


@pytest.mark.parametrize(
    ("status", "approved"),
    [("approved", True), ("Rejected", False), ("pending", None)],
)
def test_line_item_approval_maps_to_flag(client, authorize, fake_mp, budget_admin, budgets_app, status, approved):
    fake_mp.on("PUT", LINE_ITEMS, [{"Project_Budget_Expense_Line_Item_ID": 6, "Approved": approved}])
    authorize(budget_admin)

    response = client.patch("/projects/3/line-items/6/approval", json={"status": status})

    assert response.json() == {"success": True, "lineItemId": 6, "status": status.capitalize()}
    assert fake_mp.last_json("PUT", LINE_ITEMS) == {
        "records": [{"Project_Budget_Expense_Line_Item_ID": 6, "Approved": approved}]
    }


def test_unknown_line_item_approval_status_is_rejected(client, authorize, budget_admin, budgets_app):
    authorize(budget_admin)
    assert client.patch("/projects/3/line-items/6/approval", json={"status": "maybe"}).status_code == 422


def test_line_item_with_transactions_cannot_be_deleted(client, authorize, fake_mp, budget_admin, budgets_app):
    fake_mp.on("GET", TRANSACTIONS, [{"Project_Budget_Transaction_ID": 30}])
    authorize(budget_admin)

    assert client.delete("/projects/3/line-items/6").status_code == 400
    sent = fake_mp.calls("GET", TRANSACTIONS)[0].url.params
    assert sent["$filter"] == "Project_Budget_Expense_Line_Item_ID=6"


def test_transaction_details_include_files(client, authorize, fake_mp, mp, user_factory, budgets_app):
    fake_mp.on("GET", "/procs/api_Custom_GetTransactionDetails_JSON", _json_rows({"transactionId": 30, "amount": 12.5}))
    fake_mp.on(
        "GET",
        "/files/Project_Budget_Transactions/30",
        [{"FileId": 1, "FileName": "receipt.pdf", "UniqueFileId": "u-1"}],
    )
    authorize(user_factory(["Budgets - View"]))

    body = client.get("/projects/3/transactions/30").json()

    assert body["transactionId"] == 30
    assert body["files"] == [
        {"FileId": 1, "FileName": "receipt.pdf", "UniqueFileId": "u-1", "publicUrl": f"{mp.client.base_url}/files/u-1"}
    ]


def test_missing_transaction_is_not_found(client, authorize, fake_mp, staff_user, budgets_app):
    fake_mp.on("GET", "/procs/api_Custom_GetTransactionDetails_JSON", [[]])
    authorize(staff_user)
    assert client.get("/projects/3/transactions/99").status_code == 404


def test_update_transaction_needs_changes(client, authorize, staff_user, budgets_app):
    authorize(staff_user)
    assert client.patch("/projects/3/transactions/30", json={}).status_code == 400


def test_create_income_transaction(client, authorize, fake_mp, staff_user, budgets_app):
    fake_mp.on("POST", TRANSACTIONS, [{"Project_Budget_Transaction_ID": 31, "Transaction_Type": "Income"}])
    authorize(staff_user)

    response = client.post(
        "/projects/3/transactions",
        json={"transaction_date": "2026-05-01", "transaction_type": "Income", "amount": 450, "payee_name": "Registrations"},
    )

    assert response.status_code == 201
    (record,) = fake_mp.last_json("POST", TRANSACTIONS)["records"]
    assert record["Project_ID"] == 3
    assert record["Transaction_Date"] == "2026-05-01"
    assert record["Payee_Name"] == "Registrations"


def test_upload_receipts_to_transaction(client, authorize, fake_mp, mp, staff_user, budgets_app):
    fake_mp.on("POST", "/files/Project_Budget_Transactions/30", [{"FileId": 2, "UniqueFileId": "u-2"}])
    authorize(staff_user)

    response = client.post(
        "/projects/3/transactions/30/files",
        files=[("files", ("receipt.pdf", b"%PDF-1.4", "application/pdf"))],
        data={"description": "Receipt"},
    )

    assert response.status_code == 201
    assert response.json() == [{"FileId": 2, "UniqueFileId": "u-2", "publicUrl": f"{mp.client.base_url}/files/u-2"}]
    request = fake_mp.calls("POST", "/files/Project_Budget_Transactions/30")[0]
    assert request.url.params["description"] == "Receipt"
    assert request.url.params["$userId"] == "42"
    assert b'filename="receipt.pdf"' in request.content


def test_view_level_cannot_upload_receipts(client, authorize, user_factory, budgets_app):
    authorize(user_factory(["Budgets - View"]))
    response = client.post(
        "/projects/3/transactions/30/files",
        files=[("files", ("receipt.pdf", b"%PDF-1.4", "application/pdf"))],
    )
    assert response.status_code == 403
