from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status

from mpapps.auth.deps import CurrentUser, get_current_user
from mpapps.ministry_platform.provider import MinistryPlatformProvider, get_provider
from mpapps.routers.projects import (
    can_approve_purchase_requests,
    can_create_purchase_requests,
    can_manage_categories,
    can_manage_line_items,
    can_manage_purchase_requests,
    can_manage_transactions,
    can_view,
)
from mpapps.schemas.budgets import (
    CategoryIn,
    CategoryUpdate,
    IncomeLineItemIn,
    LineItemApproval,
    LineItemIn,
    LineItemUpdate,
    PurchaseRequestDecision,
    PurchaseRequestIn,
    PurchaseRequestTransactionIn,
    TransactionIn,
    TransactionUpdate,
)
from mpapps.services import budgets as budgets_service

router = APIRouter(prefix="/projects", tags=["budgets"])


def _not_found(exc: budgets_service.BudgetRecordNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _conflict(exc: budgets_service.BudgetRuleError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


# Purchase requests


@router.get("/{project_id}/purchase-requests", dependencies=[Depends(can_view)])
def list_purchase_requests(
    project_id: int,
    mine: bool = Query(default=False),
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> list:
    contact_id = user.contact_id if mine else None
    return budgets_service.list_purchase_requests(mp, project_id, requested_by_contact_id=contact_id)


@router.post(
    "/{project_id}/purchase-requests",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(can_create_purchase_requests)],
)
def create_purchase_request(
    project_id: int,
    payload: PurchaseRequestIn,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    try:
        return budgets_service.create_purchase_request(mp, project_id, payload.model_dump(), user.user_id)
    except budgets_service.BudgetRecordNotFoundError as exc:
        raise _not_found(exc) from exc


@router.get("/{project_id}/purchase-requests/pending-approval", dependencies=[Depends(can_approve_purchase_requests)])
def pending_purchase_requests(project_id: int, mp: MinistryPlatformProvider = Depends(get_provider)) -> dict:
    try:
        return budgets_service.get_pending_approvals(mp, project_id)
    except budgets_service.BudgetRecordNotFoundError as exc:
        raise _not_found(exc) from exc


@router.get("/{project_id}/purchase-requests/{request_id}", dependencies=[Depends(can_view)])
def get_purchase_request(project_id: int, request_id: int, mp: MinistryPlatformProvider = Depends(get_provider)) -> dict:
    purchase_request = budgets_service.get_purchase_request(mp, request_id)
    if purchase_request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Purchase request not found")
    return purchase_request


@router.patch("/{project_id}/purchase-requests/{request_id}", dependencies=[Depends(can_approve_purchase_requests)])
def review_purchase_request(
    project_id: int,
    request_id: int,
    payload: PurchaseRequestDecision,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    try:
        return budgets_service.review_purchase_request(
            mp, request_id, payload.approval_status, user.user_id, rejection_reason=payload.rejection_reason
        )
    except budgets_service.BudgetRecordNotFoundError as exc:
        raise _not_found(exc) from exc


@router.delete(
    "/{project_id}/purchase-requests/{request_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(can_manage_purchase_requests)],
)
def delete_purchase_request(
    project_id: int,
    request_id: int,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> Response:
    try:
        budgets_service.delete_purchase_request(mp, request_id, user.user_id)
    except budgets_service.BudgetRuleError as exc:
        raise _conflict(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{project_id}/purchase-requests/{request_id}/transactions",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(can_manage_transactions)],
)
def add_purchase_request_transaction(
    project_id: int,
    request_id: int,
    payload: PurchaseRequestTransactionIn,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    try:
        return budgets_service.add_purchase_request_transaction(
            mp, project_id, request_id, payload.model_dump(), user.user_id
        )
    except budgets_service.BudgetRecordNotFoundError as exc:
        raise _not_found(exc) from exc
    except budgets_service.BudgetRuleError as exc:
        raise _conflict(exc) from exc


# Categories and line items


@router.post(
    "/{project_id}/categories",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(can_manage_categories)],
)
def create_category(
    project_id: int,
    payload: CategoryIn,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    return budgets_service.create_category(mp, project_id, payload.model_dump(), user.user_id)


@router.patch("/{project_id}/categories/{category_id}", dependencies=[Depends(can_manage_categories)])
def update_category(
    project_id: int,
    category_id: int,
    payload: CategoryUpdate,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    try:
        return budgets_service.update_category(mp, category_id, payload.budgeted_amount, user.user_id)
    except budgets_service.BudgetRecordNotFoundError as exc:
        raise _not_found(exc) from exc


@router.delete(
    "/{project_id}/categories/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(can_manage_categories)],
)
def delete_category(
    project_id: int,
    category_id: int,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> Response:
    try:
        budgets_service.delete_category(mp, category_id, user.user_id)
    except budgets_service.BudgetRuleError as exc:
        raise _conflict(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{project_id}/categories/{category_id}/line-items",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(can_manage_line_items)],
)
def create_line_item(
    project_id: int,
    category_id: int,
    payload: LineItemIn,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    return budgets_service.create_line_item(mp, category_id, payload.model_dump(), user.user_id)


@router.patch("/{project_id}/line-items/{line_item_id}", dependencies=[Depends(can_manage_line_items)])
def update_line_item(
    project_id: int,
    line_item_id: int,
    payload: LineItemUpdate,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request body cannot be empty")
    try:
        return budgets_service.update_line_item(mp, line_item_id, changes, user.user_id)
    except budgets_service.BudgetRecordNotFoundError as exc:
        raise _not_found(exc) from exc


@router.delete(
    "/{project_id}/line-items/{line_item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(can_manage_line_items)],
)
def delete_line_item(
    project_id: int,
    line_item_id: int,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> Response:
    try:
        budgets_service.delete_line_item(mp, line_item_id, user.user_id)
    except budgets_service.BudgetRuleError as exc:
        raise _conflict(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{project_id}/line-items/{line_item_id}/approval", dependencies=[Depends(can_manage_line_items)])
def review_line_item(
    project_id: int,
    line_item_id: int,
    payload: LineItemApproval,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    try:
        return budgets_service.set_line_item_approval(mp, line_item_id, payload.status, user.user_id)
    except budgets_service.BudgetRecordNotFoundError as exc:
        raise _not_found(exc) from exc


@router.post(
    "/{project_id}/income-line-items",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(can_manage_line_items)],
)
def create_income_line_item(
    project_id: int,
    payload: IncomeLineItemIn,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    return budgets_service.create_income_line_item(mp, project_id, payload.model_dump(), user.user_id)


# Transactions


@router.post(
    "/{project_id}/transactions",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(can_manage_transactions)],
)
def create_transaction(
    project_id: int,
    payload: TransactionIn,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    return budgets_service.create_transaction(mp, project_id, payload.model_dump(), user.user_id)


@router.get("/{project_id}/transactions/{transaction_id}", dependencies=[Depends(can_view)])
def get_transaction(project_id: int, transaction_id: int, mp: MinistryPlatformProvider = Depends(get_provider)) -> dict:
    transaction = budgets_service.get_transaction(mp, transaction_id)
    if transaction is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")
    return transaction


@router.patch("/{project_id}/transactions/{transaction_id}", dependencies=[Depends(can_manage_transactions)])
def update_transaction(
    project_id: int,
    transaction_id: int,
    payload: TransactionUpdate,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request body cannot be empty")
    try:
        return budgets_service.update_transaction(mp, transaction_id, changes, user.user_id)
    except budgets_service.BudgetRecordNotFoundError as exc:
        raise _not_found(exc) from exc


@router.delete(
    "/{project_id}/transactions/{transaction_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(can_manage_transactions)],
)
def delete_transaction(
    project_id: int,
    transaction_id: int,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> Response:
    budgets_service.delete_transaction(mp, transaction_id, user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{project_id}/transactions/{transaction_id}/files", dependencies=[Depends(can_view)])
def list_transaction_files(
    project_id: int,
    transaction_id: int,
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> list[dict]:
    return budgets_service.list_transaction_files(mp, transaction_id)


@router.post(
    "/{project_id}/transactions/{transaction_id}/files",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(can_manage_transactions)],
)
def upload_transaction_files(
    project_id: int,
    transaction_id: int,
    files: list[UploadFile] = File(...),
    description: str | None = Form(default=None),
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> list[dict]:
    uploads = []
    for upload in files:
        try:
            uploads.append((upload.filename or "upload", upload.file.read(), upload.content_type or "application/octet-stream"))
        finally:
            upload.file.close()
    return budgets_service.upload_transaction_files(mp, transaction_id, uploads, description, user.user_id)
