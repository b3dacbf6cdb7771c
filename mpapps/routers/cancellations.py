from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from mpapps.auth.deps import CurrentUser, get_current_user
from mpapps.ministry_platform.provider import MinistryPlatformProvider, get_provider
from mpapps.schemas.cancellations import (
    CancellationCreate,
    CancellationUpdate,
    LabelUpdate,
    ServiceCreate,
    UpdateCreate,
)
from mpapps.services import cancellations as cancellations_service
from mpapps.services.app_permissions import require_app_access

APP_KEY = "cancellations"

router = APIRouter(prefix="/cancellations", tags=["cancellations"])
public_router = APIRouter(prefix="/public/cancellations", tags=["public"])

can_view = require_app_access(APP_KEY)
can_edit = require_app_access(APP_KEY, edit=True)
can_delete = require_app_access(APP_KEY, delete=True)


def _get_cancellation_or_404(mp: MinistryPlatformProvider, cancellation_id: int) -> dict:
    cancellation = cancellations_service.get_cancellation(mp, cancellation_id)
    if not cancellation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cancellation not found")
    return cancellation


@router.get("", dependencies=[Depends(can_view)])
def list_cancellations(
    congregation_id: int | None = Query(default=None),
    active_only: bool = Query(default=False),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> list[dict]:
    return cancellations_service.list_cancellations(mp, congregation_id=congregation_id, active_only=active_only)


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(can_edit)])
def create_cancellation(
    payload: CancellationCreate,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    return cancellations_service.create_cancellation(mp, payload.model_dump(mode="json"), user.user_id)


@router.get("/statuses", dependencies=[Depends(can_view)])
def list_statuses(mp: MinistryPlatformProvider = Depends(get_provider)) -> list[dict]:
    return cancellations_service.list_statuses(mp)


@router.get("/congregations", dependencies=[Depends(can_view)])
def list_congregations(mp: MinistryPlatformProvider = Depends(get_provider)) -> list[dict]:
    return cancellations_service.list_congregations(mp)


@router.get("/labels", dependencies=[Depends(can_view)])
def list_labels(mp: MinistryPlatformProvider = Depends(get_provider)) -> list[dict]:
    return cancellations_service.list_labels(mp)


@router.put("/labels/{label_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(can_edit)])
def update_label(
    label_id: int,
    payload: LabelUpdate,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> Response:
    cancellations_service.update_label(mp, label_id, payload.english, user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{cancellation_id}", dependencies=[Depends(can_view)])
def get_cancellation(cancellation_id: int, mp: MinistryPlatformProvider = Depends(get_provider)) -> dict:
    return _get_cancellation_or_404(mp, cancellation_id)


@router.put("/{cancellation_id}", dependencies=[Depends(can_edit)])
def update_cancellation(
    cancellation_id: int,
    payload: CancellationUpdate,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    _get_cancellation_or_404(mp, cancellation_id)
    cancellations_service.update_cancellation(mp, cancellation_id, payload.model_dump(mode="json"), user.user_id)
    return _get_cancellation_or_404(mp, cancellation_id)


@router.delete("/{cancellation_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(can_delete)])
def delete_cancellation(
    cancellation_id: int,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> Response:
    _get_cancellation_or_404(mp, cancellation_id)
    cancellations_service.delete_cancellation(mp, cancellation_id, user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{cancellation_id}/end", dependencies=[Depends(can_edit)])
def end_cancellation(
    cancellation_id: int,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    _get_cancellation_or_404(mp, cancellation_id)
    cancellations_service.end_cancellation(mp, cancellation_id, user.user_id)
    return _get_cancellation_or_404(mp, cancellation_id)


@router.post("/{cancellation_id}/services", status_code=status.HTTP_201_CREATED, dependencies=[Depends(can_edit)])
def add_service(
    cancellation_id: int,
    payload: ServiceCreate,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    _get_cancellation_or_404(mp, cancellation_id)
    return cancellations_service.add_service(mp, cancellation_id, payload.model_dump(), user.user_id)


@router.put("/{cancellation_id}/services/{service_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(can_edit)])
def update_service(
    cancellation_id: int,
    service_id: int,
    payload: ServiceCreate,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> Response:
    cancellations_service.update_service(mp, service_id, payload.model_dump(), user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{cancellation_id}/services/{service_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(can_edit)])
def delete_service(
    cancellation_id: int,
    service_id: int,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> Response:
    cancellations_service.delete_service(mp, service_id, user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{cancellation_id}/updates", status_code=status.HTTP_201_CREATED, dependencies=[Depends(can_edit)])
def add_update(
    cancellation_id: int,
    payload: UpdateCreate,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    _get_cancellation_or_404(mp, cancellation_id)
    return cancellations_service.add_update(mp, cancellation_id, payload.message, user.user_id)


@router.delete("/{cancellation_id}/updates/{update_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(can_edit)])
def delete_update(
    cancellation_id: int,
    update_id: int,
    user: CurrentUser = Depends(get_current_user),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> Response:
    cancellations_service.delete_update(mp, update_id, user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@public_router.get("")
def cancellations_widget(
    congregation_id: int | None = Query(default=None, alias="congregationId"),
    campus: str | None = Query(default=None),
    domain_id: int | None = Query(default=None, alias="domainId"),
    mp: MinistryPlatformProvider = Depends(get_provider),
) -> dict:
    return cancellations_service.get_widget_payload(
        mp, congregation_id=congregation_id, campus=campus, domain_id=domain_id
    )
