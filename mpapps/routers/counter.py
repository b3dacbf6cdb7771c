from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Response, status

from mpapps.auth.deps import CurrentUser, get_current_user, get_user_provider
from mpapps.ministry_platform.provider import MinistryPlatformProvider
from mpapps.schemas.counter import EventMetricIn, EventMetricUpdate
from mpapps.services import counter as counter_service

router = APIRouter(prefix="/counter", tags=["counter"])


@router.get("/congregations")
def list_congregations(mp: MinistryPlatformProvider = Depends(get_user_provider)) -> list[dict]:
    return counter_service.list_active_congregations(mp)


@router.get("/events")
def list_events(
    event_date: date = Query(..., alias="date"),
    congregation_id: int = Query(...),
    mp: MinistryPlatformProvider = Depends(get_user_provider),
) -> list[dict]:
    return counter_service.list_events(mp, event_date, congregation_id)


@router.get("/metrics")
def list_metrics(mp: MinistryPlatformProvider = Depends(get_user_provider)) -> list[dict]:
    return counter_service.list_metrics(mp)


@router.get("/event-metrics/{event_id}")
def list_event_metrics(event_id: int, mp: MinistryPlatformProvider = Depends(get_user_provider)) -> list[dict]:
    return counter_service.list_event_metrics(mp, event_id)


@router.post("/event-metrics", status_code=status.HTTP_201_CREATED)
def create_event_metric(
    payload: EventMetricIn,
    mp: MinistryPlatformProvider = Depends(get_user_provider),
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    return counter_service.create_event_metric(mp, payload.to_record(), user_id=user.user_id)


@router.put("/event-metrics/{event_metric_id}")
def update_event_metric(
    event_metric_id: int,
    payload: EventMetricUpdate,
    mp: MinistryPlatformProvider = Depends(get_user_provider),
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    updated = counter_service.update_event_metric(mp, event_metric_id, payload.to_record(), user_id=user.user_id)
    return updated or {"Event_Metric_ID": event_metric_id, **payload.to_record()}


@router.delete("/event-metrics/{event_metric_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event_metric(
    event_metric_id: int,
    mp: MinistryPlatformProvider = Depends(get_user_provider),
    user: CurrentUser = Depends(get_current_user),
) -> Response:
    counter_service.delete_event_metric(mp, event_metric_id, user_id=user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
