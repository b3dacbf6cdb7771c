from __future__ import annotations

import logging
from datetime import date
from typing import Any

from mpapps.core.config import settings
from mpapps.ministry_platform.provider import MinistryPlatformProvider

logger = logging.getLogger(__name__)

COUNTER_EVENT_TYPE_IDS = (28, 29)
COUNTER_MINISTRY_ID = 127

EVENT_METRIC_COLUMNS = "Event_Metric_ID,Event_ID,Metric_ID,Numerical_Value,Group_ID"


def list_active_congregations(mp: MinistryPlatformProvider, today: date | None = None) -> list[dict[str, Any]]:
    day = (today or date.today()).isoformat()
    return mp.tables.get_records(
        "Congregations",
        select="Congregation_ID,Congregation_Name,Congregation_Short_Name,Start_Date,End_Date,Available_Online",
        filter=f"Start_Date <= '{day}' AND (End_Date IS NULL OR End_Date >= '{day}') AND Available_Online = 1",
        order_by="Congregation_Name",
    )


def list_events(mp: MinistryPlatformProvider, event_date: date, congregation_id: int) -> list[dict[str, Any]]:
    # Events columns must be qualified; Program_ID_Table joins another table with the same names.
    type_ids = ", ".join(str(type_id) for type_id in COUNTER_EVENT_TYPE_IDS)
    return mp.tables.get_records(
        "Events",
        select=(
            "Events.Event_ID,Events.Event_Title,Events.Event_Start_Date,Events.Event_End_Date,"
            "Events.Congregation_ID,Events.Event_Type_ID,Events.Program_ID"
        ),
        filter=(
            f"Events.Event_Type_ID IN ({type_ids}) AND Program_ID_Table.Ministry_ID = {COUNTER_MINISTRY_ID} "
            f"AND CAST(Events.Event_Start_Date AS DATE) = '{event_date.isoformat()}' "
            f"AND Events.Congregation_ID = {int(congregation_id)}"
        ),
        order_by="Event_Start_Date",
    )


def list_metrics(mp: MinistryPlatformProvider) -> list[dict[str, Any]]:
    return mp.tables.get_records("Metrics", select="Metric_ID,Metric_Title,Is_Headcount", order_by="Metric_Title")


def list_event_metrics(mp: MinistryPlatformProvider, event_id: int) -> list[dict[str, Any]]:
    return mp.tables.get_records(
        "Event_Metrics",
        select=EVENT_METRIC_COLUMNS,
        filter=f"Event_ID = {int(event_id)}",
        order_by="Metric_ID",
    )


def create_event_metric(mp: MinistryPlatformProvider, data: dict[str, Any], user_id: int | None = None) -> dict[str, Any]:
    record = {**data, "Domain_ID": settings.MINISTRY_PLATFORM_DOMAIN_ID}
    created = mp.tables.create_records("Event_Metrics", [record], user_id=user_id)
    logger.info(
        "event_metric_created",
        extra={"event_id": data.get("Event_ID"), "metric_id": data.get("Metric_ID")},
    )
    return created[0] if created else record


def update_event_metric(
    mp: MinistryPlatformProvider,
    event_metric_id: int,
    data: dict[str, Any],
    user_id: int | None = None,
) -> dict[str, Any] | None:
    record = {**data, "Event_Metric_ID": event_metric_id, "Domain_ID": settings.MINISTRY_PLATFORM_DOMAIN_ID}
    updated = mp.tables.update_records("Event_Metrics", [record], user_id=user_id)
    return updated[0] if updated else None


def delete_event_metric(mp: MinistryPlatformProvider, event_metric_id: int, user_id: int | None = None) -> None:
    mp.tables.delete_records("Event_Metrics", [event_metric_id], user_id=user_id)
    logger.info("event_metric_deleted", extra={"event_metric_id": event_metric_id})
