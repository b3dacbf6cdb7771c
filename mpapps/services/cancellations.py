from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Literal

from slugify import slugify

from mpapps.core.config import settings
from mpapps.ministry_platform.errors import MinistryPlatformError
from mpapps.ministry_platform.provider import MinistryPlatformProvider

logger = logging.getLogger(__name__)

CANCELLATIONS_TABLE = "Congregation_Cancellations"
SERVICES_TABLE = "Congregation_Cancellation_Services"
UPDATES_TABLE = "Congregation_Cancellation_Updates"
STATUSES_TABLE = "__CancellationStatuses"
LABELS_TABLE = "dp_Application_Labels"
LABEL_PREFIX = "customWidgets.cancellationsWidget."
CAMPUS_SVG_FILE_NAME = "Campus.svg"
WIDGET_PROC = "api_custom_CancellationsWidget_JSON"
ONLINE_CONGREGATIONS_FILTER = "End_Date IS NULL AND Available_Online = 1 AND Congregation_ID <> 1"

CANCELLATION_COLUMNS = ",".join(
    f"{CANCELLATIONS_TABLE}.{column}"
    for column in (
        "Congregation_Cancellation_ID",
        "Congregation_ID",
        "Cancellation_Status_ID",
        "Reason",
        "Expected_Resume_Time",
        "Start_Date",
        "End_Date",
        "Domain_ID",
    )
)

CancellationStatus = Literal["open", "modified", "closed"]


def map_status_name(status_name: str | None) -> CancellationStatus:
    lowered = (status_name or "").strip().lower()
    if lowered == "closed":
        return "closed"
    if lowered == "modified":
        return "modified"
    return "open"


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def is_active(start_date: Any, end_date: Any, now: datetime | None = None) -> bool:
    current = now or datetime.now(UTC)
    start = _parse_datetime(start_date)
    end = _parse_datetime(end_date)
    if start is None or start > current:
        return False
    return end is None or end > current


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


# -- lookups -------------------------------------------------------------------


def _congregation_names(mp: MinistryPlatformProvider) -> dict[int, str]:
    rows = mp.tables.get_records("Congregations", select="Congregation_ID,Congregation_Name")
    return {row["Congregation_ID"]: row.get("Congregation_Name") for row in rows}


def _status_names(mp: MinistryPlatformProvider) -> dict[int, str]:
    rows = mp.tables.get_records(STATUSES_TABLE, select="Cancellation_Status_ID,Status_Name")
    return {row["Cancellation_Status_ID"]: row.get("Status_Name") for row in rows}


def get_campus_svg_urls(mp: MinistryPlatformProvider) -> dict[int, str]:
    """Map congregation id to the public URL of its ``Campus.svg`` attachment."""

    urls: dict[int, str] = {}
    try:
        congregations = mp.tables.get_records(
            "Congregations",
            select="Congregation_ID",
            filter=ONLINE_CONGREGATIONS_FILTER,
        )
    except MinistryPlatformError:
        logger.exception("campus_svg_lookup_failed")
        return urls

    for congregation in congregations:
        congregation_id = congregation["Congregation_ID"]
        try:
            files = mp.files.get_files_by_record("Congregations", congregation_id)
        except MinistryPlatformError:
            logger.warning("campus_svg_files_failed", extra={"congregation_id": congregation_id})
            continue
        for file in files:
            if file.get("FileName") == CAMPUS_SVG_FILE_NAME and file.get("UniqueFileId"):
                urls[congregation_id] = mp.files.file_url(file["UniqueFileId"])
                break
    return urls


def list_statuses(mp: MinistryPlatformProvider) -> list[dict[str, Any]]:
    rows = mp.tables.get_records(
        STATUSES_TABLE,
        select="Cancellation_Status_ID,Status_Name",
        order_by="Cancellation_Status_ID ASC",
    )
    return [
        {
            "value": row["Cancellation_Status_ID"],
            "label": row.get("Status_Name"),
            "status": map_status_name(row.get("Status_Name")),
        }
        for row in rows
    ]


def list_congregations(mp: MinistryPlatformProvider) -> list[dict[str, Any]]:
    rows = mp.tables.get_records(
        "Congregations",
        select="Congregation_ID,Congregation_Name,Campus_Slug",
        filter=ONLINE_CONGREGATIONS_FILTER,
        order_by="Congregation_Name ASC",
    )
    return [
        {"value": row["Congregation_ID"], "label": row.get("Congregation_Name"), "slug": row.get("Campus_Slug")}
        for row in rows
    ]


# -- services and updates --------------------------------------------------------


def list_services(mp: MinistryPlatformProvider, cancellation_id: int) -> list[dict[str, Any]]:
    rows = mp.tables.get_records(
        SERVICES_TABLE,
        select=(
            f"{SERVICES_TABLE}.Congregation_Cancellation_Service_ID,{SERVICES_TABLE}.Congregation_Cancellation_ID,"
            f"{SERVICES_TABLE}.Service_Name,{SERVICES_TABLE}.Service_Status,{SERVICES_TABLE}.Details,"
            f"{SERVICES_TABLE}.Sort_Order"
        ),
        filter=f"{SERVICES_TABLE}.Congregation_Cancellation_ID={int(cancellation_id)}",
        order_by=f"{SERVICES_TABLE}.Sort_Order ASC, {SERVICES_TABLE}.Service_Name ASC",
    )
    return [
        {
            "id": row["Congregation_Cancellation_Service_ID"],
            "cancellation_id": row.get("Congregation_Cancellation_ID"),
            "service_name": row.get("Service_Name"),
            "service_status": row.get("Service_Status"),
            "details": row.get("Details"),
            "sort_order": row.get("Sort_Order"),
        }
        for row in rows
    ]


def list_updates(mp: MinistryPlatformProvider, cancellation_id: int) -> list[dict[str, Any]]:
    rows = mp.tables.get_records(
        UPDATES_TABLE,
        select=(
            f"{UPDATES_TABLE}.Congregation_Cancellation_Update_ID,{UPDATES_TABLE}.Congregation_Cancellation_ID,"
            f"{UPDATES_TABLE}.Update_Message,{UPDATES_TABLE}.Update_Timestamp"
        ),
        filter=f"{UPDATES_TABLE}.Congregation_Cancellation_ID={int(cancellation_id)}",
        order_by=f"{UPDATES_TABLE}.Update_Timestamp DESC",
    )
    return [
        {
            "id": row["Congregation_Cancellation_Update_ID"],
            "cancellation_id": row.get("Congregation_Cancellation_ID"),
            "message": row.get("Update_Message"),
            "timestamp": row.get("Update_Timestamp"),
        }
        for row in rows
    ]


def add_service(mp: MinistryPlatformProvider, cancellation_id: int, data: dict[str, Any], user_id: int | None) -> dict[str, Any]:
    record = {
        "Congregation_Cancellation_ID": cancellation_id,
        "Service_Name": data["service_name"],
        "Service_Status": data["service_status"],
        "Details": data.get("details"),
        "Sort_Order": data.get("sort_order", 0),
        "Domain_ID": settings.MINISTRY_PLATFORM_DOMAIN_ID,
    }
    created = mp.tables.create_records(SERVICES_TABLE, [record], user_id=user_id)
    return created[0] if created else record


def update_service(mp: MinistryPlatformProvider, service_id: int, data: dict[str, Any], user_id: int | None) -> None:
    record = {
        "Congregation_Cancellation_Service_ID": service_id,
        "Service_Name": data["service_name"],
        "Service_Status": data["service_status"],
        "Details": data.get("details"),
        "Sort_Order": data.get("sort_order", 0),
    }
    mp.tables.update_records(SERVICES_TABLE, [record], user_id=user_id)


def delete_service(mp: MinistryPlatformProvider, service_id: int, user_id: int | None) -> None:
    mp.tables.delete_records(SERVICES_TABLE, [service_id], user_id=user_id)


def add_update(mp: MinistryPlatformProvider, cancellation_id: int, message: str, user_id: int | None) -> dict[str, Any]:
    # Update_Timestamp is left to the database default so it reflects server time.
    record = {
        "Congregation_Cancellation_ID": cancellation_id,
        "Update_Message": message,
        "Domain_ID": settings.MINISTRY_PLATFORM_DOMAIN_ID,
    }
    created = mp.tables.create_records(UPDATES_TABLE, [record], user_id=user_id)
    return created[0] if created else record


def delete_update(mp: MinistryPlatformProvider, update_id: int, user_id: int | None) -> None:
    mp.tables.delete_records(UPDATES_TABLE, [update_id], user_id=user_id)


# -- cancellations ---------------------------------------------------------------


def _to_cancellation(
    mp: MinistryPlatformProvider,
    record: dict[str, Any],
    congregations: dict[int, str],
    statuses: dict[int, str],
    svg_urls: dict[int, str],
    now: datetime,
) -> dict[str, Any]:
    cancellation_id = record["Congregation_Cancellation_ID"]
    status_name = statuses.get(record.get("Cancellation_Status_ID")) or "Open"
    return {
        "id": cancellation_id,
        "congregation_id": record.get("Congregation_ID"),
        "congregation_name": congregations.get(record.get("Congregation_ID")) or "Unknown",
        "campus_svg_url": svg_urls.get(record.get("Congregation_ID")),
        "status_id": record.get("Cancellation_Status_ID"),
        "status_name": status_name,
        "status": map_status_name(status_name),
        "reason": record.get("Reason"),
        "expected_resume_time": record.get("Expected_Resume_Time"),
        "start_date": record.get("Start_Date"),
        "end_date": record.get("End_Date"),
        "domain_id": record.get("Domain_ID"),
        "services": list_services(mp, cancellation_id),
        "updates": list_updates(mp, cancellation_id),
        "is_active": is_active(record.get("Start_Date"), record.get("End_Date"), now),
    }


def list_cancellations(
    mp: MinistryPlatformProvider,
    *,
    congregation_id: int | None = None,
    active_only: bool = False,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    current = now or datetime.now(UTC)
    filter_expr = f"{CANCELLATIONS_TABLE}.Domain_ID={settings.MINISTRY_PLATFORM_DOMAIN_ID}"
    if congregation_id:
        filter_expr += f" AND {CANCELLATIONS_TABLE}.Congregation_ID={int(congregation_id)}"
    if active_only:
        stamp = current.isoformat()
        filter_expr += (
            f" AND {CANCELLATIONS_TABLE}.Start_Date <= '{stamp}'"
            f" AND ({CANCELLATIONS_TABLE}.End_Date IS NULL OR {CANCELLATIONS_TABLE}.End_Date > '{stamp}')"
        )

    records = mp.tables.get_records(
        CANCELLATIONS_TABLE,
        select=CANCELLATION_COLUMNS,
        filter=filter_expr,
        order_by=f"{CANCELLATIONS_TABLE}.Start_Date DESC",
    )
    congregations = _congregation_names(mp)
    statuses = _status_names(mp)
    svg_urls = get_campus_svg_urls(mp)
    return [_to_cancellation(mp, record, congregations, statuses, svg_urls, current) for record in records]


def get_cancellation(mp: MinistryPlatformProvider, cancellation_id: int, now: datetime | None = None) -> dict[str, Any] | None:
    records = mp.tables.get_records(
        CANCELLATIONS_TABLE,
        select=CANCELLATION_COLUMNS,
        filter=f"{CANCELLATIONS_TABLE}.Congregation_Cancellation_ID={int(cancellation_id)}",
        top=1,
    )
    if not records:
        return None
    return _to_cancellation(
        mp,
        records[0],
        _congregation_names(mp),
        _status_names(mp),
        {},
        now or datetime.now(UTC),
    )


def _cancellation_record(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "Congregation_ID": data["congregation_id"],
        "Cancellation_Status_ID": data["status_id"],
        "Reason": data.get("reason"),
        "Expected_Resume_Time": data.get("expected_resume_time"),
        "Start_Date": data["start_date"],
        "End_Date": data.get("end_date"),
        "Domain_ID": settings.MINISTRY_PLATFORM_DOMAIN_ID,
    }


def create_cancellation(mp: MinistryPlatformProvider, data: dict[str, Any], user_id: int | None) -> dict[str, Any]:
    record = _cancellation_record(data)
    created = mp.tables.create_records(CANCELLATIONS_TABLE, [record], user_id=user_id)
    logger.info("cancellation_created", extra={"congregation_id": record["Congregation_ID"], "user_id": user_id})
    return created[0] if created else record


def update_cancellation(mp: MinistryPlatformProvider, cancellation_id: int, data: dict[str, Any], user_id: int | None) -> None:
    record = {"Congregation_Cancellation_ID": cancellation_id, **_cancellation_record(data)}
    mp.tables.update_records(CANCELLATIONS_TABLE, [record], user_id=user_id)


def delete_cancellation(mp: MinistryPlatformProvider, cancellation_id: int, user_id: int | None) -> None:
    """Delete a cancellation after its services and updates."""

    service_ids = [service["id"] for service in list_services(mp, cancellation_id)]
    if service_ids:
        mp.tables.delete_records(SERVICES_TABLE, service_ids, user_id=user_id)
    update_ids = [update["id"] for update in list_updates(mp, cancellation_id)]
    if update_ids:
        mp.tables.delete_records(UPDATES_TABLE, update_ids, user_id=user_id)
    mp.tables.delete_records(CANCELLATIONS_TABLE, [cancellation_id], user_id=user_id)
    logger.info("cancellation_deleted", extra={"cancellation_id": cancellation_id, "user_id": user_id})


def end_cancellation(mp: MinistryPlatformProvider, cancellation_id: int, user_id: int | None) -> None:
    mp.tables.update_records(
        CANCELLATIONS_TABLE,
        [{"Congregation_Cancellation_ID": cancellation_id, "End_Date": _now_iso()}],
        user_id=user_id,
    )


# -- labels ----------------------------------------------------------------------


def list_labels(mp: MinistryPlatformProvider) -> list[dict[str, Any]]:
    return mp.tables.get_records(
        LABELS_TABLE,
        select="Application_Label_ID,Label_Name,English",
        filter=f"Label_Name LIKE '{LABEL_PREFIX}%'",
        order_by="Label_Name ASC",
    )


def update_label(mp: MinistryPlatformProvider, label_id: int, english: str, user_id: int | None) -> None:
    mp.tables.update_records(
        LABELS_TABLE,
        [{"Application_Label_ID": label_id, "English": english}],
        user_id=user_id,
    )


# -- public widget ---------------------------------------------------------------


def widget_fallback() -> dict[str, Any]:
    return {
        "Information": {
            "alertTitle": "Weather Advisory",
            "mainTitle": "Cancellations",
            "alertMessage": (
                "Due to hazardous conditions, several church activities have been affected. "
                "Please check your campus status below before traveling."
            ),
            "autoRefreshMessage": "This page refreshes automatically. Check back for the latest updates.",
            "lastUpdatedPrefix": "Last updated:",
            "openStatusMessage": "All activities are proceeding as scheduled",
            "openStatusSubtext": "No cancellations or modifications at this time",
        },
        "LastUpdated": _now_iso(),
        "Campuses": [],
    }


def get_widget_payload(
    mp: MinistryPlatformProvider,
    *,
    congregation_id: int | None = None,
    campus: str | None = None,
    domain_id: int | None = None,
) -> dict[str, Any]:
    """Public cancellations feed; any vendor failure yields the fallback payload."""

    params = {
        "@CongregationID": congregation_id,
        "@Campus": slugify(campus) if campus else None,
        "@DomainID": domain_id,
    }
    try:
        data = mp.procedures.execute_json(WIDGET_PROC, params, use_body=False)
    except (MinistryPlatformError, ValueError):
        logger.exception("cancellations_widget_failed", extra={"congregation_id": congregation_id, "campus": campus})
        return widget_fallback()
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict):
        return widget_fallback()
    return data
