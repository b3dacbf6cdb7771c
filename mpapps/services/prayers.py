from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta
from typing import Any

from mpapps.core.config import settings
from mpapps.ministry_platform.errors import MinistryPlatformError
from mpapps.ministry_platform.provider import MinistryPlatformProvider

logger = logging.getLogger(__name__)

PRAYER_TABLE = "Feedback_Entries"
RESPONSE_TABLE = "Feedback_Entry_User_Responses"
PRAYED_RESPONSE_TYPE_ID = 1
DEFAULT_FEEDBACK_TYPE_ID = 1
DEFAULT_PRAYER_TITLE = "Prayer Request"
PRAYER_LIST_LIMIT = 50
WIDGET_DATA_PROC = "api_Custom_Prayer_Widget_Data_JSON"

PRAYER_COLUMNS = "Feedback_Entry_ID,Entry_Title,Description,Date_Submitted,Approved,Ongoing_Need,Feedback_Type_ID,Contact_ID"


class PrayerNotFoundError(Exception):
    pass


def empty_widget_data() -> dict[str, Any]:
    return {
        "My_Requests": {"Items": []},
        "Community_Needs": {"Items": []},
        "Prayer_Partners": {"Items": []},
        "User_Stats": None,
    }


def _escape_like(term: str) -> str:
    return term.replace("'", "''")


def list_prayers(mp: MinistryPlatformProvider, contact_id: int | None = None) -> list[dict[str, Any]]:
    """Approved prayers, plus the caller's own pending ones when a contact is given."""

    filter_expr = "Approved = 1"
    if contact_id:
        filter_expr = f"Approved = 1 OR Contact_ID = {int(contact_id)}"
    return mp.tables.get_records(
        PRAYER_TABLE,
        select=PRAYER_COLUMNS,
        filter=filter_expr,
        order_by="Date_Submitted DESC",
        top=PRAYER_LIST_LIMIT,
    )


def search_prayers(mp: MinistryPlatformProvider, query: str | None, limit: int = 6) -> list[dict[str, Any]]:
    term = (query or "").strip()
    if not term:
        return []
    term = _escape_like(term)
    return mp.tables.get_records(
        PRAYER_TABLE,
        select="Feedback_Entry_ID,Entry_Title,Description,Date_Submitted",
        filter=f"Approved = 1 AND (Entry_Title LIKE '%{term}%' OR Description LIKE '%{term}%')",
        order_by="Date_Submitted DESC",
        top=limit,
    )


def create_prayer(
    mp: MinistryPlatformProvider,
    *,
    contact_id: int,
    description: str,
    title: str | None = None,
    feedback_type_id: int | None = None,
    ongoing: bool = False,
) -> dict[str, Any]:
    record = {
        "Contact_ID": contact_id,
        "Entry_Title": title or DEFAULT_PRAYER_TITLE,
        "Description": description,
        "Feedback_Type_ID": feedback_type_id or DEFAULT_FEEDBACK_TYPE_ID,
        "Date_Submitted": datetime.now(UTC).isoformat(),
        "Approved": False,
        "Ongoing_Need": bool(ongoing),
    }
    created = mp.tables.create_records(PRAYER_TABLE, [record])
    logger.info("prayer_submitted", extra={"contact_id": contact_id})
    return created[0] if created else record


def list_my_prayers(mp: MinistryPlatformProvider, contact_id: int) -> list[dict[str, Any]]:
    return mp.tables.get_records(
        PRAYER_TABLE,
        select="Feedback_Entry_ID,Entry_Title,Description,Date_Submitted,Approved,Ongoing_Need,Feedback_Type_ID",
        filter=f"Contact_ID = {int(contact_id)}",
        order_by="Date_Submitted DESC",
    )


def get_prayer(mp: MinistryPlatformProvider, prayer_id: int) -> dict[str, Any] | None:
    return mp.tables.get_record(PRAYER_TABLE, prayer_id, select=PRAYER_COLUMNS)


def approve_prayer(mp: MinistryPlatformProvider, prayer_id: int, user_id: int | None = None) -> dict[str, Any]:
    if get_prayer(mp, prayer_id) is None:
        raise PrayerNotFoundError(f"Prayer {prayer_id} not found")
    updated = mp.tables.update_records(
        PRAYER_TABLE,
        [{"Feedback_Entry_ID": prayer_id, "Approved": True}],
        user_id=user_id,
    )
    logger.info("prayer_approved", extra={"prayer_id": prayer_id, "user_id": user_id})
    return updated[0] if updated else {"Feedback_Entry_ID": prayer_id, "Approved": True}


def record_prayed(
    mp: MinistryPlatformProvider,
    prayer_id: int,
    contact_id: int,
    message: str | None = None,
) -> dict[str, Any]:
    record = {
        "Feedback_Entry_ID": prayer_id,
        "Contact_ID": contact_id,
        "Response_Type_ID": PRAYED_RESPONSE_TYPE_ID,
        "Response_Date": datetime.now(UTC).isoformat(),
        "Response_Text": message or None,
    }
    created = mp.tables.create_records(RESPONSE_TABLE, [record])
    return created[0] if created else record


def get_prayer_count(mp: MinistryPlatformProvider, prayer_id: int) -> int:
    responses = mp.tables.get_records(
        RESPONSE_TABLE,
        select="Feedback_Entry_User_Response_ID",
        filter=f"Feedback_Entry_ID = {int(prayer_id)} AND Response_Type_ID = {PRAYED_RESPONSE_TYPE_ID}",
    )
    return len(responses)


def get_prayer_counts(mp: MinistryPlatformProvider, prayer_ids: Iterable[int]) -> dict[int, int]:
    ids = [int(prayer_id) for prayer_id in prayer_ids]
    if not ids:
        return {}
    responses = mp.tables.get_records(
        RESPONSE_TABLE,
        select="Feedback_Entry_ID,Feedback_Entry_User_Response_ID",
        filter=f"Feedback_Entry_ID IN ({','.join(str(i) for i in ids)}) AND Response_Type_ID = {PRAYED_RESPONSE_TYPE_ID}",
    )
    counts = {prayer_id: 0 for prayer_id in ids}
    for response in responses:
        entry_id = response.get("Feedback_Entry_ID")
        if entry_id in counts:
            counts[entry_id] += 1
    return counts


def list_prayers_with_counts(mp: MinistryPlatformProvider, contact_id: int | None = None) -> list[dict[str, Any]]:
    prayers = list_prayers(mp, contact_id)
    counts = get_prayer_counts(mp, [prayer["Feedback_Entry_ID"] for prayer in prayers])
    return [{**prayer, "Prayer_Count": counts.get(prayer["Feedback_Entry_ID"], 0)} for prayer in prayers]


def _response_day(value: Any) -> date | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC)
    return parsed.date()


def compute_prayer_stats(response_dates: Iterable[Any], today: date) -> dict[str, int]:
    days = [day for day in (_response_day(value) for value in response_dates) if day is not None]
    unique_days = set(days)
    streak = 0
    cursor = today
    while cursor in unique_days:
        streak += 1
        cursor -= timedelta(days=1)
    return {
        "total_prayers": len(days),
        "day_streak": streak,
        "today_count": sum(1 for day in days if day == today),
    }


def get_user_prayer_stats(
    mp: MinistryPlatformProvider,
    contact_id: int,
    today: date | None = None,
) -> dict[str, int]:
    responses = mp.tables.get_records(
        RESPONSE_TABLE,
        select="Response_Date",
        filter=f"Contact_ID = {int(contact_id)} AND Response_Type_ID = {PRAYED_RESPONSE_TYPE_ID}",
        order_by="Response_Date DESC",
    )
    return compute_prayer_stats(
        (response.get("Response_Date") for response in responses),
        today or datetime.now(UTC).date(),
    )


def get_widget_data(mp: MinistryPlatformProvider, contact_id: int) -> dict[str, Any]:
    try:
        data = mp.procedures.execute_json(
            WIDGET_DATA_PROC,
            {"@ContactID": contact_id, "@DomainID": settings.MINISTRY_PLATFORM_DOMAIN_ID},
        )
    except (MinistryPlatformError, ValueError):
        logger.exception("prayer_widget_data_failed", extra={"contact_id": contact_id})
        return empty_widget_data()

    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict):
        return empty_widget_data()
    return {**empty_widget_data(), **data}
