from __future__ import annotations

import json
import logging
import re
from typing import Any

from mpapps.ministry_platform.errors import MinistryPlatformError
from mpapps.ministry_platform.provider import MinistryPlatformProvider

logger = logging.getLogger(__name__)

PROJECT_DATA_PROC = "api_Custom_RSVP_Project_Data_JSON"
SUBMIT_PROC = "api_Custom_RSVP_Submit_JSON"

RSVP_PROJECT_COLUMNS = (
    "Project_ID,Project_Title,RSVP_Title,RSVP_Description,RSVP_Start_Date,RSVP_End_Date,RSVP_Is_Active,RSVP_Slug"
)


class RsvpSubmissionError(Exception):
    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RsvpDataNotFoundError(Exception):
    pass


def format_phone(phone: str | None) -> str | None:
    """Format a US number as ``XXX-XXX-XXXX``; anything else is returned unchanged."""

    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) == 10:
        return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"
    return phone


def _event_ids_for_project(mp: MinistryPlatformProvider, project_id: int) -> list[int]:
    events = mp.tables.get_records(
        "Events",
        select="Event_ID",
        filter=f"Project_ID = {int(project_id)} AND Include_In_RSVP = 1",
    )
    return [event["Event_ID"] for event in events]


def list_active_projects(mp: MinistryPlatformProvider) -> list[dict[str, Any]]:
    projects = mp.tables.get_records(
        "Projects",
        select=RSVP_PROJECT_COLUMNS,
        filter="RSVP_Is_Active = 1",
        order_by="RSVP_Start_Date DESC",
    )
    results = []
    for project in projects:
        event_ids = _event_ids_for_project(mp, project["Project_ID"])
        rsvp_count = 0
        if event_ids:
            rsvps = mp.tables.get_records(
                "Event_RSVPs",
                select="Event_RSVP_ID",
                filter=f"Event_ID IN ({','.join(str(event_id) for event_id in event_ids)})",
            )
            rsvp_count = len(rsvps)
        results.append({**project, "Event_Count": len(event_ids), "RSVP_Count": rsvp_count})
    return results


def get_project(mp: MinistryPlatformProvider, project_id_or_slug: str | int) -> dict[str, Any] | None:
    value = str(project_id_or_slug).strip()
    if value.isdigit():
        filter_expr = f"Project_ID = {int(value)}"
    else:
        filter_expr = "RSVP_Slug = '{}'".format(value.replace("'", "''"))
    rows = mp.tables.get_records("Projects", filter=filter_expr, top=1)
    return rows[0] if rows else None


def list_project_events(mp: MinistryPlatformProvider, project_id: int) -> list[dict[str, Any]]:
    events = mp.tables.get_records(
        "Events",
        select=(
            "Event_ID,Project_ID,Include_In_RSVP,RSVP_Capacity_Modifier,Event_Title,Event_Start_Date,"
            "Event_End_Date,Congregation_ID_Table.Congregation_Name,Congregation_ID,Event_Type_ID_Table.Event_Type"
        ),
        filter=f"Project_ID = {int(project_id)}",
        order_by="Event_Start_Date",
    )
    for event in events:
        rsvps = mp.tables.get_records(
            "Event_RSVPs",
            select="Event_RSVP_ID",
            filter=f"Event_ID = {int(event['Event_ID'])}",
        )
        event["RSVP_Count"] = len(rsvps)
    return events


def get_project_rsvp_data(
    mp: MinistryPlatformProvider,
    project_rsvp_id: int,
    *,
    campus_slug: str | None = None,
    congregation_id: int | None = None,
) -> dict[str, Any]:
    params: dict[str, Any] = {"@Project_RSVP_ID": project_rsvp_id}
    if campus_slug:
        params["@Campus_Slug"] = campus_slug
    elif congregation_id:
        params["@Congregation_ID"] = congregation_id

    data = mp.procedures.execute_json(PROJECT_DATA_PROC, params, use_body=False)
    if isinstance(data, list):
        data = data[0] if data else None
    if not data:
        raise RsvpDataNotFoundError(f"No RSVP data for project {project_rsvp_id}")
    return data


def submit_rsvp(mp: MinistryPlatformProvider, submission: dict[str, Any]) -> dict[str, Any]:
    params = {
        "@Event_ID": submission["event_id"],
        "@Project_ID": submission["project_id"],
        "@Contact_ID": submission.get("contact_id"),
        "@Participant_ID": submission.get("participant_id"),
        "@First_Name": submission["first_name"],
        "@Last_Name": submission["last_name"],
        "@Email_Address": submission["email_address"],
        "@Phone_Number": format_phone(submission.get("phone_number")),
        "@Answers": json.dumps(submission.get("answers") or []),
    }
    data = mp.procedures.execute_json(SUBMIT_PROC, params)
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict):
        raise MinistryPlatformError("No data returned from stored procedure", endpoint=SUBMIT_PROC)

    if data.get("status") == "error":
        logger.warning(
            "rsvp_submission_rejected",
            extra={"event_id": submission["event_id"], "reason": data.get("message")},
        )
        raise RsvpSubmissionError(data.get("message") or "RSVP submission failed", details=data)

    confirmation = data.get("confirmation")
    if isinstance(confirmation, str):
        try:
            data["confirmation"] = json.loads(confirmation)
        except ValueError:
            pass

    logger.info("rsvp_submitted", extra={"event_id": submission["event_id"], "project_id": submission["project_id"]})
    return data


# -- amenities, images and confirmation cards -----------------------------------

AMENITY_COLUMNS = "Amenity_ID,Amenity_Name,Amenity_Description,Icon_Name,Icon_Color,Display_Order"
CONFIRMATION_CARD_TABLE = "Project_Confirmation_Cards"
DEFAULT_CARD_TYPE_ID = 1
RSVP_IMAGE_DESCRIPTIONS = {
    "RSVP_Image.jpg": "RSVP Image",
    "RSVP_BG_Image.jpg": "RSVP Background Image",
}


def list_amenities(mp: MinistryPlatformProvider) -> list[dict[str, Any]]:
    return mp.tables.get_records("Amenities", select=AMENITY_COLUMNS, order_by="Display_Order,Amenity_Name")


def list_project_files(mp: MinistryPlatformProvider, project_id: int) -> list[dict[str, Any]]:
    return mp.files.get_files_by_record("Projects", project_id)


def replace_project_image(
    mp: MinistryPlatformProvider,
    project_id: int,
    file_name: str,
    content: bytes,
    content_type: str,
    user_id: int | None,
) -> list[dict[str, Any]]:
    """Upload one of the two RSVP images, replacing any earlier file of that name."""

    if file_name not in RSVP_IMAGE_DESCRIPTIONS:
        raise ValueError(f"Invalid file name. Must be one of: {', '.join(RSVP_IMAGE_DESCRIPTIONS)}")
    for existing in list_project_files(mp, project_id):
        if existing.get("FileName") == file_name:
            mp.files.delete_file(existing["FileId"], user_id=user_id)
            logger.info("rsvp_image_replaced", extra={"project_id": project_id, "file_id": existing["FileId"]})
    return mp.files.upload_files(
        "Projects",
        project_id,
        [(file_name, content, content_type)],
        description=RSVP_IMAGE_DESCRIPTIONS[file_name],
        user_id=user_id,
    )


def delete_project_file(mp: MinistryPlatformProvider, file_id: int, user_id: int | None) -> None:
    mp.files.delete_file(file_id, user_id=user_id)


def create_confirmation_card(
    mp: MinistryPlatformProvider,
    project_id: int,
    congregation_id: int,
    user_id: int | None,
) -> int:
    latest = mp.tables.get_records(
        CONFIRMATION_CARD_TABLE,
        select="Project_Confirmation_Card_ID,Display_Order",
        filter=(
            f"Project_ID = {int(project_id)} AND "
            f"(Congregation_ID = {int(congregation_id)} OR Congregation_ID IS NULL)"
        ),
        order_by="Display_Order DESC",
        top=1,
    )
    display_order = (latest[0].get("Display_Order") or 0) + 1 if latest else 1
    created = mp.tables.create_records(
        CONFIRMATION_CARD_TABLE,
        [
            {
                "Project_ID": project_id,
                "Card_Type_ID": DEFAULT_CARD_TYPE_ID,
                "Display_Order": display_order,
                "Congregation_ID": congregation_id,
                "Card_Configuration": json.dumps({"title": "What to Expect", "bullets": []}),
            }
        ],
        user_id=user_id,
    )
    if not created:
        raise MinistryPlatformError("Failed to create confirmation card", endpoint=CONFIRMATION_CARD_TABLE)
    card_id = created[0]["Project_Confirmation_Card_ID"]
    logger.info(
        "rsvp_confirmation_card_created",
        extra={"project_id": project_id, "congregation_id": congregation_id, "card_id": card_id},
    )
    return card_id


def update_confirmation_card(
    mp: MinistryPlatformProvider,
    card_id: int,
    configuration: dict[str, Any],
    user_id: int | None,
) -> dict[str, Any]:
    mp.tables.update_records(
        CONFIRMATION_CARD_TABLE,
        [{"Project_Confirmation_Card_ID": card_id, "Card_Configuration": json.dumps(configuration)}],
        user_id=user_id,
    )
    return configuration
