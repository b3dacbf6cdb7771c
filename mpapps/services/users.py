from __future__ import annotations

from typing import Any

from mpapps.ministry_platform.provider import MinistryPlatformProvider

CONTACT_COLUMNS = "Contact_ID,First_Name,Nickname,Last_Name,Email_Address,Mobile_Phone,dp_fileUniqueId,Web_Congregation_ID"


class UserNotFoundError(Exception):
    pass


def _profile(contact: dict[str, Any], user_guid: str | None) -> dict[str, Any]:
    return {
        "user_guid": user_guid,
        "contact_id": contact.get("Contact_ID"),
        "first_name": contact.get("First_Name"),
        "nickname": contact.get("Nickname"),
        "last_name": contact.get("Last_Name"),
        "email_address": contact.get("Email_Address"),
        "mobile_phone": contact.get("Mobile_Phone"),
        # The file id column comes back unnamed on some MinistryPlatform versions.
        "image_guid": contact.get("dp_fileUniqueId") or contact.get("Column_6"),
        "web_congregation_id": contact.get("Web_Congregation_ID"),
    }


def _get_contact(mp: MinistryPlatformProvider, contact_id: int) -> dict[str, Any] | None:
    rows = mp.tables.get_records("Contacts", select=CONTACT_COLUMNS, filter=f"Contact_ID = {int(contact_id)}", top=1)
    return rows[0] if rows else None


def get_user_profile(mp: MinistryPlatformProvider, user_guid: str) -> dict[str, Any]:
    guid = user_guid.replace("'", "''")
    users = mp.tables.get_records("dp_Users", select="User_GUID,Contact_ID", filter=f"User_GUID = '{guid}'", top=1)
    if not users:
        raise UserNotFoundError(f"User not found: {user_guid}")
    contact = _get_contact(mp, users[0]["Contact_ID"])
    if contact is None:
        raise UserNotFoundError(f"Contact not found for user: {user_guid}")
    return _profile(contact, users[0].get("User_GUID"))


def get_user_profile_by_contact_id(mp: MinistryPlatformProvider, contact_id: int) -> dict[str, Any]:
    contact = _get_contact(mp, contact_id)
    if contact is None:
        raise UserNotFoundError(f"Contact not found: {contact_id}")
    users = mp.tables.get_records("dp_Users", select="User_GUID", filter=f"Contact_ID = {int(contact_id)}", top=1)
    return _profile(contact, users[0].get("User_GUID") if users else None)


def update_web_congregation(mp: MinistryPlatformProvider, contact_id: int, congregation_id: int) -> None:
    mp.tables.update_records("Contacts", [{"Contact_ID": contact_id, "Web_Congregation_ID": congregation_id}])
