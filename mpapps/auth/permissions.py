"""Role-name based capability resolvers.

Each resolver is a pure function of the caller's effective roles, so admin role
simulation flows through without special handling.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass
from typing import Literal

ADMIN_ROLE = "Administrators"
ALL_STAFF_ROLE = "All Staff"

BUDGET_ADMIN_ROLES = (ADMIN_ROLE, "Budgets - Admin")
BUDGET_EDIT_ROLES = ("Budgets - Edit", ALL_STAFF_ROLE)
BUDGET_VIEW_ROLES = ("Budgets - View",)

ANNOUNCEMENT_FULL_ROLES = (ADMIN_ROLE, "IT Team Group", "Communications")
ANNOUNCEMENT_STAFF_ROLES = (ALL_STAFF_ROLE,)

RSVP_ADMIN_ROLES = (ADMIN_ROLE, "RSVPs - Admin")
RSVP_VIEW_ROLES = (ALL_STAFF_ROLE,)

PRAYER_STAFF_ROLES = (ADMIN_ROLE, "Staff", "WBC Staff Basic Rights")

PLATFORM_ROLES = (ADMIN_ROLE, "IT Team Group")
FILE_MANAGER_ROLES = (ADMIN_ROLE, "IT Team Group", ALL_STAFF_ROLE)

AccessLevel = Literal["admin", "edit", "view", "none"]


def _has_any(roles: Iterable[str] | None, candidates: tuple[str, ...]) -> bool:
    role_set = set(roles or ())
    return any(candidate in role_set for candidate in candidates)


@dataclass(frozen=True)
class BudgetPermissions:
    level: AccessLevel = "none"
    can_view: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_manage_categories: bool = False
    can_manage_line_items: bool = False
    can_approve_purchase_requests: bool = False
    can_create_purchase_requests: bool = False
    can_manage_purchase_requests: bool = False
    can_manage_transactions: bool = False

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AnnouncementPermissions:
    can_view: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_edit_church_wide: bool = False
    can_delete_church_wide: bool = False
    can_edit_labels: bool = False

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class RsvpPermissions:
    level: AccessLevel = "none"
    can_view: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_manage_projects: bool = False
    can_manage_events: bool = False
    can_manage_files: bool = False
    can_manage_carousels: bool = False
    can_manage_confirmation_cards: bool = False

    def as_dict(self) -> dict:
        return asdict(self)


def resolve_budget_permissions(roles: Iterable[str] | None) -> BudgetPermissions:
    roles = list(roles or ())
    if _has_any(roles, BUDGET_ADMIN_ROLES):
        return BudgetPermissions(
            level="admin",
            can_view=True,
            can_edit=True,
            can_delete=True,
            can_manage_categories=True,
            can_manage_line_items=True,
            can_approve_purchase_requests=True,
            can_create_purchase_requests=True,
            can_manage_purchase_requests=True,
            can_manage_transactions=True,
        )
    if _has_any(roles, BUDGET_EDIT_ROLES):
        return BudgetPermissions(
            level="edit",
            can_view=True,
            can_edit=True,
            can_create_purchase_requests=True,
            can_manage_purchase_requests=True,
            can_manage_transactions=True,
        )
    if _has_any(roles, BUDGET_VIEW_ROLES):
        return BudgetPermissions(level="view", can_view=True, can_create_purchase_requests=True)
    return BudgetPermissions()


def resolve_announcement_permissions(roles: Iterable[str] | None) -> AnnouncementPermissions:
    if _has_any(roles, ANNOUNCEMENT_FULL_ROLES):
        return AnnouncementPermissions(
            can_view=True,
            can_edit=True,
            can_delete=True,
            can_edit_church_wide=True,
            can_delete_church_wide=True,
            can_edit_labels=True,
        )
    if _has_any(roles, ANNOUNCEMENT_STAFF_ROLES):
        return AnnouncementPermissions(can_view=True, can_edit=True, can_delete=True)
    return AnnouncementPermissions()


def resolve_rsvp_permissions(roles: Iterable[str] | None) -> RsvpPermissions:
    if _has_any(roles, RSVP_ADMIN_ROLES):
        return RsvpPermissions(
            level="admin",
            can_view=True,
            can_edit=True,
            can_delete=True,
            can_manage_projects=True,
            can_manage_events=True,
            can_manage_files=True,
            can_manage_carousels=True,
            can_manage_confirmation_cards=True,
        )
    if _has_any(roles, RSVP_VIEW_ROLES):
        return RsvpPermissions(level="view", can_view=True)
    return RsvpPermissions()


def is_prayer_staff(roles: Iterable[str] | None) -> bool:
    return _has_any(roles, PRAYER_STAFF_ROLES)
