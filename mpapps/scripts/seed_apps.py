from __future__ import annotations

from sqlalchemy.orm import Session

from mpapps.auth.permissions import ADMIN_ROLE, ALL_STAFF_ROLE, BUDGET_EDIT_ROLES, BUDGET_VIEW_ROLES
from mpapps.core.db import Base, SessionLocal, engine
from mpapps.models.application import Application, AppPermission
from mpapps.models.widget import Widget, WidgetField, WidgetUrlParameter
from mpapps.services.widgets import ANNOUNCEMENTS_ALLOWED_KEYS, GROUP_FINDER_ALLOWED_KEYS

WIDGET_ASSET_BASE = "https://widgets.woodsidebible.org"

APPLICATIONS = [
    ("Counter", "counter", "/counter", "calculator", "Event headcounts by campus and service."),
    ("Prayer", "prayer", "/prayer", "heart", "Prayer requests and the prayer wall."),
    ("Cancellations", "cancellations", "/cancellations", "cloud-snow", "Weather and campus cancellations."),
    ("Budgets", "budgets", "/budgets", "wallet", "Project budgets, expenses and purchase requests."),
    ("RSVP", "rsvp", "/rsvp", "calendar-check", "Event RSVP projects and submissions."),
    ("Widgets", "widgets", "/widgets", "puzzle", "Embed code for the public website widgets."),
]

STAFF_APPLICATIONS = {"counter", "prayer", "rsvp"}

# role_name -> (can_view, can_edit, can_delete)
ROLE_PERMISSIONS = {
    "budgets": {
        "Budgets - Admin": (True, True, True),
        **{role: (True, True, False) for role in BUDGET_EDIT_ROLES},
        **{role: (True, False, False) for role in BUDGET_VIEW_ROLES},
    },
    "rsvp": {"RSVPs - Admin": (True, True, True)},
}

WIDGETS = [
    {
        "name": "Group Finder",
        "key": "group-finder",
        "description": "Searchable list of open small groups.",
        "container_element_id": "GroupFinderWidget",
        "stored_procedure": "api_custom_GroupFinderWidget_JSON",
        "allowed_params": list(GROUP_FINDER_ALLOWED_KEYS),
        "cache_data": False,
        "url_parameters": [
            ("@CongregationID", "Campus to show groups for", "3"),
            ("@DaysOfWeek", "Comma separated meeting days", "Monday,Wednesday"),
            ("@Search", "Free text search", "men"),
        ],
    },
    {
        "name": "Announcements",
        "key": "announcements",
        "description": "Church announcements grid or carousel.",
        "container_element_id": "AnnouncementsWidget",
        "stored_procedure": "api_custom_AnnouncementsWidget_JSON",
        "allowed_params": list(ANNOUNCEMENTS_ALLOWED_KEYS),
        "cache_data": False,
        "url_parameters": [
            ("@CongregationID", "Campus to show announcements for", "3"),
            ("@NumPerPage", "Announcements per page", "6"),
        ],
    },
]


def ensure_application(db: Session, sort_order: int, name: str, key: str, route: str, icon: str, description: str) -> Application:
    application = db.query(Application).filter(Application.key == key).first()
    if application:
        return application
    application = Application(
        name=name,
        key=key,
        route=route,
        icon=icon,
        description=description,
        sort_order=sort_order,
    )
    db.add(application)
    db.flush()
    db.add(AppPermission(application_id=application.id, role_name=ADMIN_ROLE, can_view=True, can_edit=True, can_delete=True))
    if key in STAFF_APPLICATIONS:
        db.add(AppPermission(application_id=application.id, role_name=ALL_STAFF_ROLE, can_view=True, can_edit=True))
    for role, (can_view, can_edit, can_delete) in ROLE_PERMISSIONS.get(key, {}).items():
        db.add(
            AppPermission(
                application_id=application.id,
                role_name=role,
                can_view=can_view,
                can_edit=can_edit,
                can_delete=can_delete,
            )
        )
    return application


def ensure_widget(db: Session, sort_order: int, config: dict) -> Widget:
    widget = db.query(Widget).filter(Widget.key == config["key"]).first()
    if widget:
        return widget
    key = config["key"]
    widget = Widget(
        name=config["name"],
        key=key,
        description=config["description"],
        script_url=f"{WIDGET_ASSET_BASE}/{key}/Assets/embed.js",
        container_element_id=config["container_element_id"],
        stored_procedure=config["stored_procedure"],
        template_url=f"{WIDGET_ASSET_BASE}/{key}/Template/widget.html",
        allowed_params=config["allowed_params"],
        cache_data=config["cache_data"],
        sort_order=sort_order,
    )
    widget.fields.append(
        WidgetField(
            field_key=f"{key}-congregation",
            label="Campus",
            field_type="select",
            data_source_type="mp_table",
            data_source_config={
                "table": "Congregations",
                "valueField": "Congregation_ID",
                "labelField": "Congregation_Name",
                "filter": "End_Date IS NULL AND Available_Online = 1",
            },
            data_param_mapping="@CongregationID",
        )
    )
    for index, (parameter_key, description, example) in enumerate(config["url_parameters"]):
        widget.url_parameters.append(
            WidgetUrlParameter(
                parameter_key=parameter_key,
                description=description,
                example_value=example,
                sort_order=index,
            )
        )
    db.add(widget)
    return widget


def main() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        for index, (name, key, route, icon, description) in enumerate(APPLICATIONS):
            ensure_application(db, index, name, key, route, icon, description)
        for index, config in enumerate(WIDGETS):
            ensure_widget(db, index, config)
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    main()
