"""Widget catalogue and embed rendering.

Embeds are the configuration ``<div>`` consumed by MinistryPlatform's generic
custom-widget runtime. The runtime reads ``data-sp`` and ``data-params`` to call
the stored procedure and renders ``data-template`` with the result.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Iterable, Mapping
from html import escape
from typing import Any

from sqlalchemy.orm import Session, selectinload

from mpapps.core.config import settings
from mpapps.ministry_platform.provider import MinistryPlatformProvider
from mpapps.models.widget import Widget, WidgetField, WidgetUrlParameter

logger = logging.getLogger(__name__)

CONGREGATION_PARAM = "@CongregationID"

ANNOUNCEMENTS_ALLOWED_KEYS = (
    "@CongregationID",
    "@GroupID",
    "@EventID",
    "@Search",
    "@AnnouncementIDs",
    "@Page",
    "@NumPerPage",
    "@UserName",
    "@DomainID",
)

GROUP_FINDER_ALLOWED_KEYS = (
    "@CongregationID",
    "@DaysOfWeek",
    "@Cities",
    "@Leaders",
    "@GroupIDs",
    "@Search",
    "@LifeStageID",
    "@FamilyAccommodationID",
    "@IntendedAudienceID",
)


class WidgetNotFoundError(Exception):
    pass


class WidgetFieldNotFoundError(Exception):
    pass


def _b64url_json(segment: str) -> Any:
    padded = segment.replace("-", "+").replace("_", "/")
    padded += "=" * (-len(padded) % 4)
    return json.loads(base64.b64decode(padded).decode("utf-8"))


def decode_location_cookie(value: str | None) -> int | None:
    """Return the ``location_id`` stored in the selected-location cookie.

    The cookie is either a bare base64url JSON object or a JWT whose payload
    carries the same object. Anything unreadable yields ``None``.
    """

    if not value:
        return None
    candidates = [value]
    if value.count(".") == 2:
        candidates.insert(0, value.split(".")[1])
    for candidate in candidates:
        try:
            payload = _b64url_json(candidate)
        except (binascii.Error, UnicodeDecodeError, ValueError):
            continue
        if isinstance(payload, dict) and payload.get("location_id"):
            try:
                return int(payload["location_id"])
            except (TypeError, ValueError):
                return None
    return None


def filter_params(query: Iterable[tuple[str, str]] | Mapping[str, str], allowed: Iterable[str]) -> dict[str, str]:
    """Keep whitelisted query parameters with non-blank values, in request order."""

    allowed_keys = set(allowed)
    items = query.items() if isinstance(query, Mapping) else query
    params: dict[str, str] = {}
    for key, value in items:
        if key in allowed_keys and value is not None and str(value).strip():
            params[key] = str(value)
    return params


def apply_location_fallback(params: dict[str, str], location_cookie: str | None) -> dict[str, str]:
    if CONGREGATION_PARAM in params:
        return params
    congregation_id = decode_location_cookie(location_cookie)
    if congregation_id:
        params[CONGREGATION_PARAM] = str(congregation_id)
    return params


def serialize_params(params: Mapping[str, str]) -> str:
    return "&".join(f"{key}={value}" for key, value in params.items())


def _flag(value: bool) -> str:
    return "true" if value else "false"


def render_widget_embed(
    *,
    container_id: str,
    stored_procedure: str,
    params: Mapping[str, str],
    template_url: str,
    require_user: bool = False,
    cache: bool = False,
    host: str | None = None,
    debug: bool = False,
) -> str:
    attrs = [
        ("id", container_id),
        ("data-component", "CustomWidget"),
        ("data-sp", stored_procedure),
        ("data-params", serialize_params(params)),
        ("data-template", template_url),
        ("data-requireUser", _flag(require_user)),
        ("data-cache", _flag(cache)),
        ("data-host", host or settings.WIDGET_RUNTIME_HOST),
    ]
    if debug:
        attrs.append(("data-debug", "true"))
    rendered = " ".join(f'{name}="{escape(str(value), quote=True)}"' for name, value in attrs)
    return (
        '<div id="loader" class="fade-hide loader-container">'
        '<div class="loader-bg"></div><div class="loader"></div>'
        "</div>"
        f"<div {rendered}></div>"
    )


def render_embed_for_widget(
    widget: Widget,
    query: Iterable[tuple[str, str]] | Mapping[str, str],
    location_cookie: str | None = None,
    host: str | None = None,
) -> str:
    if not widget.stored_procedure or not widget.template_url:
        raise WidgetNotFoundError(f"Widget {widget.key} has no embed configuration")
    params = filter_params(query, widget.allowed_params or ())
    if CONGREGATION_PARAM in (widget.allowed_params or ()):
        apply_location_fallback(params, location_cookie)
    return render_widget_embed(
        container_id=widget.container_element_id,
        stored_procedure=widget.stored_procedure,
        params=params,
        template_url=widget.template_url,
        require_user=widget.requires_user,
        cache=widget.cache_data,
        host=host,
    )


def list_widgets(db: Session) -> list[Widget]:
    return (
        db.query(Widget)
        .options(selectinload(Widget.fields))
        .filter(Widget.is_active.is_(True))
        .order_by(Widget.sort_order, Widget.name)
        .all()
    )


def get_widget(db: Session, widget_id_or_key: str | int) -> Widget:
    value = str(widget_id_or_key).strip()
    if value.isdigit():
        widget = db.get(Widget, int(value))
    else:
        widget = db.query(Widget).filter(Widget.key == value).first()
    if widget is None:
        raise WidgetNotFoundError(f"Widget not found: {widget_id_or_key}")
    return widget


def get_url_parameters(db: Session, widget_id_or_key: str | int) -> list[WidgetUrlParameter]:
    widget = get_widget(db, widget_id_or_key)
    return (
        db.query(WidgetUrlParameter)
        .filter(WidgetUrlParameter.widget_id == widget.id)
        .order_by(WidgetUrlParameter.sort_order)
        .all()
    )


def get_field_options(db: Session, mp: MinistryPlatformProvider, field_key: str) -> list[dict[str, Any]]:
    """Select options for a widget field backed by an MP table."""

    field = db.query(WidgetField).filter(WidgetField.field_key == field_key).first()
    if field is None:
        raise WidgetFieldNotFoundError(f"Field not found: {field_key}")
    config = field.data_source_config or {}
    if field.data_source_type != "mp_table" or not config:
        return []

    value_field = config["valueField"]
    label_field = config["labelField"]
    records = mp.tables.get_records(
        config["table"],
        select=f"{value_field},{label_field}",
        filter=config.get("filter"),
        order_by=label_field,
    )
    logger.info("widget_field_options_loaded", extra={"field_key": field_key, "count": len(records)})
    return [{"value": str(record.get(value_field)), "label": record.get(label_field)} for record in records]
