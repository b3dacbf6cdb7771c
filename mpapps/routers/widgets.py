from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from mpapps.auth.deps import CurrentUser, get_current_user
from mpapps.core.config import settings
from mpapps.core.db import get_db
from mpapps.ministry_platform.provider import MinistryPlatformProvider, get_provider
from mpapps.schemas.widgets import FieldOption, WidgetOut, WidgetUrlParameterOut
from mpapps.services import widgets as widgets_service

router = APIRouter(prefix="/widgets", tags=["widgets"])


@router.get("", response_model=list[WidgetOut])
def list_widgets(
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(get_current_user),
) -> list[WidgetOut]:
    return [WidgetOut.model_validate(widget) for widget in widgets_service.list_widgets(db)]


@router.get("/field-data/{field_key}", response_model=list[FieldOption])
def field_data(
    field_key: str,
    db: Session = Depends(get_db),
    mp: MinistryPlatformProvider = Depends(get_provider),
    _: CurrentUser = Depends(get_current_user),
) -> list[FieldOption]:
    try:
        options = widgets_service.get_field_options(db, mp, field_key)
    except widgets_service.WidgetFieldNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Field not found") from exc
    return [FieldOption(**option) for option in options]


@router.get("/{widget_id_or_key}/url-parameters", response_model=list[WidgetUrlParameterOut])
def url_parameters(widget_id_or_key: str, db: Session = Depends(get_db)) -> list[WidgetUrlParameterOut]:
    try:
        parameters = widgets_service.get_url_parameters(db, widget_id_or_key)
    except widgets_service.WidgetNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Widget not found") from exc
    return [WidgetUrlParameterOut.model_validate(parameter) for parameter in parameters]


@router.get("/{widget_key}/embed", response_class=HTMLResponse)
def widget_embed(
    widget_key: str,
    request: Request,
    host: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    try:
        widget = widgets_service.get_widget(db, widget_key)
        markup = widgets_service.render_embed_for_widget(
            widget,
            request.query_params.multi_items(),
            request.cookies.get(settings.LOCATION_COOKIE_NAME),
            host=host,
        )
    except widgets_service.WidgetNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Widget not found") from exc
    return HTMLResponse(markup)
