from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class WidgetFieldOut(BaseModel):
    id: int
    field_key: str
    label: str
    field_type: str
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    default_value: Optional[str] = None
    options: Optional[Any] = None
    is_required: bool
    sort_order: int
    data_source_type: Optional[str] = None
    data_param_mapping: Optional[str] = None

    class Config:
        from_attributes = True


class WidgetOut(BaseModel):
    id: int
    name: str
    key: str
    description: Optional[str] = None
    script_url: str
    container_element_id: str
    global_name: Optional[str] = None
    preview_url: Optional[str] = None
    requires_user: bool
    sort_order: int
    fields: list[WidgetFieldOut] = []

    class Config:
        from_attributes = True


class WidgetUrlParameterOut(BaseModel):
    id: int
    widget_id: int
    parameter_key: str
    description: Optional[str] = None
    example_value: Optional[str] = None
    is_required: bool
    sort_order: int

    class Config:
        from_attributes = True


class FieldOption(BaseModel):
    value: str
    label: Optional[Any] = None
