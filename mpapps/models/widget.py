from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from mpapps.core.db import Base


class Widget(Base):
    __tablename__ = "widgets"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    key = Column(String(50), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    script_url = Column(String(500), nullable=False)
    container_element_id = Column(String(100), nullable=False)
    global_name = Column(String(100), nullable=True)
    preview_url = Column(String(500), nullable=True)
    stored_procedure = Column(String(150), nullable=True)
    template_url = Column(String(500), nullable=True)
    allowed_params = Column(JSON, nullable=True)
    requires_user = Column(Boolean, nullable=False, default=False)
    cache_data = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    fields = relationship(
        "WidgetField",
        back_populates="widget",
        cascade="all, delete-orphan",
        order_by="WidgetField.sort_order",
    )
    url_parameters = relationship(
        "WidgetUrlParameter",
        back_populates="widget",
        cascade="all, delete-orphan",
        order_by="WidgetUrlParameter.sort_order",
    )


class WidgetField(Base):
    __tablename__ = "widget_fields"

    id = Column(Integer, primary_key=True)
    widget_id = Column(Integer, ForeignKey("widgets.id", ondelete="CASCADE"), nullable=False, index=True)
    field_key = Column(String(50), nullable=False, index=True)
    label = Column(String(100), nullable=False)
    field_type = Column(String(20), nullable=False)
    placeholder = Column(String(255), nullable=True)
    help_text = Column(Text, nullable=True)
    default_value = Column(Text, nullable=True)
    options = Column(JSON, nullable=True)
    is_required = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)
    data_source_type = Column(String(20), nullable=True)
    data_source_config = Column(JSON, nullable=True)
    data_param_mapping = Column(String(100), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    widget = relationship("Widget", back_populates="fields")


class WidgetUrlParameter(Base):
    __tablename__ = "widget_url_parameters"

    id = Column(Integer, primary_key=True)
    widget_id = Column(Integer, ForeignKey("widgets.id", ondelete="CASCADE"), nullable=False, index=True)
    parameter_key = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    example_value = Column(String(255), nullable=True)
    is_required = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    widget = relationship("Widget", back_populates="url_parameters")
