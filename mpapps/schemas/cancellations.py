from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, validator


class CancellationBase(BaseModel):
    congregation_id: int
    status_id: int
    reason: Optional[str] = None
    expected_resume_time: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None

    @validator("end_date")
    def end_after_start(cls, value: Optional[datetime], values: dict) -> Optional[datetime]:
        start = values.get("start_date")
        if value is None or start is None or (value.tzinfo is None) != (start.tzinfo is None):
            return value
        if value < start:
            raise ValueError("End date cannot be before the start date")
        return value


class CancellationCreate(CancellationBase):
    pass


class CancellationUpdate(CancellationBase):
    pass


class ServiceCreate(BaseModel):
    service_name: str = Field(..., min_length=1, max_length=255)
    service_status: str = Field(..., min_length=1, max_length=50)
    details: Optional[str] = None
    sort_order: int = 0


class UpdateCreate(BaseModel):
    message: str = Field(..., min_length=1)


class LabelUpdate(BaseModel):
    english: str
