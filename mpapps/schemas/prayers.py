from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, validator


class PrayerCreate(BaseModel):
    description: str = Field(..., max_length=4000)
    title: Optional[str] = Field(None, max_length=255)
    feedback_type_id: Optional[int] = None
    ongoing: bool = False

    @validator("description")
    def require_description(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Description is required")
        return cleaned


class PrayedRequest(BaseModel):
    message: Optional[str] = Field(None, max_length=2000)


class PrayerStats(BaseModel):
    total_prayers: int
    day_streak: int
    today_count: int
