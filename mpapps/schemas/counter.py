from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class EventMetricIn(BaseModel):
    event_id: int
    metric_id: int
    numerical_value: float = Field(..., ge=0)
    group_id: Optional[int] = None

    def to_record(self) -> dict[str, Any]:
        return {
            "Event_ID": self.event_id,
            "Metric_ID": self.metric_id,
            "Numerical_Value": self.numerical_value,
            "Group_ID": self.group_id,
        }


class EventMetricUpdate(BaseModel):
    numerical_value: float = Field(..., ge=0)
    metric_id: Optional[int] = None
    group_id: Optional[int] = None

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {"Numerical_Value": self.numerical_value}
        if self.metric_id is not None:
            record["Metric_ID"] = self.metric_id
        if self.group_id is not None:
            record["Group_ID"] = self.group_id
        return record
