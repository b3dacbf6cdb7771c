from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, validator


def _iso(value: date | datetime | None) -> Optional[str]:
    return value.isoformat() if value is not None else None


class ProjectIn(BaseModel):
    project_title: str = Field(..., min_length=1, max_length=100)
    project_coordinator: int
    project_start: datetime
    project_end: Optional[datetime] = None
    project_group: Optional[int] = None
    project_approved: bool = False

    @validator("project_title")
    def strip_title(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Project title cannot be blank")
        return cleaned

    @validator("project_end")
    def end_after_start(cls, value: Optional[datetime], values: dict) -> Optional[datetime]:
        start = values.get("project_start")
        if value is None or start is None or (value.tzinfo is None) != (start.tzinfo is None):
            return value
        if value < start:
            raise ValueError("Project end cannot be before the project start")
        return value

    def to_record(self) -> dict[str, Any]:
        return {
            "Project_Title": self.project_title,
            "Project_Coordinator": self.project_coordinator,
            "Project_Start": _iso(self.project_start),
            "Project_End": _iso(self.project_end),
            "Project_Group": self.project_group,
            "Project_Approved": self.project_approved,
        }


class ProjectUpdate(BaseModel):
    project_title: Optional[str] = Field(None, min_length=1, max_length=100)
    project_coordinator: Optional[int] = None
    project_start: Optional[datetime] = None
    project_end: Optional[datetime] = None
    project_group: Optional[int] = None
    project_approved: Optional[bool] = None

    def to_record(self) -> dict[str, Any]:
        data = self.model_dump(exclude_unset=True)
        mapping = {
            "project_title": "Project_Title",
            "project_coordinator": "Project_Coordinator",
            "project_start": "Project_Start",
            "project_end": "Project_End",
            "project_group": "Project_Group",
            "project_approved": "Project_Approved",
        }
        record: dict[str, Any] = {}
        for key, value in data.items():
            record[mapping[key]] = _iso(value) if isinstance(value, (date, datetime)) else value
        return record


class BudgetIn(BaseModel):
    project_category_type_id: int
    budget_name: str = Field(..., min_length=1, max_length=50)
    budget_amount: float = Field(..., ge=0)

    def to_record(self) -> dict[str, Any]:
        return {
            "Project_Category_Type_ID": self.project_category_type_id,
            "Budget_Name": self.budget_name,
            "Budget_Amount": self.budget_amount,
        }


class ExpenseIn(BaseModel):
    project_budget_id: int
    expense_title: str = Field(..., min_length=1, max_length=150)
    paid_to: str = Field(..., min_length=1, max_length=50)
    expense_date: date
    expense_amount: float = Field(..., gt=0)
    event_id: Optional[int] = None
    expense_approved: bool = False

    def to_record(self, requested_by: int | None) -> dict[str, Any]:
        return {
            "Project_Budget_ID": self.project_budget_id,
            "Expense_Title": self.expense_title,
            "Requested_By": requested_by,
            "Paid_To": self.paid_to,
            "Expense_Date": _iso(self.expense_date),
            "Expense_Amount": self.expense_amount,
            "Event_ID": self.event_id,
            "Expense_Approved": self.expense_approved,
        }
