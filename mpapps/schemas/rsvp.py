from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field, validator


class RsvpAnswer(BaseModel):
    question_id: int
    text_value: Optional[str] = None
    numeric_value: Optional[float] = None
    boolean_value: Optional[bool] = None
    date_value: Optional[str] = None

    def to_record(self) -> dict[str, Any]:
        record = {
            "Question_ID": self.question_id,
            "Text_Value": self.text_value,
            "Numeric_Value": self.numeric_value,
            "Boolean_Value": self.boolean_value,
            "Date_Value": self.date_value,
        }
        return {key: value for key, value in record.items() if value is not None}


class RsvpSubmission(BaseModel):
    event_id: int
    project_id: int
    contact_id: Optional[int] = None
    participant_id: Optional[int] = None
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email_address: EmailStr
    phone_number: Optional[str] = Field(None, max_length=25)
    answers: list[RsvpAnswer] = []

    @validator("first_name", "last_name")
    def strip_names(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Name cannot be blank")
        return cleaned

    def to_submission(self) -> dict[str, Any]:
        data = self.model_dump(exclude={"answers"})
        data["email_address"] = str(self.email_address)
        data["answers"] = [answer.to_record() for answer in self.answers]
        return data


class ConfirmationCardIn(BaseModel):
    project_id: int
    congregation_id: int


class ConfirmationCardBullet(BaseModel):
    icon: Optional[str] = None
    text: Optional[str] = None


class ConfirmationCardUpdate(BaseModel):
    title: Optional[str] = None
    bullets: Optional[list[ConfirmationCardBullet]] = None
