from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field, validator

ApprovalStatus = Literal["Approved", "Rejected", "Pending"]


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: Literal["expense", "revenue"]
    budgeted_amount: float = Field(0, ge=0)

    @validator("name")
    def strip_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Name cannot be blank")
        return cleaned


class CategoryUpdate(BaseModel):
    budgeted_amount: float = Field(..., ge=0)


class LineItemIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    vendor: Optional[str] = Field(None, max_length=255)
    estimated_amount: float = Field(0, ge=0)
    description: Optional[str] = None
    status: str = "pending"


class LineItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    vendor: Optional[str] = Field(None, max_length=255)
    estimated_amount: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    status: Optional[str] = None


class LineItemApproval(BaseModel):
    status: ApprovalStatus

    @validator("status", pre=True)
    def normalize_status(cls, value):
        return value.strip().capitalize() if isinstance(value, str) else value


class IncomeLineItemIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    expected_amount: float = Field(0, ge=0)
    description: Optional[str] = None


class PurchaseRequestIn(BaseModel):
    line_item_id: int
    amount: float = Field(..., gt=0)
    description: Optional[str] = None
    vendor_name: Optional[str] = Field(None, max_length=255)


class PurchaseRequestDecision(BaseModel):
    approval_status: ApprovalStatus
    rejection_reason: Optional[str] = None


class PurchaseRequestTransactionIn(BaseModel):
    amount: float = Field(..., gt=0)
    transaction_date: date
    description: Optional[str] = None
    payment_method_id: Optional[int] = None
    vendor_name: Optional[str] = Field(None, max_length=255)


class TransactionIn(BaseModel):
    transaction_date: date
    transaction_type: Literal["Expense", "Income"]
    amount: float
    line_item_id: Optional[int] = None
    payee_name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    payment_method_id: Optional[int] = None
    payment_reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class TransactionUpdate(BaseModel):
    transaction_date: Optional[date] = None
    transaction_type: Optional[Literal["Expense", "Income"]] = None
    amount: Optional[float] = None
    line_item_id: Optional[int] = None
    payee_name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    payment_method_id: Optional[int] = None
    payment_reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
