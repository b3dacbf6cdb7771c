from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class WebhookPayload(BaseModel):
    table: Optional[str] = None
    record_id: Optional[int] = Field(None, alias="recordId")
    action: Literal["create", "update", "delete"] = "update"
    timestamp: Optional[str] = None


class WebhookResult(BaseModel):
    success: bool
    table: str
    recordId: int
    handlersExecuted: int
    handlersFailed: int


class WebhookHealth(BaseModel):
    status: str
    endpoint: str
    registeredTables: list[str]
    handlerCounts: dict[str, int]
