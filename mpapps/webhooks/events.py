from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Callable, Literal

from mpapps.ministry_platform.provider import MinistryPlatformProvider
from mpapps.webhooks.broadcaster import SSEBroadcaster

WebhookAction = Literal["create", "update", "delete"]


@dataclass
class WebhookEvent:
    table: str
    record_id: int
    action: WebhookAction = "update"
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())


@dataclass
class WebhookContext:
    mp: MinistryPlatformProvider
    broadcaster: SSEBroadcaster


WebhookHandler = Callable[[WebhookEvent, WebhookContext], None]
