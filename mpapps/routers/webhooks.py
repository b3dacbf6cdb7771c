from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, status

from mpapps.core.config import settings
from mpapps.ministry_platform.provider import MinistryPlatformProvider, get_provider
from mpapps.schemas.webhooks import WebhookHealth, WebhookPayload, WebhookResult
from mpapps.webhooks import registry
from mpapps.webhooks.broadcaster import SSEBroadcaster, get_broadcaster
from mpapps.webhooks.events import WebhookContext, WebhookEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def verify_webhook_secret(x_mp_webhook_secret: str | None = Header(default=None)) -> None:
    expected = settings.MP_WEBHOOK_SECRET
    if not expected:
        logger.error("webhook_secret_missing")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Webhook secret not configured")
    if not x_mp_webhook_secret or not hmac.compare_digest(x_mp_webhook_secret.encode(), expected.encode()):
        logger.warning("webhook_secret_invalid")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.post("/mp", response_model=WebhookResult, dependencies=[Depends(verify_webhook_secret)])
def receive_webhook(
    payload: WebhookPayload,
    mp: MinistryPlatformProvider = Depends(get_provider),
    broadcaster: SSEBroadcaster = Depends(get_broadcaster),
) -> WebhookResult:
    if not payload.table or not payload.record_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields: table, recordId")

    event = WebhookEvent(table=payload.table, record_id=payload.record_id, action=payload.action)
    if payload.timestamp:
        event.timestamp = payload.timestamp
    logger.info("webhook_received", extra={"table": event.table, "record_id": event.record_id, "action": event.action})

    result = registry.dispatch(event, WebhookContext(mp=mp, broadcaster=broadcaster))
    return WebhookResult(
        success=True,
        table=event.table,
        recordId=event.record_id,
        handlersExecuted=result.executed,
        handlersFailed=result.failed,
    )


@router.get("/mp", response_model=WebhookHealth)
def webhook_health() -> WebhookHealth:
    counts = registry.handler_counts()
    return WebhookHealth(
        status="ok",
        endpoint="/webhooks/mp",
        registeredTables=list(counts),
        handlerCounts=counts,
    )
