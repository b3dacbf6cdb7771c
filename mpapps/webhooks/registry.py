"""Maps MinistryPlatform tables to the handlers that react to their changes."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from mpapps.webhooks.events import WebhookContext, WebhookEvent, WebhookHandler
from mpapps.webhooks.handlers.counter import handle_event_metrics_change
from mpapps.webhooks.handlers.prayers import handle_prayer_change

logger = logging.getLogger(__name__)

WEBHOOK_HANDLERS: dict[str, list[WebhookHandler]] = {
    "Event_Metrics": [handle_event_metrics_change],
    "Feedback_Entries": [handle_prayer_change],
}


@dataclass
class DispatchResult:
    executed: int = 0
    failed: int = 0


def get_handlers(table: str) -> list[WebhookHandler]:
    return WEBHOOK_HANDLERS.get(table, [])


def handler_counts() -> dict[str, int]:
    return {table: len(handlers) for table, handlers in WEBHOOK_HANDLERS.items()}


def dispatch(event: WebhookEvent, context: WebhookContext) -> DispatchResult:
    """Run every handler for the event's table; one failing handler does not stop the rest."""

    handlers = get_handlers(event.table)
    result = DispatchResult()
    if not handlers:
        logger.info("webhook_no_handlers", extra={"table": event.table, "record_id": event.record_id})
        return result

    for handler in handlers:
        try:
            handler(event, context)
        except Exception:
            result.failed += 1
            logger.exception(
                "webhook_handler_failed",
                extra={"table": event.table, "record_id": event.record_id, "handler": handler.__name__},
            )
        else:
            result.executed += 1

    logger.info(
        "webhook_dispatched",
        extra={
            "table": event.table,
            "record_id": event.record_id,
            "action": event.action,
            "executed": result.executed,
            "failed": result.failed,
        },
    )
    return result
