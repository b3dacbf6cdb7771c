from __future__ import annotations

import logging

from mpapps.webhooks.events import WebhookContext, WebhookEvent

logger = logging.getLogger(__name__)

CHANNEL = "counter"
EVENT_METRIC_COLUMNS = (
    "Event_Metrics.Event_Metric_ID,Event_Metrics.Event_ID,Event_Metrics.Metric_ID,"
    "Event_Metrics.Numerical_Value,Event_Metrics.Group_ID,Metric_ID_Table.Metric_Title"
)


def handle_event_metrics_change(event: WebhookEvent, context: WebhookContext) -> None:
    """Push an ``event-metric-*`` message to counter subscribers."""

    event_type = f"event-metric-{event.action}d"
    if event.action == "delete":
        # The row is gone by the time the webhook arrives.
        context.broadcaster.broadcast(event_type, {"recordId": event.record_id}, channel=CHANNEL)
        return

    metric = context.mp.tables.get_record("Event_Metrics", event.record_id, select=EVENT_METRIC_COLUMNS)
    if metric is None:
        logger.warning("event_metric_not_found", extra={"record_id": event.record_id})
        return

    context.broadcaster.broadcast(
        event_type,
        {
            "eventId": metric.get("Event_ID"),
            "metricId": metric.get("Metric_ID"),
            "metricName": metric.get("Metric_Title") or "Unknown",
            "value": metric.get("Numerical_Value"),
            "groupId": metric.get("Group_ID"),
            "recordId": event.record_id,
        },
        channel=CHANNEL,
    )
