from __future__ import annotations

import logging

from mpapps.services.prayers import PRAYER_TABLE, get_prayer
from mpapps.webhooks.events import WebhookContext, WebhookEvent

logger = logging.getLogger(__name__)

CHANNEL = "prayers"


def handle_prayer_change(event: WebhookEvent, context: WebhookContext) -> None:
    if event.action == "delete":
        context.broadcaster.broadcast("prayer-deleted", {"recordId": event.record_id}, channel=CHANNEL)
        return

    prayer = get_prayer(context.mp, event.record_id)
    if prayer is None:
        logger.warning("prayer_not_found", extra={"table": PRAYER_TABLE, "record_id": event.record_id})
        return
    # Pending requests stay private until a staff member approves them.
    if not prayer.get("Approved"):
        return

    context.broadcaster.broadcast(
        f"prayer-{event.action}d",
        {
            "prayerId": prayer.get("Feedback_Entry_ID"),
            "title": prayer.get("Entry_Title"),
            "ongoing": bool(prayer.get("Ongoing_Need")),
            "recordId": event.record_id,
        },
        channel=CHANNEL,
    )
