"""Server-Sent Events fan-out for webhook driven updates.

Each connected client owns an ``asyncio.Queue`` bound to the event loop that
accepted the connection. Webhook handlers run in the threadpool, so
:meth:`SSEBroadcaster.broadcast` hands messages to that loop with
``call_soon_threadsafe``. :meth:`SSEBroadcaster.stream` is an async generator
that emits a ``ping`` whenever the queue stays idle for the ping interval.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
import uuid
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from mpapps.core.config import settings

logger = logging.getLogger(__name__)

_CLOSED = object()


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def make_message(event_type: str, data: Any) -> dict[str, Any]:
    return {"type": event_type, "data": data, "timestamp": _timestamp()}


def format_sse(message: dict[str, Any]) -> str:
    return f"data: {json.dumps(message, default=str)}\n\n"


@dataclass
class SSEClient:
    id: str
    channels: set[str] = field(default_factory=set)
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    loop: asyncio.AbstractEventLoop | None = None

    def wants(self, channel: str | None) -> bool:
        return channel is None or not self.channels or channel in self.channels

    def deliver(self, message: Any) -> None:
        loop = self.loop
        if loop is None or loop.is_closed() or _running_loop() is loop:
            self.queue.put_nowait(message)
        else:
            loop.call_soon_threadsafe(self.queue.put_nowait, message)


class SSEBroadcaster:
    def __init__(self, ping_interval: float | None = None) -> None:
        self.ping_interval = ping_interval if ping_interval is not None else settings.SSE_PING_INTERVAL_SECONDS
        self._clients: dict[str, SSEClient] = {}
        self._lock = threading.Lock()

    def add_client(self, channels: Iterable[str] | None = None, client_id: str | None = None) -> SSEClient:
        client = SSEClient(
            id=client_id or uuid.uuid4().hex,
            channels={c for c in (channels or ()) if c},
            loop=_running_loop(),
        )
        with self._lock:
            self._clients[client.id] = client
            total = len(self._clients)
        logger.info(
            "sse_client_connected",
            extra={"client_id": client.id, "channels": sorted(client.channels), "total_clients": total},
        )
        client.deliver(make_message("connection-established", {"clientId": client.id, "channels": sorted(client.channels)}))
        return client

    def remove_client(self, client_id: str) -> None:
        with self._lock:
            client = self._clients.pop(client_id, None)
            total = len(self._clients)
        if client is None:
            return
        client.deliver(_CLOSED)
        logger.info("sse_client_disconnected", extra={"client_id": client_id, "total_clients": total})

    def broadcast(self, event_type: str, data: Any, channel: str | None = None) -> int:
        message = make_message(event_type, data)
        with self._lock:
            targets = [client for client in self._clients.values() if client.wants(channel)]
        for client in targets:
            client.deliver(message)
        if targets:
            logger.info("sse_broadcast", extra={"event_type": event_type, "channel": channel, "recipients": len(targets)})
        return len(targets)

    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def stats(self) -> dict[str, Any]:
        channel_counts: dict[str, int] = {}
        with self._lock:
            clients = list(self._clients.values())
        for client in clients:
            for channel in client.channels:
                channel_counts[channel] = channel_counts.get(channel, 0) + 1
        return {"totalClients": len(clients), "channelCounts": channel_counts}

    async def stream(self, client: SSEClient) -> AsyncIterator[str]:
        try:
            while True:
                try:
                    message = await asyncio.wait_for(client.queue.get(), timeout=self.ping_interval)
                except asyncio.TimeoutError:
                    message = make_message("ping", {"time": _timestamp()})
                if message is _CLOSED:
                    break
                yield format_sse(message)
        finally:
            self.remove_client(client.id)


broadcaster = SSEBroadcaster()


def get_broadcaster() -> SSEBroadcaster:
    return broadcaster
