from __future__ import annotations

import asyncio
import json
import threading

from mpapps.webhooks.broadcaster import SSEBroadcaster, format_sse, make_message


def _drain(client) -> list[dict]:
    messages = []
    while not client.queue.empty():
        messages.append(client.queue.get_nowait())
    return messages


def test_format_sse_frames_json():
    frame = format_sse({"type": "ping", "data": {}, "timestamp": "t"})
    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    assert json.loads(frame[len("data: ") :]) == {"type": "ping", "data": {}, "timestamp": "t"}


def test_connection_established_is_first_message():
    broadcaster = SSEBroadcaster(ping_interval=1)
    client = broadcaster.add_client(["counter"], client_id="c1")

    (message,) = _drain(client)

    assert message["type"] == "connection-established"
    assert message["data"] == {"clientId": "c1", "channels": ["counter"]}


def test_broadcast_respects_channel_subscriptions():
    broadcaster = SSEBroadcaster(ping_interval=1)
    counter = broadcaster.add_client(["counter"])
    prayers = broadcaster.add_client(["prayers"])
    everything = broadcaster.add_client()
    for client in (counter, prayers, everything):
        _drain(client)

    assert broadcaster.broadcast("event-metric-updated", {"value": 3}, channel="counter") == 2
    assert broadcaster.broadcast("notice", {"text": "all"}) == 3

    assert [m["type"] for m in _drain(counter)] == ["event-metric-updated", "notice"]
    assert [m["type"] for m in _drain(prayers)] == ["notice"]
    assert [m["type"] for m in _drain(everything)] == ["event-metric-updated", "notice"]


def test_stats_counts_channels():
    broadcaster = SSEBroadcaster(ping_interval=1)
    broadcaster.add_client(["counter", "prayers"])
    broadcaster.add_client(["counter"])
    broadcaster.add_client()

    assert broadcaster.stats() == {"totalClients": 3, "channelCounts": {"counter": 2, "prayers": 1}}


def _frame(text: str) -> dict:
    return json.loads(text[len("data: ") :])


def test_stream_yields_messages_pings_and_cleans_up():
    broadcaster = SSEBroadcaster(ping_interval=0.01)
    client = broadcaster.add_client(["counter"])
    broadcaster.broadcast("event-metric-created", {"recordId": 1}, channel="counter")

    async def read_three() -> list[dict]:
        stream = broadcaster.stream(client)
        frames = [_frame(await anext(stream)) for _ in range(3)]
        await stream.aclose()
        return frames

    frames = asyncio.run(read_three())

    assert [frame["type"] for frame in frames] == ["connection-established", "event-metric-created", "ping"]
    assert "time" in frames[2]["data"]
    assert broadcaster.client_count() == 0


def test_remove_client_ends_stream():
    broadcaster = SSEBroadcaster(ping_interval=5)
    client = broadcaster.add_client()
    _drain(client)
    broadcaster.remove_client(client.id)

    async def collect() -> list[str]:
        return [frame async for frame in broadcaster.stream(client)]

    assert asyncio.run(collect()) == []
    assert broadcaster.broadcast("notice", {}) == 0


def test_broadcast_from_worker_thread_reaches_loop_bound_client():
    broadcaster = SSEBroadcaster(ping_interval=5)

    async def listen() -> list[dict]:
        client = broadcaster.add_client(["counter"])
        assert client.loop is asyncio.get_running_loop()
        worker = threading.Thread(
            target=broadcaster.broadcast,
            args=("event-metric-updated", {"value": 9}),
            kwargs={"channel": "counter"},
        )
        worker.start()
        stream = broadcaster.stream(client)
        frames = [_frame(await anext(stream)) for _ in range(2)]
        await stream.aclose()
        worker.join()
        return frames

    frames = asyncio.run(listen())

    assert [frame["type"] for frame in frames] == ["connection-established", "event-metric-updated"]
    assert frames[1]["data"] == {"value": 9}


def test_make_message_shape():
    message = make_message("ping", {"time": "now"})
    assert set(message) == {"type", "data", "timestamp"}
