from __future__ import annotations

import json
import logging
import threading
import time
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from stream_hub.config import HubConfig
from stream_hub.web.events import Broadcaster
from stream_hub.web.main import create_app


@pytest.fixture()
def hub() -> Broadcaster:
    return Broadcaster()


@pytest.fixture()
def client(hub: Broadcaster) -> Iterator[TestClient]:
    cfg = HubConfig(demo_streams=[], log_stream="", demo_interval_secs=30)
    app = create_app(cfg, broadcaster=hub)
    with TestClient(app) as c:
        yield c


def test_broadcast_to_stream(client: TestClient, hub: Broadcaster) -> None:
    sub = hub.subscribe("orders")
    resp = client.post(
        "/events/broadcast",
        json={"stream_id": "orders", "type": "created", "message": "order 7", "data": {"id": 7}},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Event broadcasted to stream: orders"
    assert body["data"] == {"delivered": 1}

    (ev,) = sub.drain()
    assert (ev.type, ev.message, ev.data, ev.stream_id) == ("created", "order 7", {"id": 7}, "orders")


def test_broadcast_without_stream_goes_everywhere(client: TestClient, hub: Broadcaster) -> None:
    a = hub.subscribe("logs")
    b = hub.subscribe("metrics")
    resp = client.post("/events/broadcast", json={"type": "ping", "message": "hi"})
    assert resp.status_code == 200
    assert resp.json()["message"] == "Event broadcasted to all streams"
    assert [e.type for e in a.drain()] == ["ping"]
    assert [e.stream_id for e in b.drain()] == [None]


@pytest.mark.parametrize(
    "payload",
    [
        {"message": "no type"},
        {"type": "t"},
        {"type": "", "message": ""},
    ],
)
def test_broadcast_requires_type_and_message(client: TestClient, payload: dict) -> None:
    resp = client.post("/events/broadcast", json=payload)
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "BAD_REQUEST"


def test_broadcast_rejects_malformed_body(client: TestClient) -> None:
    resp = client.post("/events/broadcast", json={"type": "t", "message": "m", "data": [1, 2]})
    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Invalid request body"
    assert body["error"]["details"]["errors"]


def test_list_streams(client: TestClient, hub: Broadcaster) -> None:
    hub.subscribe("a")
    hub.subscribe("a")
    hub.subscribe("b")
    body = client.get("/events/streams").json()
    assert body["data"] == {
        "streams": {"a": {"clients": 2, "active": True}, "b": {"clients": 1, "active": True}},
        "total_clients": 3,
        "stream_count": 2,
    }


def test_generator_start_restart_stop(client: TestClient) -> None:
    resp = client.post("/events/stream/ticker/start")
    assert resp.status_code == 201
    assert resp.json()["message"] == "Stream 'ticker' created and started"

    resp = client.post("/events/stream/ticker/start")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Stream 'ticker' restarted"

    health = client.get("/health").json()["data"]
    assert health["generators"] == {"ticker": True}

    resp = client.post("/events/stream/ticker/stop")
    assert resp.status_code == 200

    resp = client.post("/events/stream/ticker/stop")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


def test_health(client: TestClient, hub: Broadcaster) -> None:
    hub.subscribe("x")
    data = client.get("/health").json()["data"]
    assert data["streams"] == 1
    assert data["subscribers"] == 1
    assert data["uptime_sec"] >= 0


def test_dashboard_lists_streams(client: TestClient, hub: Broadcaster) -> None:
    hub.subscribe("dashboard-stream")
    resp = client.get("/")
    assert resp.status_code == 200
    assert "text/html" in resp.headers["content-type"]
    assert "dashboard-stream" in resp.text


def test_shutdown_releases_subscribers(hub: Broadcaster) -> None:
    cfg = HubConfig(demo_streams=["demo-a"], log_stream="", demo_interval_secs=30)
    app = create_app(cfg, broadcaster=hub)
    with TestClient(app) as c:
        assert c.get("/health").json()["data"]["generators"] == {"demo-a": True}
        sub = hub.subscribe("demo-a")
    assert sub.closed
    assert hub.total_subscribers() == 0
    assert app.state.generators.statuses() == {}


def test_stream_endpoint_serves_sse_frames(client: TestClient, hub: Broadcaster) -> None:
    # TestClient returns only once the body is complete, so a side thread
    # publishes and then ends the stream from the hub's side.
    def producer() -> None:
        deadline = time.monotonic() + 5
        while not hub.is_stream_active("orders") and time.monotonic() < deadline:
            time.sleep(0.01)
        (sub,) = hub.stream_subscribers("orders")
        hub.publish("orders", "created", "order 7", {"id": 7})
        while sub.pending and time.monotonic() < deadline:
            time.sleep(0.01)
        hub.unsubscribe(sub.id)

    t = threading.Thread(target=producer, daemon=True)
    t.start()
    with client.stream("GET", "/events/stream/orders") as resp:
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert resp.headers["cache-control"] == "no-cache"
        body = resp.read().decode("utf-8")
    t.join(5)

    frames = [json.loads(chunk[len("data: "):]) for chunk in body.split("\n\n") if chunk]
    assert [f["type"] for f in frames] == ["connection", "created"]
    assert frames[1]["data"] == {"id": 7}
    assert frames[1]["stream_id"] == "orders"
    assert hub.total_subscribers() == 0


def test_lifespan_applies_log_level_and_mirrors_records(hub: Broadcaster) -> None:
    root = logging.getLogger()
    saved = root.level
    root.setLevel(logging.WARNING)
    try:
        cfg = HubConfig(demo_streams=[], log_stream="logs", log_level="DEBUG")
        with TestClient(create_app(cfg, broadcaster=hub)):
            assert root.level == logging.DEBUG
            sub = hub.subscribe("logs")
            logging.getLogger("stream_hub.tests.web").info("order %d shipped", 7)
            mirrored = [e for e in sub.drain() if e.data and e.data.get("logger") == "stream_hub.tests.web"]
            assert [(e.type, e.message) for e in mirrored] == [("info", "order 7 shipped")]
        assert root.level == logging.WARNING
    finally:
        root.setLevel(saved)
