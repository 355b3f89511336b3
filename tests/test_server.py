"""
HTTP surface tests: intake, trigger, health and metrics endpoints.
"""

import pytest
from aiohttp import test_utils

from findvax_notify.pipeline import NotificationPipeline
from findvax_notify.server import create_app

from .fakes import ALICE, L1, FakeSender, FakeSource, availability, location


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
async def client(store, metrics, sender):
    pipeline = NotificationPipeline(
        source=FakeSource([location(L1, "Fenway")], [availability(L1, 3)]),
        store=store,
        sender=sender,
        metrics=metrics,
    )
    app = create_app(store, pipeline, metrics)
    async with test_utils.TestClient(test_utils.TestServer(app)) as c:
        yield c


async def test_subscribe_then_trigger(client, store, sender):
    resp = await client.put(
        "/subscriptions", json={"location": L1, "sms": "555-123-0000", "lang": "en"}
    )
    assert resp.status == 200
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    assert await store.count_pending(L1) == 1

    resp = await client.post("/trigger", json={"responsePayload": {"state": "ma"}})
    assert resp.status == 200
    assert sender.recipients() == [ALICE]
    assert await store.count_pending() == 0


async def test_subscribe_validation_error(client):
    resp = await client.put("/subscriptions", data="")
    assert resp.status == 400
    assert (await resp.json()) == {"message": "Missing request body!"}


async def test_preflight(client):
    resp = await client.options("/subscriptions")
    assert resp.status == 200
    assert resp.headers["Access-Control-Allow-Methods"] == "OPTIONS,PUT"


async def test_trigger_is_never_routed_to_intake(client, store):
    resp = await client.post(
        "/trigger",
        json={"httpMethod": "PUT", "body": '{"location": "x"}', "responsePayload": {"state": "none"}},
    )
    assert resp.status == 200
    assert await store.count_pending() == 0


async def test_trigger_rejects_non_json(client):
    resp = await client.post("/trigger", data="state=ma")
    assert resp.status == 400


async def test_health(client, store):
    await store.put(L1, ALICE, "en")
    resp = await client.get("/health")
    assert resp.status == 200
    body = await resp.json()
    assert body["status"] == "healthy"
    assert body["pending_subscriptions"] == 1


async def test_metrics(client):
    await client.post("/trigger", json={"responsePayload": {"state": "ma"}})
    resp = await client.get("/metrics")
    assert resp.status == 200
    text = await resp.text()
    assert "notify_pipeline_runs_total 1" in text


async def test_subscribe_undecodable_body_is_400_with_cors(client, store):
    resp = await client.put("/subscriptions", data=b"\xff\xfe{bad")
    assert resp.status == 400
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    assert "not JSON" in (await resp.json())["message"]
    assert await store.count_pending() == 0


async def test_trigger_undecodable_body_is_400_with_cors(client, sender):
    resp = await client.post(
        "/trigger",
        data=b"\xff\xfe{bad",
        headers={"Content-Type": "application/json; charset=utf-8"},
    )
    assert resp.status == 400
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    assert sender.sent == []


async def test_metrics_exported_before_first_run(client):
    resp = await client.get("/metrics")
    text = await resp.text()
    assert "notify_pipeline_runs_total 0" in text
    assert "notify_messages_sent_total 0" in text
