"""Tests for the collector message protocol."""

import pytest

from conftest import FailingStore

from interaction_svc.collector.queue import QueueStore
from interaction_svc.collector.service import CollectorService


class TestCollectorService:
    @pytest.mark.asyncio
    async def test_ping(self, collector):
        response = await collector.handle({"type": "PING"})
        assert response["ok"] is True
        assert response["pong"] is True
        assert isinstance(response["ts"], int)

    @pytest.mark.asyncio
    async def test_enqueue_and_count(self, collector):
        assert await collector.handle({"type": "ENQUEUE", "payload": {"tag": "[ClickLogger]"}}) == {
            "ok": True,
            "queued": True,
        }
        assert await collector.handle({"type": "GET_PENDING_COUNT"}) == {"ok": True, "count": 1}

    @pytest.mark.asyncio
    async def test_enqueue_stamps_items(self, collector, queue):
        await collector.handle({"type": "ENQUEUE", "payload": {"n": 1}})
        result = await queue.flush()
        assert result.batch[0].payload == {"n": 1}
        assert result.batch[0].enqueued_at > 0

    @pytest.mark.asyncio
    async def test_flush_empty(self, collector):
        response = await collector.handle({"type": "FLUSH_QUEUE"})
        assert response == {"ok": True, "flushed": 0, "sample": []}

    @pytest.mark.asyncio
    async def test_flush_returns_first_20(self, collector):
        for n in range(25):
            await collector.handle({"type": "ENQUEUE", "payload": {"n": n}})

        response = await collector.handle({"type": "FLUSH_QUEUE"})

        assert response["ok"] is True
        assert response["flushed"] == 25
        assert [item["n"] for item in response["sample"]] == list(range(20))
        assert all("_ts" in item for item in response["sample"])
        assert await collector.handle({"type": "GET_PENDING_COUNT"}) == {"ok": True, "count": 0}

    @pytest.mark.asyncio
    async def test_clear(self, collector):
        await collector.handle({"type": "ENQUEUE", "payload": {}})
        assert await collector.handle({"type": "CLEAR_QUEUE"}) == {"ok": True, "cleared": True}
        assert (await collector.handle({"type": "GET_PENDING_COUNT"}))["count"] == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", [None, "PING", [], {}, {"type": 42}])
    async def test_invalid_message(self, collector, message):
        assert await collector.handle(message) == {"ok": False, "error": "invalid_message"}

    @pytest.mark.asyncio
    async def test_unknown_type(self, collector):
        assert await collector.handle({"type": "DELETE_EVERYTHING"}) == {
            "ok": False,
            "error": "unknown_type",
        }
        assert collector.stats["rejected"] == 1

    @pytest.mark.asyncio
    async def test_store_failure_becomes_error_response(self):
        collector = CollectorService(queue=QueueStore(store=FailingStore()))

        response = await collector.handle({"type": "GET_PENDING_COUNT"})

        assert response["ok"] is False
        assert "disk unavailable" in response["error"]
        assert collector.stats["errors"] == 1
