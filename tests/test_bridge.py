"""Tests for the delivery bridge over an in-process channel."""

import asyncio
import logging

import pytest

from interaction_svc.collector.bridge import (
    Channel,
    DeliveryBridge,
    HttpChannel,
    LocalChannel,
    ZmqChannel,
    create_channel,
)
from interaction_svc.collector.errors import TransportError, ValidationError
from interaction_svc.collector.protocol import CountResponse, FlushResponse, PingResponse


class BrokenChannel(Channel):
    """Channel whose transport always fails."""

    async def request(self, message):
        raise ConnectionRefusedError("collector not running")


class CannedChannel(Channel):
    """Channel replying with a fixed response."""

    def __init__(self, response):
        self.response = response
        self.requests = []

    async def request(self, message):
        self.requests.append(message)
        return self.response


@pytest.fixture
def bridge(collector) -> DeliveryBridge:
    return DeliveryBridge(channel=LocalChannel(handler=collector.handle))


class TestTypedHelpers:
    @pytest.mark.asyncio
    async def test_ping(self, bridge):
        response = await bridge.ping()
        assert isinstance(response, PingResponse)
        assert response.ok and response.pong

    @pytest.mark.asyncio
    async def test_enqueue_count_flush(self, bridge):
        await bridge.enqueue({"tag": "[ClickLogger]", "n": 1})
        await bridge.enqueue({"tag": "[ClickLogger]", "n": 2})

        count = await bridge.get_pending_count()
        assert isinstance(count, CountResponse)
        assert count.count == 2

        flushed = await bridge.flush_queue()
        assert isinstance(flushed, FlushResponse)
        assert flushed.flushed == 2
        assert [item["n"] for item in flushed.sample] == [1, 2]

        assert (await bridge.get_pending_count()).count == 0

    @pytest.mark.asyncio
    async def test_clear(self, bridge):
        await bridge.enqueue({"n": 1})
        assert (await bridge.clear_queue()).cleared
        assert (await bridge.get_pending_count()).count == 0

    @pytest.mark.asyncio
    async def test_stats(self, bridge):
        await bridge.ping()
        await bridge.ping()
        assert bridge.stats == {"sent": 2, "failed": 0}


class TestErrors:
    @pytest.mark.asyncio
    async def test_unknown_type_is_not_a_transport_error(self, bridge):
        # Raw send returns the rejection as data
        response = await bridge.send({"type": "NOPE"})
        assert response == {"ok": False, "error": "unknown_type"}

    @pytest.mark.asyncio
    async def test_rejection_raises_validation_error(self):
        bridge = DeliveryBridge(channel=CannedChannel({"ok": False, "error": "invalid_message"}))

        with pytest.raises(ValidationError) as exc_info:
            await bridge.ping()

        assert exc_info.value.error == "invalid_message"
        assert exc_info.value.response["ok"] is False

    @pytest.mark.asyncio
    async def test_malformed_response_raises_validation_error(self):
        bridge = DeliveryBridge(channel=CannedChannel({"ok": True}))

        with pytest.raises(ValidationError) as exc_info:
            await bridge.get_pending_count()

        assert exc_info.value.error == "malformed_response"

    @pytest.mark.asyncio
    async def test_transport_failure_is_wrapped(self):
        bridge = DeliveryBridge(channel=BrokenChannel())

        with pytest.raises(TransportError) as exc_info:
            await bridge.ping()

        assert isinstance(exc_info.value.cause, ConnectionRefusedError)
        assert bridge.stats["failed"] == 1

    @pytest.mark.asyncio
    async def test_unserializable_message_is_a_transport_error(self, bridge):
        with pytest.raises(TransportError):
            await bridge.send({"type": "ENQUEUE", "payload": {"bad": object()}})

    @pytest.mark.asyncio
    async def test_send_nowait_logs_failure(self, caplog):
        bridge = DeliveryBridge(channel=BrokenChannel())

        with caplog.at_level(logging.WARNING, logger="interaction_svc.collector.bridge"):
            task = bridge.send_nowait({"type": "PING"})
            await asyncio.gather(task, return_exceptions=True)
            await asyncio.sleep(0)

        assert "Delivery to collector failed" in caplog.text

    @pytest.mark.asyncio
    async def test_send_nowait_delivers(self, bridge, collector):
        task = bridge.send_nowait({"type": "ENQUEUE", "payload": {"n": 1}})
        assert await task == {"ok": True, "queued": True}
        assert await collector.queue.count() == 1


class TestCreateChannel:
    def test_zmq(self):
        channel = create_channel("zmq", endpoint="tcp://127.0.0.1:6000")
        assert isinstance(channel, ZmqChannel)
        assert channel.endpoint == "tcp://127.0.0.1:6000"

    def test_http(self):
        channel = create_channel("http", base_url="http://collector:8060")
        assert isinstance(channel, HttpChannel)

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_channel("carrier-pigeon")
