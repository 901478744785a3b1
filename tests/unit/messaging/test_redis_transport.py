"""
Unit tests for the Redis Streams telemetry transport.

Uses fakeredis for realistic stream behavior.
"""
import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import fakeredis
import fakeredis.aioredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from reservoir_monitor.domain.exceptions import LinkError
from reservoir_monitor.infrastructure.messaging.redis_streams import (
    RedisStreamTransport,
    publish_payload,
)
from reservoir_monitor.telemetry.link import LinkStatus, TelemetryLink

from ...factories import PayloadFactory

STREAM = "telemetry:readings"


@pytest.fixture
def server():
    return fakeredis.FakeServer()


@pytest.fixture
def client_factory(server):
    def factory():
        return fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)
    return factory


@pytest.fixture
def transport(client_factory):
    return RedisStreamTransport(
        "redis://fake",
        STREAM,
        block_ms=None,
        start_id="0",
        idle_sleep=0.01,
        client_factory=client_factory,
    )


class TestPublish:
    """Test writing payloads to the stream."""

    @pytest.mark.asyncio
    async def test_publish_payload(self, fake_redis):
        """Test a payload is stored as one JSON document."""
        payload = PayloadFactory()

        message_id = await publish_payload(fake_redis, STREAM, payload)

        entries = await fake_redis.xrange(STREAM)
        assert entries[0][0] == message_id
        assert json.loads(entries[0][1]["data"]) == payload


class TestRedisStreamTransport:
    """Test following the stream."""

    @pytest.mark.asyncio
    async def test_reads_published_entries(self, transport, client_factory):
        """Test entries are yielded in order and the position advances."""
        publisher = client_factory()
        first, second = PayloadFactory(), PayloadFactory()
        await publish_payload(publisher, STREAM, first)
        last_id = await publish_payload(publisher, STREAM, second)

        await transport.connect()
        messages = transport.messages()
        received = [await messages.__anext__(), await messages.__anext__()]
        await transport.close()
        await messages.aclose()

        assert [json.loads(m) for m in received] == [first, second]
        assert transport.last_id == last_id

    @pytest.mark.asyncio
    async def test_resumes_after_reconnect(self, transport, client_factory):
        """Test a reconnect continues after the last entry seen."""
        publisher = client_factory()
        await publish_payload(publisher, STREAM, PayloadFactory(sensorId="old"))

        await transport.connect()
        messages = transport.messages()
        await messages.__anext__()
        await transport.close()
        await messages.aclose()

        await publish_payload(publisher, STREAM, PayloadFactory(sensorId="new"))
        await transport.connect()
        messages = transport.messages()
        received = json.loads(await messages.__anext__())
        await transport.close()
        await messages.aclose()

        assert received["sensorId"] == "new"

    @pytest.mark.asyncio
    async def test_plain_fields_are_passed_as_mapping(self, transport, client_factory):
        """Test entries written without the data field are yielded as dicts."""
        publisher = client_factory()
        await publisher.xadd(STREAM, {"siteId": "site-1", "distance": "120"})

        await transport.connect()
        messages = transport.messages()
        received = await messages.__anext__()
        await transport.close()
        await messages.aclose()

        assert received == {"siteId": "site-1", "distance": "120"}

    @pytest.mark.asyncio
    async def test_connect_failure(self):
        """Test an unreachable server is reported as LinkError."""
        client = MagicMock()
        client.ping = AsyncMock(side_effect=RedisConnectionError("connection refused"))
        client.aclose = AsyncMock()
        transport = RedisStreamTransport(
            "redis://unreachable", STREAM, client_factory=lambda: client
        )

        with pytest.raises(LinkError):
            await transport.connect()
        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_feeds_telemetry_link(self, transport, client_factory):
        """Test the link parses stream entries into readings."""
        link = TelemetryLink(transport)
        received = []
        link.subscribe("site-1", received.append)

        await link.start()
        for _ in range(100):
            if link.status == LinkStatus.CONNECTED:
                break
            await asyncio.sleep(0.01)
        await publish_payload(client_factory(), STREAM, PayloadFactory(distance=120.0))
        for _ in range(100):
            if received:
                break
            await asyncio.sleep(0.01)
        await link.stop(timeout=1.0)

        assert len(received) == 1
        assert received[0].value == 120.0
        assert received[0].unit == "cm"
