"""
Redis Streams transport for the telemetry link.

The sensor gateway appends readings to a stream, one JSON document per
entry in the `data` field. The transport follows the stream with XREAD
and resumes after the last entry it saw when it reconnects.
"""
import asyncio
import json
import logging
from typing import Any, AsyncIterator, Callable, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from ...domain.exceptions import LinkError
from ...telemetry.transport import TelemetryTransport

logger = logging.getLogger(__name__)


async def publish_payload(
    client: redis.Redis,
    stream: str,
    payload: Dict[str, Any],
    max_len: Optional[int] = None,
) -> str:
    """
    Append a telemetry payload to a stream.

    Returns:
        Generated message ID
    """
    fields = {"data": json.dumps(payload, default=str)}
    return await client.xadd(stream, fields, maxlen=max_len, approximate=True)


class RedisStreamTransport(TelemetryTransport):
    """
    Follows one Redis stream.

    Connection problems are raised as LinkError; the link decides when
    to reconnect.
    """

    def __init__(
        self,
        url: str,
        stream: str,
        block_ms: Optional[int] = 5000,
        count: int = 100,
        start_id: str = "$",
        idle_sleep: float = 0.1,
        client_factory: Optional[Callable[[], redis.Redis]] = None,
    ):
        """
        Initialize the transport.

        Args:
            url: Redis URL.
            stream: Stream key to follow.
            block_ms: XREAD block time, None to poll without blocking.
            count: Maximum entries per read.
            start_id: Where to start on the first connect ("$" for new entries only).
            idle_sleep: Pause between empty polls when not blocking.
            client_factory: Creates the Redis client, defaults to redis.from_url.
        """
        self.url = url
        self.stream = stream
        self.block_ms = block_ms
        self.count = count
        self.idle_sleep = idle_sleep
        self._client_factory = client_factory or self._default_client
        self._client: Optional[redis.Redis] = None
        self._last_id = start_id
        self._closed = True

    @property
    def description(self) -> str:
        return f"redis stream {self.stream}"

    @property
    def last_id(self) -> str:
        return self._last_id

    def _default_client(self) -> redis.Redis:
        return redis.from_url(
            self.url,
            encoding="utf-8",
            decode_responses=True,
        )

    async def connect(self) -> None:
        """Open the Redis connection."""
        client = self._client_factory()
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            await client.aclose()
            raise LinkError(f"Cannot reach Redis at {self.url}: {e}", cause=e)
        self._client = client
        self._closed = False
        logger.info(f"Following {self.stream} from id {self._last_id}")

    async def messages(self) -> AsyncIterator[Any]:
        """Yield stream entries until closed."""
        while not self._closed and self._client is not None:
            try:
                response = await self._client.xread(
                    {self.stream: self._last_id},
                    count=self.count,
                    block=self.block_ms,
                )
            except (RedisError, OSError) as e:
                if self._closed:
                    return
                raise LinkError(f"Lost Redis stream {self.stream}: {e}", cause=e)

            if not response:
                if self.block_ms is None:
                    await asyncio.sleep(self.idle_sleep)
                continue

            for _stream, entries in response:
                for message_id, fields in entries:
                    self._last_id = message_id
                    yield self._decode(fields)

    @staticmethod
    def _decode(fields: Dict[str, Any]) -> Any:
        # Entries written by publish_payload carry one JSON document
        if "data" in fields and len(fields) == 1:
            return fields["data"]
        return dict(fields)

    async def close(self) -> None:
        """Close the Redis connection."""
        self._closed = True
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()
