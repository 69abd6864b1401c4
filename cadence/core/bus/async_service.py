# cadence/core/bus/async_service.py
from __future__ import annotations

from typing import AsyncIterator, Optional

from redis import asyncio as aioredis

from .bus_schemas import BaseEnvelope
from .codec import CadenceCodec, DecodeResult


class CadenceBusAsync:
    """
    Redis pub/sub carrying cadence envelopes.

    A disabled bus drops publishes and refuses to listen, so the witness runs
    standalone without Redis.
    """

    def __init__(self, url: str, *, enabled: bool = True, codec: Optional[CadenceCodec] = None):
        self.url = url
        self.enabled = enabled
        self.codec = codec or CadenceCodec()
        self._redis: Optional[aioredis.Redis] = None

    async def connect(self) -> None:
        if not self.enabled or self._redis is not None:
            return
        self._redis = aioredis.from_url(self.url, decode_responses=False)
        await self._redis.ping()

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    def _client(self) -> aioredis.Redis:
        if self._redis is None:
            raise RuntimeError("CadenceBusAsync not connected. Call await connect().")
        return self._redis

    async def publish(self, channel: str, env: BaseEnvelope) -> None:
        if not self.enabled:
            return
        await self._client().publish(channel, self.codec.encode(env))

    async def listen(self, channel: str) -> AsyncIterator[DecodeResult]:
        """
        Subscribe to one channel and yield every data message decoded.

        Decode failures are yielded too (``ok=False``); connection errors
        propagate to the caller, which decides whether to resubscribe.
        """
        if not self.enabled:
            raise RuntimeError("Bus disabled")
        pubsub = self._client().pubsub()
        await pubsub.subscribe(channel)
        try:
            async for msg in pubsub.listen():
                if msg.get("type") != "message" or msg.get("data") is None:
                    continue
                yield self.codec.decode(msg["data"])
        finally:
            try:
                await pubsub.unsubscribe(channel)
            finally:
                await pubsub.aclose()
