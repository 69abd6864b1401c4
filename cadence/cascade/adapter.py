from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Callable, NamedTuple, Optional

from .chain import Chain
from .dispatch import OutputCallback, OutputChannel, Subscription

_CLOSED = object()


class StampedOutput(NamedTuple):
    beat: int
    output: str


class OutputStream:
    """
    Async iterator over head outputs, subscribed from construction until close().

    Buffers without bound; a consumer that never reads keeps every output.
    ``wrap`` runs inside the emit, so anything it reads is taken at emission
    time rather than when the consumer gets to the item.
    """

    def __init__(self, channel: OutputChannel, *, wrap: Optional[Callable[[str], Any]] = None):
        self._channel = channel
        self._wrap = wrap
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._sub: Optional[Subscription] = channel.subscribe(self._put, label="stream")

    def _put(self, output: str) -> None:
        self._queue.put_nowait(self._wrap(output) if self._wrap else output)

    def __aiter__(self) -> AsyncIterator[Any]:
        return self

    async def __anext__(self) -> Any:
        item = await self._queue.get()
        if item is _CLOSED:
            # leave the marker for any other waiter
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    def pending(self) -> int:
        n = self._queue.qsize()
        return n - 1 if self._sub is None else n

    def close(self) -> None:
        if self._sub is not None:
            self._channel.unsubscribe(self._sub)
            self._sub = None
            self._queue.put_nowait(_CLOSED)

    async def __aenter__(self) -> "OutputStream":
        return self

    async def __aexit__(self, *exc) -> None:
        self.close()


class StimulusAdapter:
    """
    Delivery point between the chain head and external collaborators:
    stimuli go in through ``feel``, head outputs come out through
    ``subscribe`` or ``stream``.
    """

    def __init__(self, chain: Chain):
        self._chain = chain

    @property
    def outputs(self) -> OutputChannel:
        return self._chain.channel(0)

    def feel(self, stimulus: str) -> None:
        self._chain.head.push(stimulus)

    def subscribe(self, callback: OutputCallback, *, label: str = "") -> Subscription:
        return self.outputs.subscribe(callback, label=label)

    def unsubscribe(self, sub: Subscription) -> None:
        self.outputs.unsubscribe(sub)

    def stream(self) -> OutputStream:
        return OutputStream(self.outputs)
