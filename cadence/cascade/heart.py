from __future__ import annotations

from typing import Sequence

from loguru import logger

from .adapter import OutputStream, StampedOutput, StimulusAdapter
from .chain import DEFAULT_ORDERS, Chain
from .dispatch import OutputCallback, Subscription
from .layer import DEFAULT_MAX_BATCH_SIZE, Generate
from .scheduler import CascadeScheduler


class Heart:
    """
    A chain of layers plus the scheduler that beats it and the adapter that
    feeds it. Every layer shares the same generative function.
    """

    def __init__(
        self,
        generate: Generate,
        *,
        orders: Sequence[int] = DEFAULT_ORDERS,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
    ):
        self.chain = Chain(orders, generate, max_batch_size=max_batch_size)
        self.scheduler = CascadeScheduler(self.chain)
        self.adapter = StimulusAdapter(self.chain)

    @property
    def beat_count(self) -> int:
        return self.scheduler.beat_count

    def feel(self, sensation: str) -> None:
        logger.debug(f"Feeling sensation: {sensation}")
        self.adapter.feel(sensation)

    async def beat(self) -> int:
        return await self.scheduler.advance_beat()

    def subscribe(self, callback: OutputCallback, *, label: str = "") -> Subscription:
        return self.adapter.subscribe(callback, label=label)

    def unsubscribe(self, sub: Subscription) -> None:
        self.adapter.unsubscribe(sub)

    def stream(self) -> OutputStream:
        return self.adapter.stream()

    def stamped_stream(self) -> OutputStream:
        """Head outputs as ``StampedOutput(beat, output)``, stamped with the beat that emitted them."""
        return OutputStream(self.adapter.outputs, wrap=lambda output: StampedOutput(self.beat_count, output))
