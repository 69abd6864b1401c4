from __future__ import annotations

from collections import deque
from typing import Awaitable, Callable, Deque, List, Optional, Sequence

from loguru import logger

from .dispatch import OutputChannel
from .errors import CascadeConfigError
from .primes import nth_prime

Generate = Callable[[str], Awaitable[str]]

DEFAULT_MAX_BATCH_SIZE = 10

PROMPT_FRAME = (
    "You are an experiment in artificial consciousness. "
    "You will be asked to respond to variations of this prompt continuously. "
)
PROMPT_PREVIOUS = "When last you were run, your answer was: {last_output}\n\n"
PROMPT_EXPERIENCE = "Since the last run, you've experienced the following: {batch}\n\n"
PROMPT_INSTRUCTION = (
    "Produce a coherent understanding of your current state, your nature and the world "
    "around you based on the information here. Be succinct and limit your response to "
    "100 tokens or so."
)


def _positive_int(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise CascadeConfigError(f"{name} must be a positive integer, got {value!r}")
    return value


def build_prompt(last_output: Optional[str], batch: Sequence[str]) -> str:
    previous = PROMPT_PREVIOUS.format(last_output=last_output) if last_output else ""
    return PROMPT_FRAME + previous + PROMPT_EXPERIENCE.format(batch="\n".join(batch)) + PROMPT_INSTRUCTION


class Layer:
    """
    One node of the cascade.

    Stimuli accumulate in a FIFO queue. On beats divisible by the layer's tick
    frequency (the ``order``-th prime) the layer drains up to
    ``max_batch_size`` of them into a prompt, awaits the generative function,
    remembers the result and emits it on its output channel. An empty queue
    still generates.
    """

    def __init__(
        self,
        order: int,
        generate: Generate,
        *,
        channel: Optional[OutputChannel] = None,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
    ):
        self._order = _positive_int("order", order)
        self.max_batch_size = _positive_int("max_batch_size", max_batch_size)
        self._tick_frequency = nth_prime(self._order)
        self._generate = generate
        self.channel = channel or OutputChannel(0)
        self._queue: Deque[str] = deque()
        self._last_output: Optional[str] = None

    def __repr__(self) -> str:
        return f"Layer(order={self._order}, freq={self._tick_frequency}, pending={len(self._queue)})"

    @property
    def order(self) -> int:
        return self._order

    @property
    def tick_frequency(self) -> int:
        return self._tick_frequency

    @property
    def last_output(self) -> Optional[str]:
        return self._last_output

    @property
    def pending(self) -> int:
        return len(self._queue)

    def push(self, stimulus: str) -> None:
        self._queue.append(stimulus)

    def pop_batch(self) -> List[str]:
        batch: List[str] = []
        while self._queue and len(batch) < self.max_batch_size:
            batch.append(self._queue.popleft())
        return batch

    def should_tick(self, beat_count: int) -> bool:
        return beat_count % self._tick_frequency == 0

    def build_prompt(self, batch: Sequence[str]) -> str:
        return build_prompt(self._last_output, batch)

    async def tick(self, beat_count: int) -> Optional[str]:
        """
        Run one generation if ``beat_count`` qualifies; return the output or None.

        A failing generate propagates unchanged. The drained batch is gone at
        that point and ``last_output`` keeps its previous value.
        """
        if not self.should_tick(beat_count):
            return None

        batch = self.pop_batch()
        prompt = self.build_prompt(batch)
        logger.debug(f"[LAYER {self._order}] beat={beat_count} batch={len(batch)} pending={len(self._queue)}")

        output = await self._generate(prompt)

        self._last_output = output
        self.channel.emit(output)
        return output
