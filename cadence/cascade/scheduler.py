from __future__ import annotations

import asyncio

from loguru import logger

from .chain import Chain
from .errors import BeatError


class CascadeScheduler:
    """
    Owns the beat counter and drives one beat at a time through the chain.

    A beat visits layers tail to head, so every slower layer has ticked (and
    pushed its feedback upstream) before the faster layer above it drains its
    queue on the same beat. Output travelling the other way is only seen by
    the slower layer on a later beat.
    """

    def __init__(self, chain: Chain):
        self.chain = chain
        self._beat_count = 0
        self._lock = asyncio.Lock()

    @property
    def beat_count(self) -> int:
        return self._beat_count

    async def advance_beat(self) -> int:
        """
        Advance the counter and run one full cascade; return the new count.

        Raises BeatError if a layer's generation fails. The counter is not
        rolled back, so the caller can treat the beat as skipped.
        """
        async with self._lock:
            self._beat_count += 1
            beat = self._beat_count

            for index in range(len(self.chain) - 1, -1, -1):
                layer = self.chain[index]
                try:
                    output = await layer.tick(beat)
                except Exception as e:
                    raise BeatError(beat, layer.order, e) from e
                if output is not None:
                    logger.info(f"[BEAT {beat}] layer order={layer.order} emitted {len(output)} chars")

            return beat
