from __future__ import annotations

from typing import Iterator, List, Optional, Sequence, Tuple

from loguru import logger

from .dispatch import DispatchTable, OutputChannel
from .errors import CascadeConfigError
from .layer import DEFAULT_MAX_BATCH_SIZE, Generate, Layer

DEFAULT_ORDERS: Tuple[int, ...] = (1, 3, 9, 27)


class Chain:
    """
    Fixed, index-addressed sequence of layers. Index 0 is the head (fastest
    for increasing orders); index ``len - 1`` is the tail and has no
    downstream.

    Each adjacent pair is cross-wired through the dispatch table so that a
    layer's output lands in the queues of its immediate neighbours only.
    Layers hold no reference to each other.
    """

    def __init__(
        self,
        orders: Sequence[int],
        generate: Generate,
        *,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
    ):
        orders = list(orders)
        if not orders:
            raise CascadeConfigError("a chain needs at least one layer order")

        self.dispatch = DispatchTable(len(orders))

        # tail first: every layer exists before the one upstream of it
        built: List[Layer] = []
        for index in range(len(orders) - 1, -1, -1):
            built.append(
                Layer(
                    orders[index],
                    generate,
                    channel=self.dispatch.channel(index),
                    max_batch_size=max_batch_size,
                )
            )
        self._layers: Tuple[Layer, ...] = tuple(reversed(built))

        for index in range(len(self._layers) - 1):
            self.dispatch.link(index, index + 1, self._deliver)

        logger.info(
            f"Chain built orders={[layer.order for layer in self._layers]} "
            f"frequencies={[layer.tick_frequency for layer in self._layers]}"
        )

    def _deliver(self, index: int, output: str) -> None:
        self._layers[index].push(output)

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[Layer]:
        return iter(self._layers)

    def __getitem__(self, index: int) -> Layer:
        return self._layers[index]

    @property
    def layers(self) -> Tuple[Layer, ...]:
        return self._layers

    @property
    def head(self) -> Layer:
        return self._layers[0]

    @property
    def tail(self) -> Layer:
        return self._layers[-1]

    def downstream(self, index: int) -> Optional[Layer]:
        if index + 1 < len(self._layers):
            return self._layers[index + 1]
        return None

    def upstream(self, index: int) -> Optional[Layer]:
        if index > 0:
            return self._layers[index - 1]
        return None

    def channel(self, index: int) -> OutputChannel:
        return self.dispatch.channel(index)
