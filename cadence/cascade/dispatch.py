from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

from .errors import CascadeConfigError

OutputCallback = Callable[[str], None]
Deliver = Callable[[int, str], None]


@dataclass(frozen=True, eq=False)
class Subscription:
    channel_index: int
    callback: OutputCallback
    label: str = ""


class OutputChannel:
    """
    Broadcast point for one layer's outputs.

    Subscribers are plain callables held in an ordered list and called
    synchronously on ``emit``. A subscriber that raises aborts the emit and the
    exception reaches whoever emitted.
    """

    def __init__(self, index: int):
        self.index = index
        self._subs: List[Subscription] = []

    def subscribe(self, callback: OutputCallback, *, label: str = "") -> Subscription:
        sub = Subscription(channel_index=self.index, callback=callback, label=label)
        self._subs.append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        try:
            self._subs.remove(sub)
        except ValueError:
            pass

    @property
    def subscriptions(self) -> Tuple[Subscription, ...]:
        return tuple(self._subs)

    def emit(self, output: str) -> None:
        # snapshot so a callback may unsubscribe itself mid-emit
        for sub in list(self._subs):
            sub.callback(output)


class DispatchTable:
    """
    One output channel per layer index, plus the adjacency table of the
    feedback links registered between them.
    """

    def __init__(self, size: int):
        if size < 1:
            raise CascadeConfigError("dispatch table needs at least one channel")
        self._channels = [OutputChannel(i) for i in range(size)]
        self._adjacency: Dict[int, List[int]] = {i: [] for i in range(size)}
        self._links: List[Tuple[int, int]] = []

    def __len__(self) -> int:
        return len(self._channels)

    def channel(self, index: int) -> OutputChannel:
        return self._channels[index]

    def link(self, a: int, b: int, deliver: Deliver) -> None:
        """Register symmetric feedback: a's output is delivered to b and b's to a."""
        if a == b:
            raise CascadeConfigError(f"cannot link channel {a} to itself")
        for idx in (a, b):
            if not 0 <= idx < len(self._channels):
                raise CascadeConfigError(f"channel index {idx} out of range")
        if (a, b) in self._links or (b, a) in self._links:
            raise CascadeConfigError(f"channels {a} and {b} are already linked")

        self._channels[a].subscribe(lambda out, target=b: deliver(target, out), label=f"feedback:{a}->{b}")
        self._channels[b].subscribe(lambda out, target=a: deliver(target, out), label=f"feedback:{b}->{a}")
        self._adjacency[a].append(b)
        self._adjacency[b].append(a)
        self._links.append((a, b))

    def neighbours(self, index: int) -> List[int]:
        return list(self._adjacency[index])

    @property
    def adjacency(self) -> List[Tuple[int, int]]:
        return list(self._links)
