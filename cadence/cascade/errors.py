from __future__ import annotations

from typing import Optional


class CascadeError(Exception):
    """Base class for cascade failures."""


class CascadeConfigError(CascadeError, ValueError):
    """Malformed chain or layer configuration, raised at construction time."""


class BeatError(CascadeError, RuntimeError):
    """
    A beat aborted because one layer's generation failed.

    The original exception is chained as ``__cause__``.
    """

    def __init__(self, beat_count: int, order: Optional[int], cause: BaseException):
        self.beat_count = beat_count
        self.order = order
        super().__init__(f"beat {beat_count} failed at layer order={order}: {cause!r}")
