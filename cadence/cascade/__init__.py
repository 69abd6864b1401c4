from .adapter import OutputStream, StampedOutput, StimulusAdapter
from .chain import DEFAULT_ORDERS, Chain
from .dispatch import DispatchTable, OutputChannel, Subscription
from .errors import BeatError, CascadeConfigError, CascadeError
from .heart import Heart
from .layer import Layer, build_prompt
from .primes import is_prime, nth_prime
from .scheduler import CascadeScheduler

__all__ = [
    "BeatError",
    "CascadeConfigError",
    "CascadeError",
    "CascadeScheduler",
    "Chain",
    "DEFAULT_ORDERS",
    "DispatchTable",
    "Heart",
    "Layer",
    "OutputChannel",
    "OutputStream",
    "StampedOutput",
    "StimulusAdapter",
    "Subscription",
    "build_prompt",
    "is_prime",
    "nth_prime",
]
