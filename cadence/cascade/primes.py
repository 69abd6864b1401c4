from __future__ import annotations

from typing import List

# grown on demand, never shrunk
_PRIMES: List[int] = [2, 3]


def is_prime(n: int) -> bool:
    if n < 2:
        return False
    i = 2
    while i * i <= n:
        if n % i == 0:
            return False
        i += 1
    return True


def nth_prime(n: int) -> int:
    """
    Return the n-th prime, 1-indexed (``nth_prime(1) == 2``).

    ``n < 1`` yields 1, which divides every beat.
    """
    if n < 1:
        return 1
    if n <= len(_PRIMES):
        return _PRIMES[n - 1]

    candidate = _PRIMES[-1] + 2
    while len(_PRIMES) < n:
        if is_prime(candidate):
            _PRIMES.append(candidate)
        candidate += 2
    return _PRIMES[n - 1]
