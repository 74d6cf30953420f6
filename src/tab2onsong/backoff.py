"""Exponential backoff with jitter, kept free of I/O.

The n-th retry (1-based) waits::

    base  = min(initial * multiplier ** (n - 1), max_interval)
    delay = uniform(base * (1 - factor), base * (1 + factor))

With the defaults that is roughly 1s, 1.5s, 2.25s, 3.4s, 5.1s, 7.6s (each
±50%), six retries at most, and the sender additionally stops once the next
wait would overrun the 60s budget.
"""

import random
from collections.abc import Callable, Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class BackoffPolicy:
    initial_interval: float = 1.0
    multiplier: float = 1.5
    max_interval: float = 16.0  # cap on the un-jittered interval
    randomization_factor: float = 0.5
    max_retries: int = 6
    max_elapsed: float = 60.0  # wall-clock budget for the whole sequence, seconds


def base_interval(retry: int, policy: BackoffPolicy) -> float:
    """Un-jittered interval before the *retry*-th retry."""
    if retry < 1:
        raise ValueError(f"retry numbers start at 1, got {retry}")
    interval = policy.initial_interval * policy.multiplier ** (retry - 1)
    return min(interval, policy.max_interval)


def compute_delay(
    retry: int,
    policy: BackoffPolicy,
    rand: Callable[[], float] = random.random,
) -> float:
    """Return the jittered delay, in seconds, before the *retry*-th retry.

    *rand* must return a float in ``[0, 1)``; pass a constant to make the
    curve deterministic.
    """
    interval = base_interval(retry, policy)
    delta = policy.randomization_factor * interval
    return interval - delta + rand() * (2 * delta)


def retry_delays(
    policy: BackoffPolicy,
    rand: Callable[[], float] = random.random,
) -> Iterator[float]:
    """Yield the delay before each allowed retry, ``max_retries`` values in total."""
    for retry in range(1, policy.max_retries + 1):
        yield compute_delay(retry, policy, rand)
