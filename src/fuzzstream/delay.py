"""Randomized propagation delays drawn from a discrete distribution."""

import math
import random
from typing import Optional, Sequence

from fuzzstream.config import DEFAULT_DELAY_DISTRIBUTION, DelayRange
from fuzzstream.errors import require

_default_rng = random.Random()


def choose_delay_range(distribution: Sequence[DelayRange], rng: random.Random) -> int:
    """
    Pick which entry of the distribution a draw falls into.

    Entries are walked in order, accumulating their probability mass. An entry
    without ``p`` stops the walk and catches all remaining mass, as does the
    last entry.

    Args:
        distribution: Ordered delay ranges
        rng: Random source

    Returns:
        Index of the selected entry
    """
    require(len(distribution) > 0, "delay distribution is empty", component="delay")

    r = rng.random()
    cumulative = 0.0
    i = 0
    while i < len(distribution) - 1:
        if distribution[i].p is None:
            break
        cumulative += distribution[i].p
        if r < cumulative:
            break
        i += 1

    return i


def sample_delay(
    distribution: Sequence[DelayRange] = DEFAULT_DELAY_DISTRIBUTION,
    rng: Optional[random.Random] = None,
) -> int:
    """
    Draw one delay in milliseconds.

    Args:
        distribution: Ordered delay ranges
        rng: Random source (module-level ``random`` if omitted)

    Returns:
        Integer delay in ``[min_ms, max_ms)`` of the chosen entry, or ``min_ms``
        when both bounds are equal
    """
    rng = rng or _default_rng
    entry = distribution[choose_delay_range(distribution, rng)]
    return entry.min_ms + math.floor(rng.random() * (entry.max_ms - entry.min_ms))
