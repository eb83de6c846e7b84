"""Cutting one chunk into randomly sized pieces."""

import math
import random
from typing import List, Union

from fuzzstream.errors import require

BytesLike = Union[bytes, bytearray, memoryview]


def split_chunk(chunk: BytesLike, p_zero: float, rng: random.Random) -> List[bytes]:
    """
    Divide a chunk into pieces whose concatenation is the original.

    Each cut picks a length uniformly in ``[1, remaining]``. With probability
    ``p_zero`` a cut instead yields an empty piece and consumes nothing.

    Args:
        chunk: Data to divide
        p_zero: Probability of an empty piece per cut, in ``[0, 1)``
        rng: Random source

    Returns:
        Non-empty list of pieces; ``[b""]`` for empty input
    """
    require(0 <= p_zero < 1, "p_zero must be in [0, 1)", component="splitter", p_zero=p_zero)

    data = memoryview(chunk).tobytes()
    if len(data) == 0:
        return [b""]

    pieces: List[bytes] = []
    offset = 0
    while offset < len(data):
        remaining = len(data) - offset
        if rng.random() < p_zero:
            length = 0
        else:
            length = 1 + math.floor(rng.random() * remaining)
        pieces.append(data[offset:offset + length])
        offset += length

    return pieces
