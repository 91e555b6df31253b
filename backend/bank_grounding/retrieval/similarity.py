"""Vector similarity scoring."""

from __future__ import annotations

import math
from typing import Sequence

from bank_grounding.core.errors import DimensionMismatch


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine of the angle between ``a`` and ``b``.

    Vectors of different lengths raise :class:`DimensionMismatch` and
    vectors holding NaN or infinite components raise ``ValueError``. A zero
    vector scores 0 against everything, itself included.
    """
    if len(a) != len(b):
        raise DimensionMismatch(expected=len(a), actual=len(b))
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        if not (math.isfinite(x) and math.isfinite(y)):
            raise ValueError("embedding components must be finite numbers")
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0 or norm_b == 0:
        return 0.0
    score = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    if math.isnan(score):
        # squares of huge finite components overflow to inf
        raise ValueError("embedding magnitude overflows a float")
    # rounding can push parallel vectors a hair past 1
    return max(-1.0, min(1.0, score))


__all__ = ["cosine_similarity"]
