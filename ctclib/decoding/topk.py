"""Partial top-K selection over candidate scores."""
from __future__ import annotations

from typing import Sequence

import numpy as np

from ctclib.errors import InvalidConfiguration


def select_top_k(scores: Sequence[float] | np.ndarray, k: int) -> np.ndarray:
    """Indices of the `k` highest scores, best first.

    Uses partial selection (introselect) to isolate the k-th largest value,
    so only the selected entries are ever sorted. Equal scores keep insertion
    order: among ties the earlier index wins both the cut and the ranking.
    """
    if k <= 0:
        raise InvalidConfiguration(f"k must be positive; got {k}")
    s = np.asarray(scores, dtype=np.float64)
    n = s.shape[0]
    if n == 0:
        return np.empty(0, dtype=np.intp)
    if k >= n:
        return np.argsort(-s, kind="stable")

    part = np.argpartition(-s, k - 1)
    kth = s[part[k - 1]]
    above = np.flatnonzero(s > kth)
    ties = np.flatnonzero(s == kth)[: k - above.size]
    chosen = np.concatenate([above, ties])
    chosen.sort()
    return chosen[np.argsort(-s[chosen], kind="stable")]
