from __future__ import annotations

from typing import Any

import numpy as np
import torch


def as_numpy(x: Any) -> np.ndarray:
    """View a tensor, array or nested sequence as a NumPy array."""
    if isinstance(x, torch.Tensor):
        return x.detach().cpu().numpy()
    return np.asarray(x)


def to_log_probs(x: Any, *, log_softmax: bool = False) -> np.ndarray:
    """Convert classifier output to a float32 (T, V) log-probability matrix.

    With `log_softmax=True` the input is treated as raw logits and normalized
    over the label axis.
    """
    t = x if isinstance(x, torch.Tensor) else torch.as_tensor(np.asarray(x))
    t = t.detach().cpu().float()
    if t.dim() == 3 and t.shape[0] == 1:
        t = t.squeeze(0)
    if log_softmax:
        t = torch.log_softmax(t, dim=-1)
    return t.numpy()


def split_batch(logits: Any, lengths: Any, *, time_major: bool = True) -> list[np.ndarray]:
    """Split padded batch output into one (T_b, V) matrix per sequence.

    Args:
      logits: (T, B, V) when time_major, else (B, T, V)
      lengths: valid frame count per sequence
    """
    x = as_numpy(logits)
    if not time_major:
        x = np.transpose(x, (1, 0, 2))
    lens = as_numpy(lengths).reshape(-1)
    if lens.shape[0] != x.shape[1]:
        raise ValueError(f"Got {lens.shape[0]} lengths for a batch of {x.shape[1]}")
    return [np.ascontiguousarray(x[: int(T), b, :]) for b, T in enumerate(lens)]
