from __future__ import annotations

from typing import Any, Iterable

import numpy as np

from ctclib.data.vocab import Vocabulary
from ctclib.decoding.beam import DecoderOutput, validate_log_probs


def ctc_collapse(ids: Iterable[int], blank_id: int) -> list[int]:
    out: list[int] = []
    prev = None
    for i in ids:
        if i == blank_id:
            prev = i
            continue
        if prev is not None and i == prev:
            continue
        out.append(int(i))
        prev = i
    return out


def greedy_decode(log_probs: Any, vocab: Vocabulary) -> DecoderOutput:
    """Best-path CTC decode: per-frame argmax, then collapse.

    Args:
      log_probs: (T, V) or (1, T, V)
    """
    x = validate_log_probs(log_probs, vocab)
    if x.shape[0] == 0:
        return DecoderOutput(tokens=[], score=0.0, am_score=0.0)
    pred = x.argmax(axis=-1)
    score = float(x[np.arange(x.shape[0]), pred].sum())
    return DecoderOutput(
        tokens=ctc_collapse(pred.tolist(), blank_id=vocab.blank_id),
        score=score,
        am_score=score,
    )


def greedy_decode_text(log_probs: Any, vocab: Vocabulary) -> str:
    return greedy_decode(log_probs, vocab).text(vocab)
