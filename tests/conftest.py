"""Shared fixtures: small vocabularies, frame builders and stub LMs."""
from __future__ import annotations

import math

import numpy as np
import pytest

from ctclib.data.vocab import Vocabulary
from ctclib.lm.base import LanguageModel


def frames(labels: list[int], vocab_size: int, hi: float = 0.9) -> np.ndarray:
    """Log-prob matrix where frame t puts probability `hi` on labels[t]."""
    lo = (1.0 - hi) / (vocab_size - 1)
    x = np.full((len(labels), vocab_size), math.log(lo))
    for t, c in enumerate(labels):
        x[t, c] = math.log(hi)
    return x


def random_log_probs(seed: int, frames_: int, vocab_size: int) -> np.ndarray:
    rng = np.random.default_rng(seed)
    logits = rng.normal(size=(frames_, vocab_size)) * 2.0
    logits -= logits.max(axis=-1, keepdims=True)
    return logits - np.log(np.exp(logits).sum(axis=-1, keepdims=True))


class DictLM(LanguageModel):
    """Unigram LM over a fixed table; state is the last scored word."""

    def __init__(self, table: dict[str, float], *, default: float = -10.0, eos: float = -0.5):
        self.table = table
        self.default = default
        self.eos = eos
        self.calls: list[tuple[object, str]] = []

    def initial_state(self):
        return "<s>"

    def score(self, state, word):
        self.calls.append((state, word))
        return word, self.table.get(word, self.default)

    def end_of_sequence_score(self, state):
        return self.eos


class FailingLM(DictLM):
    def score(self, state, word):
        raise RuntimeError("native model out of memory")


@pytest.fixture
def ab_vocab() -> Vocabulary:
    return Vocabulary(["<blank>", "a", "b"], blank_id=0)


@pytest.fixture
def word_vocab() -> Vocabulary:
    return Vocabulary(["<blank>", "|", "a", "b"], blank_id=0, word_boundary="|")
