"""Perplexity of text under a language model.

Uses the same `score` / `end_of_sequence_score` calls as decoding, so the
numbers are comparable with the LM part of decoder scores.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from ctclib.lm.base import LanguageModel


@dataclass(frozen=True)
class SentenceScore:
    log_prob: float
    num_words: int

    @property
    def perplexity(self) -> float:
        if self.num_words == 0:
            return float("nan")
        return math.exp(-self.log_prob / self.num_words)


def _words(text: str | Sequence[str]) -> list[str]:
    return text.split() if isinstance(text, str) else list(text)


def sentence_score(lm: LanguageModel, words: str | Sequence[str], *, eos: bool = True) -> SentenceScore:
    """Total natural-log probability of `words` from sentence start.

    With `eos` the end-of-sentence event is scored and counted as a word.
    """
    state = lm.initial_state()
    total = 0.0
    n = 0
    for w in _words(words):
        state, lp = lm.score(state, w)
        total += lp
        n += 1
    if eos:
        total += lm.end_of_sequence_score(state)
        n += 1
    return SentenceScore(log_prob=total, num_words=n)


def perplexity(lm: LanguageModel, words: str | Sequence[str], *, eos: bool = True) -> float:
    """exp of the negative mean per-word log-probability."""
    return sentence_score(lm, words, eos=eos).perplexity


def corpus_perplexity(lm: LanguageModel, sentences: Iterable[str | Sequence[str]], *, eos: bool = True) -> float:
    """Perplexity over several sentences, pooling words across them."""
    total = 0.0
    n = 0
    for s in sentences:
        sc = sentence_score(lm, s, eos=eos)
        total += sc.log_prob
        n += sc.num_words
    return SentenceScore(log_prob=total, num_words=n).perplexity
