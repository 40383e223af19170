"""Language model capability consumed by the decoder.

Scores are natural-log probabilities. States are opaque to the decoder but
must be hashable and comparable for equality, since hypotheses are merged on
them and LM calls are memoised by (state, word).
"""
from __future__ import annotations

import abc
from typing import Hashable

LMState = Hashable


class LanguageModel(abc.ABC):
    @abc.abstractmethod
    def initial_state(self) -> LMState:
        """State before any word has been scored (sentence start)."""

    @abc.abstractmethod
    def score(self, state: LMState, word: str) -> tuple[LMState, float]:
        """Score `word` after `state`; return the successor state and log-prob."""

    @abc.abstractmethod
    def end_of_sequence_score(self, state: LMState) -> float:
        """Log-prob of ending the sentence after `state`."""

    def close(self) -> None:
        """Release resources held by the model; a no-op for in-memory models."""


class ZeroLM(LanguageModel):
    """LM that assigns log-probability 0 to everything.

    Useful to exercise the LM code path (word bonus included) without a model.
    """

    def initial_state(self) -> LMState:
        return ()

    def score(self, state: LMState, word: str) -> tuple[LMState, float]:
        return (), 0.0

    def end_of_sequence_score(self, state: LMState) -> float:
        return 0.0
