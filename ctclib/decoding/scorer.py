"""CTC transition scoring with language model fusion."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Hashable, Iterable, Iterator

import numpy as np

from ctclib.data.vocab import Vocabulary
from ctclib.decoding.hypothesis import NEG_INF, NO_LABEL, HypothesisStore
from ctclib.errors import InvalidConfiguration, LanguageModelError
from ctclib.lm.base import LanguageModel

MERGE_POLICIES = ("logsumexp", "max")


def log_add(a: float, b: float) -> float:
    if a == NEG_INF:
        return b
    if b == NEG_INF:
        return a
    if a < b:
        a, b = b, a
    return a + math.log1p(math.exp(b - a))


@dataclass
class Candidate:
    """A proposed extension of a beam hypothesis for the current frame.

    Candidates that share (prefix, lm_state) are merged before pruning; the
    one contribution with the highest score decides `parent` and `label`.
    """

    parent: int
    label: int
    last_label: int
    prefix: int
    lm_state: Hashable
    log_prob_blank: float
    log_prob_nonblank: float
    lm_score: float
    best: float

    @property
    def key(self) -> tuple[int, Hashable]:
        return self.prefix, self.lm_state


class Scorer:
    """Turns (hypothesis, label, frame) into scored candidates.

    Holds a per-decode memo of LM calls, so create one per decode.
    """

    def __init__(
        self,
        vocab: Vocabulary,
        lm: LanguageModel | None = None,
        *,
        lm_weight: float = 1.0,
        word_bonus: float = 0.0,
        merge: str = "max",
    ):
        if merge not in MERGE_POLICIES:
            raise InvalidConfiguration(f"Unknown merge policy {merge!r}; expected one of {MERGE_POLICIES}")
        self.vocab = vocab
        self.lm = lm
        self.lm_weight = float(lm_weight)
        self.word_bonus = float(word_bonus)
        self.combine = log_add if merge == "logsumexp" else max
        self._lm_cache: dict[tuple[Hashable, str], tuple[Hashable, float]] = {}

    def initial_state(self) -> Hashable:
        if self.lm is None:
            return None
        try:
            return self.lm.initial_state()
        except Exception as e:
            raise LanguageModelError("Language model failed to produce an initial state") from e

    def acoustic_score(self, log_prob_blank: float, log_prob_nonblank: float) -> float:
        return self.combine(log_prob_blank, log_prob_nonblank)

    def total(self, cand: Candidate) -> float:
        return self.combine(cand.log_prob_blank, cand.log_prob_nonblank) + cand.lm_score

    def expand(
        self,
        store: HypothesisStore,
        h: int,
        row: np.ndarray,
        labels: Iterable[int],
    ) -> Iterator[Candidate]:
        """Yield the candidates reachable from node `h` over `labels` in one frame."""
        blank = self.vocab.blank_id
        pb = store.log_prob_blank[h]
        pnb = store.log_prob_nonblank[h]
        last = store.last_label[h]
        prefix = store.prefix[h]
        state = store.lm_state[h]
        lm_score = store.lm_score[h]
        acoustic = self.combine(pb, pnb)

        for c in labels:
            p = float(row[c])
            if c == blank:
                s = acoustic + p
                yield Candidate(h, NO_LABEL, last, prefix, state, s, NEG_INF, lm_score, s + lm_score)
                continue
            if c == last:
                # repeat without a blank in between collapses into the same symbol
                if pnb != NEG_INF:
                    s = pnb + p
                    yield Candidate(h, NO_LABEL, last, prefix, state, NEG_INF, s, lm_score, s + lm_score)
                # only blank-ending paths may start a second occurrence
                if pb == NEG_INF:
                    continue
                s = pb + p
            else:
                s = acoustic + p
            new_state, new_lm = self.emit(store, prefix, c, state, lm_score)
            yield Candidate(
                h, c, c, store.child_prefix(prefix, c), new_state, NEG_INF, s, new_lm, s + new_lm
            )

    def merge(self, into: Candidate, other: Candidate) -> None:
        into.log_prob_blank = self.combine(into.log_prob_blank, other.log_prob_blank)
        into.log_prob_nonblank = self.combine(into.log_prob_nonblank, other.log_prob_nonblank)
        if other.best > into.best:
            into.parent = other.parent
            into.label = other.label
            into.lm_score = other.lm_score
            into.best = other.best

    def emit(
        self,
        store: HypothesisStore,
        prefix: int,
        label: int,
        state: Hashable,
        lm_score: float,
    ) -> tuple[Hashable, float]:
        """LM update for emitting `label` after output `prefix`."""
        if self.lm is None:
            return state, lm_score
        boundary = self.vocab.word_boundary_id
        if boundary is None:
            word = self.vocab.tokens[label]
        elif label == boundary:
            ids = store.current_word(prefix, boundary)
            if not ids:
                return state, lm_score
            word = self.vocab.word(ids)
        else:
            return state, lm_score
        new_state, lp = self.query(state, word)
        return new_state, lm_score + lp * self.lm_weight + self.word_bonus

    def finish(self, store: HypothesisStore, prefix: int, state: Hashable, lm_score: float) -> float:
        """Final LM score: pending word, then end of sequence."""
        if self.lm is None:
            return lm_score
        boundary = self.vocab.word_boundary_id
        if boundary is not None:
            ids = store.current_word(prefix, boundary)
            if ids:
                state, lp = self.query(state, self.vocab.word(ids))
                lm_score += lp * self.lm_weight + self.word_bonus
        try:
            eos = self.lm.end_of_sequence_score(state)
        except Exception as e:
            raise LanguageModelError("Language model failed to score end of sequence") from e
        return lm_score + float(eos) * self.lm_weight

    def query(self, state: Hashable, word: str) -> tuple[Hashable, float]:
        key = (state, word)
        hit = self._lm_cache.get(key)
        if hit is None:
            try:
                new_state, lp = self.lm.score(state, word)
            except Exception as e:
                raise LanguageModelError(f"Language model failed to score {word!r}") from e
            hit = (new_state, float(lp))
            self._lm_cache[key] = hit
        return hit
