"""CTC prefix beam search with n-gram language model fusion.

A decode walks the frames of a (T, V) log-probability matrix in order. Each
frame, every hypothesis in the beam is expanded over the vocabulary, the
candidates that share an output sequence and LM state are merged, and the
best `beam_size` survive. After the last frame the LM end-of-sentence score
is added and the N best distinct outputs are returned.
"""
from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, fields
from typing import Any, Callable, Mapping

import numpy as np

from ctclib.data.vocab import Vocabulary
from ctclib.decoding.hypothesis import HypothesisStore
from ctclib.decoding.scorer import MERGE_POLICIES, Candidate, Scorer
from ctclib.decoding.topk import select_top_k
from ctclib.errors import DecoderStateError, InvalidConfiguration, InvalidInput
from ctclib.lm.base import LanguageModel
from ctclib.utils.tensors import as_numpy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BeamSearchOptions:
    beam_size: int = 16
    nbest: int = 1
    lm_weight: float = 1.0
    word_bonus: float = 0.0
    # expand only this many best labels per frame (None: all)
    beam_size_token: int | None = None
    # drop candidates scoring more than this below the frame's best
    beam_threshold: float = math.inf
    merge: str = "max"

    def validate(self) -> "BeamSearchOptions":
        if self.beam_size <= 0:
            raise InvalidConfiguration(f"beam_size must be positive; got {self.beam_size}")
        if self.nbest <= 0:
            raise InvalidConfiguration(f"nbest must be positive; got {self.nbest}")
        if self.beam_size_token is not None and self.beam_size_token <= 0:
            raise InvalidConfiguration(f"beam_size_token must be positive; got {self.beam_size_token}")
        if math.isnan(self.beam_threshold) or self.beam_threshold < 0:
            raise InvalidConfiguration(f"beam_threshold must be >= 0; got {self.beam_threshold}")
        if self.merge not in MERGE_POLICIES:
            raise InvalidConfiguration(f"Unknown merge policy {self.merge!r}; expected one of {MERGE_POLICIES}")
        return self

    @classmethod
    def from_dict(cls, cfg: Mapping[str, Any]) -> "BeamSearchOptions":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(cfg) - known)
        if unknown:
            raise InvalidConfiguration(f"Unknown decoder options: {unknown}")
        kwargs = dict(cfg)
        if kwargs.get("beam_threshold") is None:
            kwargs.pop("beam_threshold", None)
        return cls(**kwargs).validate()


@dataclass(frozen=True)
class DecoderOutput:
    tokens: list[int]
    score: float
    am_score: float = 0.0
    lm_score: float = 0.0

    def text(self, vocab: Vocabulary) -> str:
        return vocab.decode(self.tokens)


class DecodeState(enum.Enum):
    INITIALIZED = "initialized"
    STEPPING = "stepping"
    FINALIZED = "finalized"
    DONE = "done"


def validate_log_probs(log_probs: Any, vocab: Vocabulary) -> np.ndarray:
    """Check a (T, V) log-probability matrix against the vocabulary.

    Accepts arrays, nested lists and torch tensors; a leading batch axis of
    size 1 is dropped.
    """
    try:
        x = as_numpy(log_probs)
    except ValueError as e:
        raise InvalidInput(f"Log-probabilities do not form a (T, V) matrix: {e}") from e
    if x.ndim == 1 and x.size == 0:
        x = x.reshape(0, len(vocab))
    if x.ndim == 3 and x.shape[0] == 1:
        x = x[0]
    if x.ndim != 2:
        raise InvalidInput(f"Expected a (T, V) matrix; got shape {x.shape}")
    if x.shape[1] != len(vocab):
        raise InvalidInput(f"Row length {x.shape[1]} does not match vocabulary size {len(vocab)}")
    if not np.issubdtype(x.dtype, np.number):
        raise InvalidInput(f"Log-probabilities must be numeric; got {x.dtype}")
    x = x.astype(np.float64, copy=False)
    if not np.isfinite(x).all():
        bad = np.argwhere(~np.isfinite(x))[0]
        raise InvalidInput(f"Non-finite log-probability at frame {bad[0]}, label {bad[1]}")
    return x


class DecodeSession:
    """State of one decode: hypothesis arena, beam and LM memo.

    Frames are fed with `advance`, then `finalize` applies the end-of-sentence
    score and `nbest` extracts the result. Nothing is shared between sessions.
    """

    def __init__(self, vocab: Vocabulary, options: BeamSearchOptions, lm: LanguageModel | None = None):
        self.vocab = vocab
        self.options = options
        self.store = HypothesisStore()
        self.scorer = Scorer(
            vocab,
            lm,
            lm_weight=options.lm_weight,
            word_bonus=options.word_bonus,
            merge=options.merge,
        )
        self.beam: list[int] = [self.store.create_root(self.scorer.initial_state())]
        self.t = 0
        self.state = DecodeState.INITIALIZED
        self._all_labels = list(range(len(vocab)))
        self._final: list[tuple[int, float, float]] = []

    def advance(self, row: Any) -> None:
        """Consume one frame of V log-probabilities."""
        try:
            x = as_numpy(row).astype(np.float64, copy=False)
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"Frame {self.t} is not a vector of log-probabilities: {e}") from e
        if x.shape != (len(self.vocab),):
            raise InvalidInput(f"Expected a frame of {len(self.vocab)} log-probabilities; got shape {x.shape}")
        if not np.isfinite(x).all():
            raise InvalidInput(f"Non-finite log-probability at frame {self.t}")
        self._step(x)

    def _step(self, row: np.ndarray) -> None:
        if self.state not in (DecodeState.INITIALIZED, DecodeState.STEPPING):
            raise DecoderStateError(f"Cannot advance a {self.state.value} decode")
        self.state = DecodeState.STEPPING

        labels = self._labels(row)
        pool: dict[tuple, Candidate] = {}
        for h in self.beam:
            for cand in self.scorer.expand(self.store, h, row, labels):
                existing = pool.get(cand.key)
                if existing is None:
                    pool[cand.key] = cand
                else:
                    self.scorer.merge(existing, cand)

        cands = list(pool.values())
        scores = np.fromiter((self.scorer.total(c) for c in cands), dtype=np.float64, count=len(cands))
        if math.isfinite(self.options.beam_threshold) and cands:
            keep = np.flatnonzero(scores >= scores.max() - self.options.beam_threshold)
            cands = [cands[i] for i in keep]
            scores = scores[keep]

        self.beam = [self._commit(cands[i]) for i in select_top_k(scores, self.options.beam_size)]
        logger.debug("t=%d candidates=%d beam=%d arena=%d", self.t, len(pool), len(self.beam), len(self.store))
        self.t += 1

    def _labels(self, row: np.ndarray) -> list[int]:
        n = self.options.beam_size_token
        if n is None or n >= row.shape[0]:
            return self._all_labels
        return sorted(select_top_k(row, n).tolist())

    def _commit(self, cand: Candidate) -> int:
        return self.store.extend(
            cand.parent,
            cand.label,
            cand.last_label,
            cand.lm_state,
            cand.log_prob_blank,
            cand.log_prob_nonblank,
            cand.lm_score,
        )

    def current_hypotheses(self) -> list[tuple[list[int], float]]:
        """Labels and running score of every hypothesis in the beam, best first."""
        s = self.store
        return [
            (
                s.reconstruct(h),
                self.scorer.acoustic_score(s.log_prob_blank[h], s.log_prob_nonblank[h]) + s.lm_score[h],
            )
            for h in self.beam
        ]

    def finalize(self) -> None:
        if self.state in (DecodeState.FINALIZED, DecodeState.DONE):
            raise DecoderStateError("Decode is already finalized")
        s = self.store
        final = []
        for h in self.beam:
            am = self.scorer.acoustic_score(s.log_prob_blank[h], s.log_prob_nonblank[h])
            lm = self.scorer.finish(s, s.prefix[h], s.lm_state[h], s.lm_score[h])
            final.append((h, am, lm))
        final.sort(key=lambda r: r[1] + r[2], reverse=True)
        self._final = final
        self.state = DecodeState.FINALIZED

    def nbest(self, n: int | None = None) -> list[DecoderOutput]:
        """Best `n` distinct outputs after `finalize`, highest score first."""
        if self.state not in (DecodeState.FINALIZED, DecodeState.DONE):
            raise DecoderStateError("Call finalize() before nbest()")
        n = self.options.nbest if n is None else n
        out: list[DecoderOutput] = []
        seen: set[int] = set()
        for h, am, lm in self._final:
            if len(out) >= n:
                break
            prefix = self.store.prefix[h]
            if prefix in seen:
                continue
            seen.add(prefix)
            out.append(DecoderOutput(tokens=self.store.reconstruct(h), score=am + lm, am_score=am, lm_score=lm))
        self.state = DecodeState.DONE
        return out


class BeamSearchDecoder:
    """Reusable decoder configuration; every `decode` call is independent."""

    def __init__(
        self,
        vocab: Vocabulary,
        options: BeamSearchOptions | None = None,
        lm: LanguageModel | None = None,
    ):
        self.vocab = vocab
        self.options = (options or BeamSearchOptions()).validate()
        self.lm = lm

    def session(self) -> DecodeSession:
        return DecodeSession(self.vocab, self.options, self.lm)

    def decode(
        self,
        log_probs: Any,
        *,
        nbest: int | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> list[DecoderOutput]:
        """Decode one (T, V) matrix into at most `nbest` outputs.

        `should_stop` is polled between frames; when it returns True decoding
        ends early and the hypotheses built so far are finalized.
        """
        x = validate_log_probs(log_probs, self.vocab)
        sess = self.session()
        for t in range(x.shape[0]):
            if should_stop is not None and should_stop():
                logger.info("Decode stopped early at frame %d of %d", t, x.shape[0])
                break
            sess._step(x[t])
        sess.finalize()
        return sess.nbest(nbest)


def beam_search_decode(
    log_probs: Any,
    vocab: Vocabulary,
    *,
    beam_size: int = 16,
    lm: LanguageModel | None = None,
    lm_weight: float = 1.0,
    word_bonus: float = 0.0,
    nbest: int = 1,
    **options: Any,
) -> list[DecoderOutput]:
    opts = BeamSearchOptions(
        beam_size=beam_size, nbest=nbest, lm_weight=lm_weight, word_bonus=word_bonus, **options
    )
    return BeamSearchDecoder(vocab, opts, lm).decode(log_probs)
