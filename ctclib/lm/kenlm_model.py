from __future__ import annotations

import logging
import math
from pathlib import Path

from ctclib.config import ConfigError
from ctclib.errors import LanguageModelError
from ctclib.lm.base import LanguageModel, ZeroLM

logger = logging.getLogger(__name__)

# KenLM reports log10 probabilities; the decoder works in natural log.
LOG10_TO_LN = math.log(10.0)


class KenLM(LanguageModel):
    """n-gram LM backed by the `kenlm` Python bindings.

    Requires the optional `kenlm` dependency. The model is a resource owned by
    the caller: load it before decoding and close it (or use it as a context
    manager) afterwards. Queries are read-only, so one instance can serve
    concurrent decodes.
    """

    def __init__(self, path: str | Path, *, bos: bool = True):
        import kenlm

        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(str(p))
        self.path = p
        self.bos = bos
        self._kenlm = kenlm
        self._model = kenlm.Model(str(p))
        logger.info("Loaded %d-gram KenLM model from %s", self._model.order, p)

    @property
    def model(self):
        if self._model is None:
            raise LanguageModelError(f"KenLM model {self.path} is closed")
        return self._model

    @property
    def order(self) -> int:
        return int(self.model.order)

    def __contains__(self, word: str) -> bool:
        return word in self.model

    def initial_state(self):
        state = self._kenlm.State()
        if self.bos:
            self.model.BeginSentenceWrite(state)
        else:
            self.model.NullContextWrite(state)
        return state

    def score(self, state, word: str):
        out = self._kenlm.State()
        lp = self.model.BaseScore(state, word, out)
        return out, lp * LOG10_TO_LN

    def end_of_sequence_score(self, state) -> float:
        out = self._kenlm.State()
        return self.model.BaseScore(state, "</s>", out) * LOG10_TO_LN

    def close(self) -> None:
        self._model = None

    def __enter__(self) -> "KenLM":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def load_language_model(cfg: dict | None) -> LanguageModel | None:
    """Build the LM described by the `lm` config section, or None."""
    cfg = cfg or {}
    kind = str(cfg.get("kind", "none")).lower()
    if kind == "none":
        return None
    if kind == "zero":
        return ZeroLM()
    if kind == "kenlm":
        if not cfg.get("path"):
            raise ConfigError("lm.kind=kenlm requires lm.path")
        return KenLM(cfg["path"], bos=bool(cfg.get("bos", True)))
    raise ConfigError(f"Unknown lm.kind: {kind}")
