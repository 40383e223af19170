"""Build vocabulary, language model and decoder from a config mapping."""
from __future__ import annotations

from typing import Any

from ctclib.config import ConfigError
from ctclib.data.vocab import Vocabulary
from ctclib.decoding.beam import BeamSearchDecoder, BeamSearchOptions
from ctclib.errors import InvalidInput
from ctclib.lm.base import LanguageModel
from ctclib.lm.kenlm_model import load_language_model


def build_vocab(vcfg: dict[str, Any]) -> Vocabulary:
    blank = vcfg.get("blank")
    boundary = vcfg.get("word_boundary")
    if vcfg.get("path"):
        return Vocabulary.from_file(vcfg["path"], blank=blank, word_boundary=boundary)
    tokens = [str(t) for t in vcfg.get("tokens") or []]
    if not tokens:
        raise ConfigError("Vocabulary needs 'path' or a non-empty 'tokens' list")
    if blank is None:
        blank_id = 0
    elif blank in tokens:
        blank_id = tokens.index(blank)
    else:
        raise InvalidInput(f"Blank token {blank!r} is not in the vocabulary")
    return Vocabulary(tokens, blank_id=blank_id, word_boundary=boundary)


def build_decoder(
    cfg: dict[str, Any],
    vocab: Vocabulary,
    lm: LanguageModel | None = None,
) -> BeamSearchDecoder:
    options = BeamSearchOptions.from_dict(cfg.get("decoder", {}))
    return BeamSearchDecoder(vocab, options, lm)


def build_all(cfg: dict[str, Any]) -> tuple[Vocabulary, LanguageModel | None, BeamSearchDecoder]:
    vocab = build_vocab(cfg["vocab"])
    lm = load_language_model(cfg.get("lm"))
    return vocab, lm, build_decoder(cfg, vocab, lm)
