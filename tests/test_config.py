import json

import pytest

from ctclib.config import ConfigError, deep_update, load_config, parse_overrides
from ctclib.decoding.beam import BeamSearchDecoder
from ctclib.errors import InvalidConfiguration, InvalidInput
from ctclib.lm.base import ZeroLM
from ctclib.pipeline import build_all, build_vocab

CONFIG = """
vocab:
  tokens: ["<blank>", "|", "a", "b"]
  word_boundary: "|"
decoder:
  beam_size: 4
  lm_weight: 0.3
lm:
  kind: zero
"""


def _write(tmp_path, text):
    p = tmp_path / "cfg.yaml"
    p.write_text(text, encoding="utf-8")
    return p


def test_defaults_fill_missing_keys(tmp_path):
    cfg = load_config(_write(tmp_path, CONFIG))
    dec = cfg.require("decoder")
    assert dec["beam_size"] == 4
    assert dec["nbest"] == 1
    assert dec["merge"] == "max"
    assert cfg.get("eval")["decoding"] == ["greedy", "beam"]


def test_overrides(tmp_path):
    cfg = load_config(_write(tmp_path, CONFIG), ["decoder.beam_size=9", "decoder.merge=logsumexp"])
    assert cfg.raw["decoder"]["beam_size"] == 9
    assert cfg.raw["decoder"]["merge"] == "logsumexp"
    assert parse_overrides(["a.b.c=[1, 2]"]) == {"a": {"b": {"c": [1, 2]}}}
    with pytest.raises(ConfigError):
        parse_overrides(["nonsense"])


def test_deep_update_does_not_mutate():
    base = {"a": {"b": 1, "c": 2}}
    out = deep_update(base, {"a": {"b": 5}})
    assert out == {"a": {"b": 5, "c": 2}}
    assert base == {"a": {"b": 1, "c": 2}}


def test_missing_vocab_rejected(tmp_path):
    with pytest.raises(ConfigError):
        load_config(_write(tmp_path, "decoder:\n  beam_size: 2\n"))


def test_non_mapping_rejected(tmp_path):
    with pytest.raises(ConfigError):
        load_config(_write(tmp_path, "- 1\n- 2\n"))


def test_unknown_decoding_mode_rejected(tmp_path):
    with pytest.raises(ConfigError):
        load_config(_write(tmp_path, CONFIG + "eval:\n  decoding: [fancy]\n"))


def test_build_all(tmp_path):
    vocab, lm, decoder = build_all(load_config(_write(tmp_path, CONFIG)).raw)
    assert vocab.word_boundary_id == 1
    assert isinstance(lm, ZeroLM)
    assert isinstance(decoder, BeamSearchDecoder)
    assert decoder.options.beam_size == 4
    assert decoder.options.lm_weight == 0.3


def test_bad_decoder_section(tmp_path):
    cfg = load_config(_write(tmp_path, CONFIG), ["decoder.beam_size=0"]).raw
    with pytest.raises(InvalidConfiguration):
        build_all(cfg)


def test_build_vocab_from_file(tmp_path):
    p = tmp_path / "v.txt"
    p.write_text("<b>\nx\ny\n", encoding="utf-8")
    vocab = build_vocab({"path": str(p), "blank": "<b>", "word_boundary": None})
    assert vocab.tokens == ["<b>", "x", "y"]


def test_build_vocab_from_tokens():
    vocab = build_vocab({"tokens": ["a", "b", "<blank>"], "blank": "<blank>"})
    assert vocab.blank_id == 2
    assert build_vocab({"tokens": ["<pad>", "a"]}).blank_id == 0


def test_build_vocab_rejects_unknown_blank():
    with pytest.raises(InvalidInput):
        build_vocab({"tokens": ["a", "b", "<blank>"], "blank": "<pad>"})


def test_dump_is_json(tmp_path):
    cfg = load_config(_write(tmp_path, CONFIG))
    dumped = json.loads(cfg.dump())
    assert dumped["config"]["decoder"]["beam_size"] == 4
    assert dumped["config_path"].endswith("cfg.yaml")
