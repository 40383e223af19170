from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml


class ConfigError(RuntimeError):
    pass


DEFAULTS: dict[str, Any] = {
    "vocab": {"blank": None, "word_boundary": None},
    "decoder": {
        "beam_size": 16,
        "nbest": 1,
        "lm_weight": 1.0,
        "word_bonus": 0.0,
        "beam_size_token": None,
        "beam_threshold": None,
        "merge": "max",
    },
    "lm": {"kind": "none"},
    "eval": {"decoding": ["greedy", "beam"], "log_softmax": False, "num_workers": 1},
}


def load_yaml(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(str(p))
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML must be a mapping; got {type(data)}")
    return data


def deep_update(base: dict[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively update nested dicts."""
    out = copy.deepcopy(base)
    for k, v in patch.items():
        if isinstance(v, Mapping) and isinstance(out.get(k), dict):
            out[k] = deep_update(out[k], v)
        else:
            out[k] = copy.deepcopy(v)
    return out


def parse_overrides(items: list[str]) -> dict[str, Any]:
    """Turn `section.key=value` strings into a nested patch; values are YAML."""
    patch: dict[str, Any] = {}
    for item in items:
        if "=" not in item:
            raise ConfigError(f"Override must look like key=value; got {item!r}")
        dotted, raw = item.split("=", 1)
        keys = dotted.strip().split(".")
        node = patch
        for k in keys[:-1]:
            node = node.setdefault(k, {})
        node[keys[-1]] = yaml.safe_load(raw)
    return patch


def to_pretty_json(obj: Any) -> str:
    return json.dumps(obj, indent=2, sort_keys=True, ensure_ascii=True)


@dataclass(frozen=True)
class ExperimentConfig:
    """Thin wrapper around a nested mapping with a few convenience helpers."""

    raw: dict[str, Any]
    path: Path | None

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)

    def require(self, key: str) -> Any:
        if key not in self.raw:
            raise ConfigError(f"Missing required config key: {key}")
        return self.raw[key]

    def dump(self) -> str:
        return to_pretty_json({"config_path": str(self.path) if self.path else None, "config": self.raw})


def validate_config(raw: dict[str, Any]) -> None:
    for section in ("vocab", "decoder", "lm", "eval"):
        if not isinstance(raw.get(section), dict):
            raise ConfigError(f"Config must define '{section}' mapping")
    vcfg = raw["vocab"]
    if not vcfg.get("path") and not vcfg.get("tokens"):
        raise ConfigError("Config must define 'vocab.path' or 'vocab.tokens'")
    decoding = raw["eval"].get("decoding", [])
    unknown = sorted(set(decoding) - {"greedy", "beam", "beam_lm"})
    if unknown:
        raise ConfigError(f"Unknown eval.decoding modes: {unknown}")


def load_config(path: str | Path | None = None, overrides: list[str] | None = None) -> ExperimentConfig:
    p = Path(path) if path is not None else None
    raw = deep_update(DEFAULTS, load_yaml(p)) if p is not None else copy.deepcopy(DEFAULTS)
    if overrides:
        raw = deep_update(raw, parse_overrides(overrides))
    validate_config(raw)
    return ExperimentConfig(raw=raw, path=p)
