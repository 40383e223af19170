"""Manifests pairing saved classifier outputs with reference transcripts."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np

from ctclib.utils.io import load_log_probs, read_jsonl
from ctclib.utils.tensors import to_log_probs


@dataclass
class Example:
    """A single utterance."""
    logprobs_path: str
    text: str
    key: str | None = None

    def load(self, *, log_softmax: bool = False) -> np.ndarray:
        return to_log_probs(load_log_probs(self.logprobs_path, key=self.key), log_softmax=log_softmax)


class Manifest:
    """Reads a JSONL manifest: each line has {logprobs, text, key?}.

    Relative paths resolve against the manifest's directory.
    """

    def __init__(self, manifest_path: str | Path, max_items: int | None = None):
        p = Path(manifest_path)
        self.examples: list[Example] = []
        for obj in read_jsonl(p):
            lp = Path(obj["logprobs"])
            if not lp.is_absolute():
                lp = p.parent / lp
            self.examples.append(Example(logprobs_path=str(lp), text=obj.get("text", ""), key=obj.get("key")))
            if max_items is not None and len(self.examples) >= max_items:
                break

    def __len__(self) -> int:
        return len(self.examples)

    def __getitem__(self, idx: int) -> Example:
        return self.examples[idx]

    def __iter__(self):
        return iter(self.examples)
