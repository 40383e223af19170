from __future__ import annotations

import re

_WS_RE = re.compile(r"\s+")


def normalize_text(text: str, *, lowercase: bool = True) -> str:
    """Transcript normalization applied to references and hypotheses before scoring."""
    t = text.strip()
    if lowercase:
        t = t.lower()
    return _WS_RE.sub(" ", t).strip()


def read_sentences(path: str, *, normalize: bool = False) -> list[str]:
    """Non-empty lines of a text file."""
    out = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = normalize_text(line) if normalize else line.strip()
            if line:
                out.append(line)
    return out
