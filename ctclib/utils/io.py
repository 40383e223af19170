from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

import numpy as np
import torch


def read_jsonl(path: str | Path) -> list[dict[str, Any]]:
    p = Path(path)
    rows: list[dict[str, Any]] = []
    with p.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            obj = json.loads(line)
            if not isinstance(obj, dict):
                raise ValueError(f"JSONL row must be an object, got {type(obj)}")
            rows.append(obj)
    return rows


def write_jsonl(path: str | Path, rows: Iterable[dict[str, Any]]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        for r in rows:
            f.write(json.dumps(r, ensure_ascii=False) + "\n")


def write_json(path: str | Path, obj: Any) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, sort_keys=True, ensure_ascii=True)
        f.write("\n")


def load_log_probs(path: str | Path, key: str | None = None) -> np.ndarray | torch.Tensor:
    """Load a saved classifier output matrix.

    Supports `.npy`, `.npz` (first array unless `key` is given) and torch
    `.pt` / `.pth` files holding a tensor or a dict of tensors.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(str(p))
    suffix = p.suffix.lower()
    if suffix == ".npy":
        return np.load(p)
    if suffix == ".npz":
        with np.load(p) as z:
            return z[key] if key is not None else z[z.files[0]]
    if suffix in (".pt", ".pth"):
        obj = torch.load(p, map_location="cpu")
        if isinstance(obj, dict):
            if key is None:
                raise ValueError(f"{p} holds a dict; pass the key of the log-prob tensor")
            obj = obj[key]
        return obj
    raise ValueError(f"Unsupported log-prob file type: {p.suffix}")
