from __future__ import annotations

import logging
import platform
import time
from pathlib import Path
from typing import Any

import numpy as np
import torch

from ctclib.config import ConfigError
from ctclib.data.manifest import Manifest
from ctclib.data.vocab import Vocabulary
from ctclib.decoding.batch import decode_batch
from ctclib.decoding.beam import BeamSearchDecoder
from ctclib.decoding.greedy import greedy_decode
from ctclib.eval.metrics import compute_error_rates
from ctclib.lm.base import LanguageModel
from ctclib.lm.kenlm_model import load_language_model
from ctclib.pipeline import build_decoder, build_vocab
from ctclib.utils.text import normalize_text

logger = logging.getLogger(__name__)


def _env_meta() -> dict[str, Any]:
    meta: dict[str, Any] = {
        "timestamp_unix": int(time.time()),
        "python": platform.python_version(),
        "platform": platform.platform(),
        "numpy": np.__version__,
        "torch": torch.__version__,
    }
    try:
        import kenlm  # noqa: F401

        meta["kenlm_available"] = True
    except ImportError:
        meta["kenlm_available"] = False
    return meta


def _decode_mode(
    mode: str,
    *,
    matrices: list[np.ndarray],
    vocab: Vocabulary,
    decoder: BeamSearchDecoder | None,
    num_workers: int,
) -> tuple[list[str], float, int]:
    t0 = time.perf_counter()
    if mode == "greedy":
        hyps = [greedy_decode(x, vocab).text(vocab) for x in matrices]
    else:
        results = decode_batch(decoder, matrices, num_workers=num_workers, progress=True)
        hyps = []
        failed = 0
        for r in results:
            if not r.ok:
                failed += 1
            hyps.append(r.best.text(vocab) if r.best is not None else "")
        if failed:
            logger.warning("%s: %d of %d sequences failed to decode", mode, failed, len(results))
    return hyps, time.perf_counter() - t0, sum(int(x.shape[0]) for x in matrices)


def run_evaluation(
    *,
    cfg: dict[str, Any],
    only_decoding: str | None = None,
    max_utts: int | None = None,
    lm: LanguageModel | None = None,
) -> dict[str, Any]:
    """Decode a manifest with each configured mode and score against references.

    Returns a JSON-serializable dict. `lm` overrides the `lm` config section,
    so callers can pass an already loaded model.
    """

    ecfg = cfg.get("eval", {})
    if not ecfg.get("manifest"):
        raise ConfigError("Evaluation needs 'eval.manifest'")

    decoding = list(ecfg.get("decoding", ["greedy", "beam"]))
    if only_decoding is not None:
        decoding = [only_decoding]

    vocab = build_vocab(cfg["vocab"])
    manifest = Manifest(Path(ecfg["manifest"]), max_items=max_utts)
    log_softmax = bool(ecfg.get("log_softmax", False))
    matrices = [ex.load(log_softmax=log_softmax) for ex in manifest]
    refs = [normalize_text(ex.text) for ex in manifest]
    logger.info("Loaded %d utterances from %s", len(refs), ecfg["manifest"])

    owned = None
    if lm is None and "beam_lm" in decoding:
        lm = owned = load_language_model(cfg.get("lm"))
        if lm is None:
            raise ConfigError("eval.decoding includes 'beam_lm' but no language model is configured")
    try:
        return _evaluate(cfg, decoding, vocab, lm, matrices, refs)
    finally:
        if owned is not None:
            owned.close()


def _evaluate(
    cfg: dict[str, Any],
    decoding: list[str],
    vocab: Vocabulary,
    lm: LanguageModel | None,
    matrices: list[np.ndarray],
    refs: list[str],
) -> dict[str, Any]:
    ecfg = cfg.get("eval", {})
    results: dict[str, Any] = {
        "meta": _env_meta(),
        "config": cfg,
        "num_utts": len(refs),
        "decoding": {},
    }

    for mode in decoding:
        decoder = None
        if mode == "beam":
            decoder = build_decoder(cfg, vocab, None)
        elif mode == "beam_lm":
            decoder = build_decoder(cfg, vocab, lm)
        hyps, dt, frames = _decode_mode(
            mode,
            matrices=matrices,
            vocab=vocab,
            decoder=decoder,
            num_workers=int(ecfg.get("num_workers", 1)),
        )
        hyps = [normalize_text(h) for h in hyps]
        rates = compute_error_rates(refs, hyps) if refs else None
        results["decoding"][mode] = {
            "wer": rates.wer if rates else float("nan"),
            "cer": rates.cer if rates else float("nan"),
            "decode_sec": dt,
            "ms_per_frame": 1000.0 * dt / max(1, frames),
            "hyps": hyps,
        }
        logger.info("%s: wer=%.4f decode_sec=%.2f", mode, results["decoding"][mode]["wer"], dt)

    results["refs"] = refs
    return results
