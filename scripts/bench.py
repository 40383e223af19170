from __future__ import annotations

import argparse
import json
import time

import numpy as np

from ctclib.data.vocab import Vocabulary
from ctclib.decoding.beam import BeamSearchDecoder, BeamSearchOptions
from ctclib.lm.base import ZeroLM


def _random_log_probs(rng: np.random.Generator, frames: int, vocab_size: int) -> np.ndarray:
    logits = rng.normal(size=(frames, vocab_size)) * 3.0
    logits -= logits.max(axis=-1, keepdims=True)
    return logits - np.log(np.exp(logits).sum(axis=-1, keepdims=True))


def main() -> None:
    ap = argparse.ArgumentParser(description="Time beam search on random log-probabilities.")
    ap.add_argument("--frames", type=int, default=200)
    ap.add_argument("--vocab-size", type=int, default=32)
    ap.add_argument("--beam-sizes", type=int, nargs="+", default=[1, 4, 16, 64])
    ap.add_argument("--beam-size-token", type=int, default=None)
    ap.add_argument("--with-lm", action="store_true", help="route through the LM path with ZeroLM")
    ap.add_argument("--repeats", type=int, default=3)
    ap.add_argument("--seed", type=int, default=0)
    args = ap.parse_args()

    rng = np.random.default_rng(args.seed)
    tokens = ["<blank>", "|"] + [f"t{i}" for i in range(args.vocab_size - 2)]
    vocab = Vocabulary(tokens, blank_id=0, word_boundary="|")
    x = _random_log_probs(rng, args.frames, len(vocab))
    lm = ZeroLM() if args.with_lm else None

    rows = []
    for k in args.beam_sizes:
        opts = BeamSearchOptions(beam_size=k, beam_size_token=args.beam_size_token)
        decoder = BeamSearchDecoder(vocab, opts, lm)
        times = []
        best = None
        for _ in range(args.repeats):
            t0 = time.perf_counter()
            best = decoder.decode(x)[0]
            times.append(time.perf_counter() - t0)
        rows.append(
            {
                "beam_size": k,
                "median_sec": float(np.median(times)),
                "ms_per_frame": 1000.0 * float(np.median(times)) / args.frames,
                "best_score": best.score,
                "best_len": len(best.tokens),
            }
        )
    print(json.dumps({"frames": args.frames, "vocab_size": len(vocab), "runs": rows}, indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
