from __future__ import annotations

import argparse
import logging

import numpy as np

from ctclib.config import load_config
from ctclib.decoding.batch import decode_batch
from ctclib.pipeline import build_all
from ctclib.utils.io import load_log_probs, write_jsonl
from ctclib.utils.tensors import split_batch, to_log_probs

logger = logging.getLogger(__name__)


def _load_inputs(
    paths: list[str],
    *,
    key: str | None,
    lengths_key: str | None,
    batch_first: bool,
    log_softmax: bool,
) -> tuple[list[str], list[np.ndarray]]:
    """One (name, matrix) per sequence; padded batches are split by their lengths."""
    names: list[str] = []
    matrices: list[np.ndarray] = []
    for p in paths:
        x = load_log_probs(p, key=key)
        if lengths_key is None:
            names.append(p)
            matrices.append(to_log_probs(x, log_softmax=log_softmax))
            continue
        lengths = load_log_probs(p, key=lengths_key)
        for b, m in enumerate(split_batch(x, lengths, time_major=not batch_first)):
            names.append(f"{p}#{b}")
            matrices.append(to_log_probs(m, log_softmax=log_softmax))
    return names, matrices


def main() -> None:
    ap = argparse.ArgumentParser(description="Beam-search decode saved CTC log-probability matrices.")
    ap.add_argument("--config", required=True)
    ap.add_argument("inputs", nargs="+", help=".npy / .npz / .pt files, one (T, V) matrix each")
    ap.add_argument("--key", default=None, help="array key inside .npz / .pt files")
    ap.add_argument(
        "--lengths-key",
        default=None,
        help="inputs hold a padded (T, B, V) batch; key of the per-sequence lengths",
    )
    ap.add_argument("--batch-first", action="store_true", help="padded batches are (B, T, V)")
    ap.add_argument("--log-softmax", action="store_true", help="inputs are raw logits")
    ap.add_argument("--nbest", type=int, default=None)
    ap.add_argument("--num-workers", type=int, default=1)
    ap.add_argument("--out", default=None, help="write JSONL results here instead of stdout")
    ap.add_argument("--set", dest="overrides", action="append", default=[], metavar="KEY=VALUE")
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    names, matrices = _load_inputs(
        args.inputs,
        key=args.key,
        lengths_key=args.lengths_key,
        batch_first=args.batch_first,
        log_softmax=args.log_softmax,
    )

    cfg = load_config(args.config, args.overrides).raw
    vocab, lm, decoder = build_all(cfg)
    try:
        results = decode_batch(decoder, matrices, nbest=args.nbest, num_workers=args.num_workers, progress=True)
    finally:
        if lm is not None:
            lm.close()

    rows = []
    for name, res in zip(names, results):
        rows.append(
            {
                "input": name,
                "error": str(res.error) if res.error else None,
                "nbest": [
                    {
                        "text": o.text(vocab),
                        "tokens": o.tokens,
                        "score": o.score,
                        "am_score": o.am_score,
                        "lm_score": o.lm_score,
                    }
                    for o in res.outputs
                ],
            }
        )

    if args.out:
        write_jsonl(args.out, rows)
        logger.info("Wrote %d results to %s", len(rows), args.out)
    else:
        for row in rows:
            best = row["nbest"][0]["text"] if row["nbest"] else ""
            print(f"{row['input']}\t{best}")


if __name__ == "__main__":
    main()
