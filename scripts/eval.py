from __future__ import annotations

import argparse
import logging

from ctclib.config import load_config
from ctclib.eval.runner import run_evaluation
from ctclib.utils.io import write_json

logger = logging.getLogger(__name__)


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--config", required=True)
    ap.add_argument("--out", default="artifacts/results.json")
    ap.add_argument("--only-decoding", choices=["greedy", "beam", "beam_lm"], default=None)
    ap.add_argument("--max-utts", type=int, default=None)
    ap.add_argument("--set", dest="overrides", action="append", default=[], metavar="KEY=VALUE")
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = load_config(args.config, args.overrides)
    logger.info("Resolved config:\n%s", config.dump())
    results = run_evaluation(cfg=config.raw, only_decoding=args.only_decoding, max_utts=args.max_utts)
    write_json(args.out, results)


if __name__ == "__main__":
    main()
