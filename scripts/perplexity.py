from __future__ import annotations

import argparse
import json
import logging

from ctclib.lm.kenlm_model import KenLM
from ctclib.lm.perplexity import corpus_perplexity, sentence_score
from ctclib.utils.text import read_sentences


def main() -> None:
    ap = argparse.ArgumentParser(description="Perplexity of a text file under a KenLM model.")
    ap.add_argument("--lm", required=True, help="KenLM .arpa or .bin file")
    ap.add_argument("--text", required=True, help="one sentence per line")
    ap.add_argument("--no-eos", action="store_true", help="do not score the end-of-sentence event")
    ap.add_argument("--normalize", action="store_true", help="lowercase and squeeze whitespace first")
    ap.add_argument("--per-sentence", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    sentences = read_sentences(args.text, normalize=args.normalize)
    eos = not args.no_eos
    with KenLM(args.lm) as lm:
        if args.per_sentence:
            for s in sentences:
                sc = sentence_score(lm, s, eos=eos)
                print(f"{sc.perplexity:.4f}\t{s}")
        ppl = corpus_perplexity(lm, sentences, eos=eos)

    print(json.dumps({"num_sentences": len(sentences), "perplexity": ppl}, indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
