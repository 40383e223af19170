from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any


def _md_table(headers: list[str], rows: list[list[str]]) -> str:
    out = []
    out.append("| " + " | ".join(headers) + " |")
    out.append("| " + " | ".join(["---"] * len(headers)) + " |")
    for r in rows:
        out.append("| " + " | ".join(r) + " |")
    return "\n".join(out)


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--results", required=True, help="JSON written by scripts/eval.py")
    ap.add_argument("--out", required=True)
    ap.add_argument("--examples", type=int, default=5, help="hypotheses to show per decoding mode")
    args = ap.parse_args()

    res = json.loads(Path(args.results).read_text(encoding="utf-8"))

    meta = res.get("meta", {})
    cfg = res.get("config", {})
    modes = res.get("decoding", {})
    refs = res.get("refs", [])

    def fmt(x: Any) -> str:
        if isinstance(x, float):
            return f"{x:.4f}"
        return str(x)

    lines: list[str] = []
    lines.append("# Decoding report")
    lines.append("")
    lines.append("## Environment")
    lines.append("")
    lines.append("```json")
    lines.append(json.dumps(meta, indent=2, sort_keys=True))
    lines.append("```")
    lines.append("")

    lines.append("## Decoder")
    lines.append("")
    lines.append("```json")
    lines.append(json.dumps({"decoder": cfg.get("decoder", {}), "lm": cfg.get("lm", {})}, indent=2, sort_keys=True))
    lines.append("```")
    lines.append("")

    lines.append("## Error rates")
    lines.append("")
    rows = []
    for mode, m in modes.items():
        rows.append([mode, fmt(m.get("wer")), fmt(m.get("cer")), fmt(m.get("ms_per_frame")), str(res.get("num_utts"))])
    if rows:
        lines.append(_md_table(["decoding", "WER", "CER", "ms/frame", "N"], rows))
        lines.append("")

    if args.examples > 0 and refs:
        lines.append("## Examples")
        lines.append("")
        for i, ref in enumerate(refs[: args.examples]):
            rows = [["ref", ref]]
            for mode, m in modes.items():
                hyps = m.get("hyps", [])
                if i < len(hyps):
                    rows.append([mode, hyps[i]])
            lines.append(_md_table(["", f"utterance {i}"], rows))
            lines.append("")

    Path(args.out).parent.mkdir(parents=True, exist_ok=True)
    Path(args.out).write_text("\n".join(lines) + "\n", encoding="utf-8")


if __name__ == "__main__":
    main()
