from __future__ import annotations

from dataclasses import dataclass

from jiwer import cer, wer


@dataclass(frozen=True)
class ErrorRates:
    wer: float
    cer: float


def compute_wer(refs: list[str], hyps: list[str]) -> float:
    if len(refs) != len(hyps):
        raise ValueError("refs and hyps must have same length")
    return float(wer(refs, hyps))


def compute_cer(refs: list[str], hyps: list[str]) -> float:
    if len(refs) != len(hyps):
        raise ValueError("refs and hyps must have same length")
    return float(cer(refs, hyps))


def compute_error_rates(refs: list[str], hyps: list[str]) -> ErrorRates:
    return ErrorRates(wer=compute_wer(refs, hyps), cer=compute_cer(refs, hyps))
