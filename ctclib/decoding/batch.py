from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Sequence

from tqdm import tqdm

from ctclib.decoding.beam import BeamSearchDecoder, DecoderOutput
from ctclib.errors import CTCLibError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchResult:
    index: int
    outputs: list[DecoderOutput]
    error: CTCLibError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def best(self) -> DecoderOutput | None:
        return self.outputs[0] if self.outputs else None


def _decode_one(decoder: BeamSearchDecoder, index: int, log_probs: Any, nbest: int | None) -> BatchResult:
    try:
        return BatchResult(index=index, outputs=decoder.decode(log_probs, nbest=nbest))
    except CTCLibError as e:
        logger.warning("Sequence %d failed to decode: %s", index, e)
        return BatchResult(index=index, outputs=[], error=e)


def decode_batch(
    decoder: BeamSearchDecoder,
    batch: Sequence[Any],
    *,
    nbest: int | None = None,
    num_workers: int = 1,
    progress: bool = False,
) -> list[BatchResult]:
    """Decode independent sequences, optionally on a thread pool.

    Each sequence gets its own decode session; the decoder's LM is only read.
    A decoding error is recorded on that sequence's result and the rest of the
    batch still runs. Results keep the input order.
    """
    if num_workers <= 1:
        it = tqdm(enumerate(batch), total=len(batch), disable=not progress, desc="decode")
        return [_decode_one(decoder, i, x, nbest) for i, x in it]

    with ThreadPoolExecutor(max_workers=num_workers) as pool:
        futures = [pool.submit(_decode_one, decoder, i, x, nbest) for i, x in enumerate(batch)]
        return [f.result() for f in tqdm(futures, disable=not progress, desc="decode")]
