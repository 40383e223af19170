import math

import numpy as np
import pytest
import torch
from conftest import frames

from ctclib.decoding.greedy import ctc_collapse, greedy_decode, greedy_decode_text


@pytest.mark.parametrize(
    "ids, expected",
    [
        ([1, 1, 0, 1], [1, 1]),
        ([1, 1, 2, 2, 0], [1, 2]),
        ([0, 0, 0], []),
        ([2, 0, 0, 2, 2, 1], [2, 2, 1]),
    ],
)
def test_ctc_collapse(ids, expected):
    assert ctc_collapse(ids, blank_id=0) == expected


def test_greedy_decode(word_vocab):
    x = frames([2, 2, 0, 3, 1, 3], 4)
    out = greedy_decode(x, word_vocab)
    assert out.tokens == [2, 3, 1, 3]
    assert out.score == pytest.approx(6 * math.log(0.9))
    assert greedy_decode_text(torch.from_numpy(x).unsqueeze(0), word_vocab) == "ab b"


def test_greedy_empty(ab_vocab):
    out = greedy_decode(np.zeros((0, 3)), ab_vocab)
    assert out.tokens == []
    assert out.score == 0.0
