import math

import numpy as np
import pytest
from conftest import DictLM

from ctclib.decoding.hypothesis import NEG_INF, NO_LABEL, HypothesisStore
from ctclib.decoding.scorer import Scorer, log_add
from ctclib.errors import InvalidConfiguration

ROW = np.log(np.array([0.5, 0.3, 0.2]))


def _by_label(cands):
    return {(c.label, c.prefix): c for c in cands}


def test_log_add():
    assert log_add(math.log(0.25), math.log(0.5)) == pytest.approx(math.log(0.75))
    assert log_add(NEG_INF, -2.0) == -2.0
    assert log_add(-2.0, NEG_INF) == -2.0
    assert log_add(NEG_INF, NEG_INF) == NEG_INF


def test_expand_from_root(ab_vocab):
    store = HypothesisStore()
    root = store.create_root()
    cands = list(Scorer(ab_vocab).expand(store, root, ROW, range(3)))
    assert len(cands) == 3
    blank, a, b = cands
    assert blank.label == NO_LABEL and blank.prefix == store.prefix[root]
    assert blank.log_prob_blank == pytest.approx(math.log(0.5))
    assert blank.log_prob_nonblank == NEG_INF
    assert a.label == 1 and a.last_label == 1
    assert a.log_prob_nonblank == pytest.approx(math.log(0.3))
    assert store.prefix_labels(b.prefix) == [2]


def test_repeat_collapses_unless_blank_between(ab_vocab):
    store = HypothesisStore()
    root = store.create_root()
    # hypothesis [a] with both blank-ending and label-ending mass
    h = store.extend(root, 1, 1, None, math.log(0.1), math.log(0.2), 0.0)
    cands = list(Scorer(ab_vocab).expand(store, h, ROW, [1]))
    assert len(cands) == 2
    absorbed, second = cands
    assert absorbed.label == NO_LABEL
    assert absorbed.prefix == store.prefix[h]
    assert absorbed.log_prob_nonblank == pytest.approx(math.log(0.2 * 0.3))
    assert second.label == 1
    assert store.prefix_labels(second.prefix) == [1, 1]
    assert second.log_prob_nonblank == pytest.approx(math.log(0.1 * 0.3))


def test_repeat_without_blank_mass_only_collapses(ab_vocab):
    store = HypothesisStore()
    root = store.create_root()
    h = store.extend(root, 1, 1, None, NEG_INF, math.log(0.2), 0.0)
    cands = list(Scorer(ab_vocab).expand(store, h, ROW, [1]))
    assert [c.label for c in cands] == [NO_LABEL]


def test_merge_combines_and_keeps_best_parent(ab_vocab):
    store = HypothesisStore()
    root = store.create_root()
    h1 = store.extend(root, NO_LABEL, NO_LABEL, None, math.log(0.4), NEG_INF, 0.0)
    h2 = store.extend(root, 1, 1, None, NEG_INF, math.log(0.1), 0.0)
    scorer = Scorer(ab_vocab, merge="logsumexp")
    from_blank = next(c for c in scorer.expand(store, h1, ROW, [1]))
    from_a = next(c for c in scorer.expand(store, h2, ROW, [1]))
    assert from_blank.key == from_a.key
    scorer.merge(from_a, from_blank)
    assert from_a.log_prob_nonblank == pytest.approx(math.log(0.4 * 0.3 + 0.1 * 0.3))
    assert from_a.parent == h1
    assert from_a.label == 1


def test_max_merge(ab_vocab):
    scorer = Scorer(ab_vocab, merge="max")
    assert scorer.acoustic_score(-1.0, -2.0) == -1.0
    with pytest.raises(InvalidConfiguration):
        Scorer(ab_vocab, merge="sum")


def test_blank_and_repeat_do_not_query_lm(ab_vocab):
    lm = DictLM({"a": -1.0})
    store = HypothesisStore()
    scorer = Scorer(ab_vocab, lm)
    root = store.create_root(scorer.initial_state())
    h = store.extend(root, 1, 1, "a", NEG_INF, -1.0, -1.0)
    list(scorer.expand(store, h, ROW, [0, 1]))
    assert lm.calls == []


def test_lm_calls_are_memoised(ab_vocab):
    lm = DictLM({"a": -1.0})
    store = HypothesisStore()
    scorer = Scorer(ab_vocab, lm, lm_weight=2.0, word_bonus=0.5)
    root = store.create_root(scorer.initial_state())
    first = list(scorer.expand(store, root, ROW, [1]))
    second = list(scorer.expand(store, root, ROW, [1]))
    assert len(lm.calls) == 1
    assert first[0].lm_score == second[0].lm_score == pytest.approx(2.0 * -1.0 + 0.5)
    assert first[0].lm_state == "a"


def test_finish_scores_pending_word(word_vocab):
    lm = DictLM({"ab": -1.0}, eos=-0.5)
    store = HypothesisStore()
    scorer = Scorer(word_vocab, lm, lm_weight=1.0, word_bonus=0.0)
    p = store.child_prefix(store.child_prefix(0, 2), 3)
    assert scorer.finish(store, p, "<s>", 0.0) == pytest.approx(-1.5)
    assert lm.calls == [("<s>", "ab")]
