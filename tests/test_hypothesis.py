import math

from ctclib.decoding.hypothesis import NO_LABEL, ROOT_PREFIX, HypothesisStore


def _extend(store, parent, label, last=None):
    last = label if last is None else last
    return store.extend(parent, label, last, None, -math.inf, -1.0, 0.0)


def test_root_is_empty():
    store = HypothesisStore()
    root = store.create_root("state")
    assert store.reconstruct(root) == []
    assert store.prefix[root] == ROOT_PREFIX
    assert store.lm_state[root] == "state"
    assert store.log_prob_blank[root] == 0.0
    assert store.log_prob_nonblank[root] == -math.inf


def test_reconstruct_skips_silent_transitions():
    store = HypothesisStore()
    root = store.create_root()
    a = _extend(store, root, 1)
    silent = _extend(store, a, NO_LABEL, last=1)
    b = _extend(store, silent, 2)
    again = _extend(store, b, 1)
    assert store.reconstruct(again) == [1, 2, 1]
    assert store.reconstruct(silent) == [1]


def test_equal_outputs_share_prefix_id():
    store = HypothesisStore()
    root = store.create_root()
    # [1] reached directly and via a collapsed repeat
    direct = _extend(store, root, 1)
    blank = _extend(store, root, NO_LABEL, last=NO_LABEL)
    late = _extend(store, blank, 1)
    repeat = _extend(store, direct, NO_LABEL, last=1)
    assert store.prefix[direct] == store.prefix[late] == store.prefix[repeat]
    assert store.prefix[direct] != store.prefix[_extend(store, root, 2)]


def test_append_only():
    store = HypothesisStore()
    root = store.create_root()
    a = _extend(store, root, 1)
    before = (store.parent[a], store.label[a], store.prefix[a], store.log_prob_nonblank[a])
    for _ in range(5):
        _extend(store, a, 2)
    assert (store.parent[a], store.label[a], store.prefix[a], store.log_prob_nonblank[a]) == before
    assert len(store) == 7


def test_current_word_stops_at_boundary():
    store = HypothesisStore()
    p = ROOT_PREFIX
    for label in [2, 3, 1, 3, 2]:
        p = store.child_prefix(p, label)
    assert store.prefix_labels(p) == [2, 3, 1, 3, 2]
    assert store.current_word(p, boundary=1) == [3, 2]
    assert store.current_word(store.child_prefix(p, 1), boundary=1) == []
    assert store.current_word(ROOT_PREFIX, boundary=1) == []
