"""Append-only arena of hypothesis nodes.

Nodes form backpointer trees: extending a hypothesis is O(1) and the label
sequence is only rebuilt for the hypotheses that are finally returned.
Output prefixes are interned as (parent prefix, label) pairs, so two nodes
carry the same prefix id exactly when their output sequences are equal.
"""
from __future__ import annotations

import math
from typing import Hashable

NO_LABEL = -1
ROOT_PREFIX = 0
NEG_INF = -math.inf


class HypothesisStore:
    """Per-decode storage for hypothesis nodes, addressed by integer index.

    Columns are kept as parallel lists. `label` is the output label emitted on
    the transition from `parent`, or NO_LABEL when the transition emitted
    nothing (blank frame or collapsed repeat). Acoustic score is kept as the
    two CTC components: paths ending in blank and paths ending in a label.
    """

    def __init__(self) -> None:
        self.parent: list[int] = []
        self.label: list[int] = []
        self.last_label: list[int] = []
        self.prefix: list[int] = []
        self.lm_state: list[Hashable] = []
        self.log_prob_blank: list[float] = []
        self.log_prob_nonblank: list[float] = []
        self.lm_score: list[float] = []

        # prefix trie: id -> (parent id, label); id 0 is the empty output
        self._prefix_parent: list[int] = [NO_LABEL]
        self._prefix_label: list[int] = [NO_LABEL]
        self._prefix_ids: dict[tuple[int, int], int] = {}

    def __len__(self) -> int:
        return len(self.parent)

    def create_root(self, lm_state: Hashable = None) -> int:
        return self._append(NO_LABEL, NO_LABEL, NO_LABEL, ROOT_PREFIX, lm_state, 0.0, NEG_INF, 0.0)

    def extend(
        self,
        parent: int,
        label: int,
        last_label: int,
        lm_state: Hashable,
        log_prob_blank: float,
        log_prob_nonblank: float,
        lm_score: float,
    ) -> int:
        """Append a child of `parent`. Existing nodes are never modified."""
        prefix = self.prefix[parent]
        if label != NO_LABEL:
            prefix = self.child_prefix(prefix, label)
        return self._append(
            parent, label, last_label, prefix, lm_state, log_prob_blank, log_prob_nonblank, lm_score
        )

    def _append(self, parent, label, last_label, prefix, lm_state, pb, pnb, lm_score) -> int:
        self.parent.append(parent)
        self.label.append(label)
        self.last_label.append(last_label)
        self.prefix.append(prefix)
        self.lm_state.append(lm_state)
        self.log_prob_blank.append(pb)
        self.log_prob_nonblank.append(pnb)
        self.lm_score.append(lm_score)
        return len(self.parent) - 1

    def child_prefix(self, prefix: int, label: int) -> int:
        """Id of the output `prefix + [label]`, interned on first use."""
        key = (prefix, label)
        pid = self._prefix_ids.get(key)
        if pid is None:
            pid = len(self._prefix_parent)
            self._prefix_ids[key] = pid
            self._prefix_parent.append(prefix)
            self._prefix_label.append(label)
        return pid

    def reconstruct(self, index: int) -> list[int]:
        """Output label sequence of node `index`, root to leaf."""
        labels: list[int] = []
        while index != NO_LABEL:
            label = self.label[index]
            if label != NO_LABEL:
                labels.append(label)
            index = self.parent[index]
        labels.reverse()
        return labels

    def prefix_labels(self, prefix: int) -> list[int]:
        labels: list[int] = []
        while prefix != ROOT_PREFIX:
            labels.append(self._prefix_label[prefix])
            prefix = self._prefix_parent[prefix]
        labels.reverse()
        return labels

    def current_word(self, prefix: int, boundary: int) -> list[int]:
        """Labels emitted after the last `boundary` label of `prefix`."""
        labels: list[int] = []
        while prefix != ROOT_PREFIX:
            label = self._prefix_label[prefix]
            if label == boundary:
                break
            labels.append(label)
            prefix = self._prefix_parent[prefix]
        labels.reverse()
        return labels
