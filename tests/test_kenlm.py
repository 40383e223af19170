import math

import pytest

kenlm = pytest.importorskip("kenlm")

from ctclib.errors import LanguageModelError  # noqa: E402
from ctclib.lm.kenlm_model import LOG10_TO_LN, KenLM, load_language_model  # noqa: E402
from ctclib.lm.perplexity import sentence_score  # noqa: E402

ARPA = """
\\data\\
ngram 1=4
ngram 2=2

\\1-grams:
-1.0\t<unk>
-99\t<s>\t-0.5
-0.5\ta\t-0.2
-0.6\t</s>

\\2-grams:
-0.1\t<s> a
-0.3\ta </s>

\\end\\
"""


@pytest.fixture
def arpa(tmp_path):
    p = tmp_path / "tiny.arpa"
    p.write_text(ARPA.lstrip(), encoding="utf-8")
    return p


def test_scores_are_natural_log(arpa):
    with KenLM(arpa) as lm:
        assert lm.order == 2
        assert "a" in lm
        state, lp = lm.score(lm.initial_state(), "a")
        assert lp == pytest.approx(-0.1 * LOG10_TO_LN, abs=1e-4)
        assert lm.end_of_sequence_score(state) == pytest.approx(-0.3 * LOG10_TO_LN, abs=1e-4)


def test_sentence_score_matches_model(arpa):
    with KenLM(arpa) as lm:
        sc = sentence_score(lm, "a")
    assert sc.num_words == 2
    assert sc.log_prob == pytest.approx(-0.4 * math.log(10), abs=1e-4)
    assert sc.perplexity == pytest.approx(10 ** 0.2, rel=1e-3)


def test_equal_states_compare_equal(arpa):
    with KenLM(arpa) as lm:
        s1, _ = lm.score(lm.initial_state(), "a")
        s2, _ = lm.score(lm.initial_state(), "a")
        assert s1 == s2
        assert hash(s1) == hash(s2)


def test_closed_model_raises(arpa):
    lm = KenLM(arpa)
    lm.close()
    with pytest.raises(LanguageModelError):
        lm.initial_state()


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        KenLM(tmp_path / "nope.arpa")


def test_load_from_config(arpa):
    lm = load_language_model({"kind": "kenlm", "path": str(arpa)})
    assert isinstance(lm, KenLM)
    lm.close()
