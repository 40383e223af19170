"""Token vocabulary for CTC decoding."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Iterator

from ctclib.errors import InvalidInput


class Vocabulary:
    """Fixed mapping from label index to token string.

    One index is the CTC blank. Optionally one token marks word boundaries;
    without it every emitted token counts as a word for LM scoring.
    """

    def __init__(
        self,
        tokens: list[str],
        *,
        blank_id: int = 0,
        word_boundary: str | None = None,
    ):
        self.tokens = list(tokens)
        self._tok2id = {t: i for i, t in enumerate(self.tokens)}
        if len(self._tok2id) != len(self.tokens):
            raise InvalidInput("Vocabulary tokens must be unique")
        if not 0 <= blank_id < len(self.tokens):
            raise InvalidInput(f"blank_id {blank_id} out of range for {len(self.tokens)} tokens")
        self._blank_id = blank_id

        self._boundary_id: int | None = None
        if word_boundary is not None:
            if word_boundary not in self._tok2id:
                raise InvalidInput(f"Word boundary token {word_boundary!r} not in vocabulary")
            self._boundary_id = self._tok2id[word_boundary]
            if self._boundary_id == blank_id:
                raise InvalidInput("Word boundary token cannot be the blank")

    def __len__(self) -> int:
        return len(self.tokens)

    def __iter__(self) -> Iterator[tuple[str, int]]:
        return iter(self._tok2id.items())

    def __contains__(self, token: object) -> bool:
        return token in self._tok2id

    @property
    def blank_id(self) -> int:
        return self._blank_id

    @property
    def word_boundary_id(self) -> int | None:
        return self._boundary_id

    def index(self, token: str) -> int:
        try:
            return self._tok2id[token]
        except KeyError:
            raise InvalidInput(f"Unknown token: {token!r}") from None

    def encode(self, text: str) -> list[int]:
        """Encode text character by character, skipping unknown characters.

        Spaces map to the word boundary token when one is defined.
        """
        ids = []
        for ch in text:
            if ch == " " and self._boundary_id is not None:
                ids.append(self._boundary_id)
            elif ch in self._tok2id:
                ids.append(self._tok2id[ch])
        return ids

    def decode(self, ids: Iterable[int]) -> str:
        """Decode label ids to text; the word boundary becomes a space."""
        chars = []
        for i in ids:
            i = int(i)
            if i == self._blank_id or not 0 <= i < len(self.tokens):
                continue
            if i == self._boundary_id:
                chars.append(" ")
            else:
                chars.append(self.tokens[i])
        return " ".join("".join(chars).split())

    def words(self, ids: Iterable[int]) -> list[str]:
        return self.decode(ids).split()

    def word(self, ids: Iterable[int]) -> str:
        """Join the token strings of ids into a single LM word."""
        return "".join(self.tokens[i] for i in ids)

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        *,
        blank: str | None = None,
        word_boundary: str | None = None,
    ) -> "Vocabulary":
        """Load tokens from a JSON list or a text file with one token per line.

        `blank` names the blank token; when omitted index 0 is the blank.
        """
        p = Path(path)
        raw = p.read_text(encoding="utf-8")
        if p.suffix == ".json":
            tokens = json.loads(raw)
            if not isinstance(tokens, list):
                raise InvalidInput(f"Vocabulary JSON must be a list; got {type(tokens)}")
        else:
            tokens = [line for line in raw.split("\n") if line != ""]
        tokens = [str(t) for t in tokens]
        blank_id = 0
        if blank is not None:
            if blank not in tokens:
                raise InvalidInput(f"Blank token {blank!r} not found in {p}")
            blank_id = tokens.index(blank)
        return cls(tokens, blank_id=blank_id, word_boundary=word_boundary)


def build_char_vocab(
    texts: Iterable[str],
    *,
    blank: str = "<blank>",
    word_boundary: str | None = "|",
) -> Vocabulary:
    """Build a character vocabulary from transcripts; blank goes first."""
    chars: set[str] = set()
    for text in texts:
        chars.update(text)
    chars.discard(" ")
    tokens = [blank]
    if word_boundary is not None:
        chars.discard(word_boundary)
        tokens.append(word_boundary)
    tokens.extend(sorted(chars))
    return Vocabulary(tokens, blank_id=0, word_boundary=word_boundary)
