"""Tokenizer splitting raw text into classified terms."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator

WORD = "word"
SPACE = "space"
MARKUP = "markup"

_TOKEN_PATTERN = re.compile(
    r"(?P<markup><!--.*?-->|</?[A-Za-z!][^<>]*>|&#?\w+;)"
    r"|(?P<word>\w+)"
    r"|(?P<space>[^\w<&]+|[<&])",
    re.DOTALL | re.UNICODE,
)


@dataclass(slots=True, frozen=True)
class Token:
    """A single term produced by the tokenizer."""

    text: str
    kind: str

    def is_space(self) -> bool:
        """Whitespace and punctuation separators."""
        return self.kind == SPACE

    def is_markup(self) -> bool:
        return self.kind == MARKUP


class Tokenizer:
    """Pull-style tokenizer over one piece of text.

    An instance holds the state of a single tokenizing session, so callers
    create one per indexing or query call instead of sharing it.
    """

    def __init__(self) -> None:
        self._matches: Iterator[re.Match[str]] = iter(())
        self._pending: Token | None = None

    def set_text(self, text: str) -> None:
        """Start a new session over ``text``, discarding any previous one."""
        self._matches = _TOKEN_PATTERN.finditer(text or "")
        self._pending = None

    def has_next(self) -> bool:
        if self._pending is None:
            match = next(self._matches, None)
            if match is None:
                return False
            self._pending = _to_token(match)
        return True

    def next(self) -> Token:
        if not self.has_next():
            raise StopIteration
        token, self._pending = self._pending, None
        return token  # type: ignore[return-value]

    def __iter__(self) -> Iterator[Token]:
        while self.has_next():
            yield self.next()


def _to_token(match: re.Match[str]) -> Token:
    kind = match.lastgroup or SPACE
    text = match.group()
    if kind == WORD:
        text = text.lower()
    return Token(text=text, kind=kind)


def tokenize(text: str) -> Iterator[Token]:
    """Yield every token of ``text``, separators and markup included."""
    tokenizer = Tokenizer()
    tokenizer.set_text(text)
    yield from tokenizer
