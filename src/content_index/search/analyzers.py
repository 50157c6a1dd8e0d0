"""Analyzers that turn field text into normalized search tokens.

An analyzer is a tokenizer followed by a chain of token filters. The index
uses one analyzer for both documents and queries, so a query token matches a
posting only when both were produced by the same pipeline.

Registered analyzers:

* ``simple`` - lowercase, split on any non-alphanumeric character (default)
* ``english`` - ``simple`` plus stopword removal and light suffix stemming
* ``keyword`` - the whole (stripped, lowercased) value as a single token
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
import re
from typing import Protocol


@dataclass
class Token:
    """A single token emitted by an analyzer."""

    text: str
    position: int
    start_char: int
    end_char: int

    def copy_with(self, **updates: object) -> Token:
        data = {
            "text": self.text,
            "position": self.position,
            "start_char": self.start_char,
            "end_char": self.end_char,
        }
        data.update(updates)
        return Token(**data)  # type: ignore[arg-type]


class Analyzer(Protocol):
    def __call__(self, text: str) -> list[Token]:  # pragma: no cover - interface definition
        ...


class Tokenizer(Protocol):
    def __call__(self, text: str) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


# Letters and digits only; underscore counts as a boundary.
ALPHANUMERIC_PATTERN = r"[^\W_]+"


class RegexTokenizer:
    """Yield every regex match as a token."""

    def __init__(self, pattern: str = ALPHANUMERIC_PATTERN, flags: int = re.UNICODE) -> None:
        self.pattern = re.compile(pattern, flags)

    def __call__(self, text: str) -> Iterator[Token]:
        for position, match in enumerate(self.pattern.finditer(text)):
            yield Token(
                text=match.group(0),
                position=position,
                start_char=match.start(),
                end_char=match.end(),
            )


class LowercaseFilter:
    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text.islower():
                yield token
            else:
                yield token.copy_with(text=token.text.lower())


class EmptyTokenFilter:
    """Drop tokens whose text is empty after earlier filters ran."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text:
                yield token


DEFAULT_STOPWORDS = frozenset(
    {
        "a",
        "an",
        "and",
        "are",
        "as",
        "at",
        "be",
        "by",
        "for",
        "in",
        "is",
        "it",
        "of",
        "on",
        "or",
        "the",
        "to",
        "with",
    }
)


class StopFilter:
    def __init__(self, stopwords: Sequence[str] | None = None) -> None:
        vocab = stopwords if stopwords is not None else DEFAULT_STOPWORDS
        self.stopwords = {word.lower() for word in vocab}

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text not in self.stopwords:
                yield token


_STEM_SUFFIXES: tuple[str, ...] = ("ingly", "edly", "ing", "ed", "ly", "es", "s")


def light_stem(word: str) -> str:
    """Strip one common English suffix, keeping at least three characters."""

    for suffix in _STEM_SUFFIXES:
        if word.endswith(suffix) and len(word) - len(suffix) >= 3:
            return word[: -len(suffix)]
    return word


class StemFilter:
    def __init__(self, stem: Callable[[str], str] = light_stem) -> None:
        self._stem = stem

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            yield token.copy_with(text=self._stem(token.text))


class AnalyzerPipeline:
    """Tokenizer plus filters; positions are renumbered after filtering."""

    def __init__(self, tokenizer: Tokenizer, filters: Sequence[TokenFilter] | None = None) -> None:
        self.tokenizer = tokenizer
        self.filters = list(filters or [])

    def __call__(self, text: str) -> list[Token]:
        stream: Iterable[Token] = self.tokenizer(text)
        for token_filter in self.filters:
            stream = token_filter(stream)
        tokens = list(stream)
        for idx, token in enumerate(tokens):
            token.position = idx
        return tokens


class SimpleAnalyzer:
    def __init__(self) -> None:
        self.pipeline = AnalyzerPipeline(RegexTokenizer(), [LowercaseFilter(), EmptyTokenFilter()])

    def __call__(self, text: str) -> list[Token]:
        return self.pipeline(text)


class EnglishAnalyzer:
    def __init__(self, *, stopwords: Sequence[str] | None = None) -> None:
        filters: list[TokenFilter] = [LowercaseFilter(), StopFilter(stopwords), StemFilter(), EmptyTokenFilter()]
        self.pipeline = AnalyzerPipeline(RegexTokenizer(), filters)

    def __call__(self, text: str) -> list[Token]:
        return self.pipeline(text)


class KeywordAnalyzer:
    """Treat the whole stripped value as one lowercased token."""

    def __call__(self, text: str) -> list[Token]:
        stripped = text.strip()
        if not stripped:
            return []
        start = text.index(stripped)
        return [Token(text=stripped.lower(), position=0, start_char=start, end_char=start + len(stripped))]


_ANALYZER_FACTORIES: dict[str, Callable[[], Analyzer]] = {
    "simple": SimpleAnalyzer,
    "english": EnglishAnalyzer,
    "keyword": KeywordAnalyzer,
}

DEFAULT_ANALYZER = "simple"


def available_analyzers() -> list[str]:
    return sorted(_ANALYZER_FACTORIES)


def get_analyzer(name: str | None) -> Analyzer:
    """Return a fresh analyzer by name, defaulting to ``simple``."""

    if name is None:
        return _ANALYZER_FACTORIES[DEFAULT_ANALYZER]()
    normalized = name.lower()
    if normalized not in _ANALYZER_FACTORIES:
        msg = f"Unknown analyzer '{name}'. Available: {available_analyzers()}"
        raise ValueError(msg)
    return _ANALYZER_FACTORIES[normalized]()


def analyze_terms(analyzer: Analyzer, text: str) -> list[str]:
    """Return token texts in order, duplicates included."""

    return [token.text for token in analyzer(text)]
