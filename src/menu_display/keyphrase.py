"""Reduce a dish title to a handful of meaningful words."""

from __future__ import annotations

import re
from typing import Iterable, Iterator, List, Tuple

DEFAULT_MAX_WORDS = 4

FRENCH_STOPWORDS = {
    "aux", "de", "et", "avec", "à", "a", "le", "la", "du", "des", "en", "au", "sur", "pour",
    "les", "un", "une", "deux", "trois", "quatre", "d'", "l'",
}
ENGLISH_STOPWORDS = {
    "with", "and", "of", "in", "for", "the", "to", "on", "at", "from", "by", "an", "a",
    "one", "two", "three", "four",
}
# Marketing words that never help tell two dishes apart.
NOISE_WORDS = {
    "fresh", "old fashioned", "organic", "mature", "traditional", "natural", "style",
    "sliced", "drenched",
}
STOPWORDS = frozenset(word.lower() for word in FRENCH_STOPWORDS | ENGLISH_STOPWORDS | NOISE_WORDS)

_DELETED_CHARS = str.maketrans({",": None, ".": None, ";": None, "&": None, ":": None, "(": None, ")": None})
_SPLIT_CHARS = str.maketrans({"/": " ", "-": " "})
ELISION_RE = re.compile(r"^([A-Za-z]')(.+)$")


def is_stopword(word: str, stopwords: Iterable[str] = STOPWORDS) -> bool:
    return word.lower() in stopwords


def iter_tokens(title: str) -> Iterator[str]:
    """Yield cleaned tokens of a title in order, including sub-tokens produced by '/' and '-'."""
    for raw in title.split(" "):
        cleaned = raw.strip().translate(_DELETED_CHARS).translate(_SPLIT_CHARS)
        for piece in cleaned.split():
            match = ELISION_RE.match(piece)
            if match:
                yield match.group(1)
                yield match.group(2)
            else:
                yield piece


def trimmed_key_words(title: str, max_words: int = DEFAULT_MAX_WORDS, stopwords: Iterable[str] = STOPWORDS) -> str:
    """Keep the first ``max_words`` non-stopword tokens of ``title``, space separated.

    Multi-word stopwords such as "old fashioned" drop the whole run of adjacent tokens.
    """
    if max_words <= 0:
        return ""
    stops = frozenset(word.lower() for word in stopwords)
    phrases = sorted((tuple(word.split()) for word in stops if " " in word), key=len, reverse=True)
    tokens = list(iter_tokens(title))
    words: List[str] = []
    i = 0
    while i < len(tokens) and len(words) < max_words:
        run = _phrase_length(tokens, i, phrases)
        if run:
            i += run
            continue
        if not is_stopword(tokens[i], stops):
            words.append(tokens[i])
        i += 1
    return " ".join(words)


def _phrase_length(tokens: List[str], start: int, phrases: List[Tuple[str, ...]]) -> int:
    for phrase in phrases:
        window = tuple(token.lower() for token in tokens[start : start + len(phrase)])
        if window == phrase:
            return len(phrase)
    return 0
