"""
Lexical similarity, word frequency and prevalence scoring.

Tokenisation everywhere is the same: lowercase, split on whitespace.
Similarity works on raw token sets; stopword and short-token filtering
only applies to word frequency and prevalence.
"""

import math
from collections import Counter
from typing import Dict, Iterable, List, Mapping, Set

STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "is", "are", "was", "were", "be", "been", "being", "have", "has", "had",
    "do", "does", "did", "will", "would", "should", "could", "may", "might",
    "can", "this", "that", "these", "those", "i", "you", "he", "she", "it",
    "we", "they",
})

MIN_QUALIFYING_LENGTH = 3


def tokenize(text: str) -> List[str]:
    if not text:
        return []
    return text.lower().split()


def token_set(text: str) -> Set[str]:
    return set(tokenize(text))


def similarity(a: str, b: str) -> float:
    """
    Jaccard index of the two texts' token sets.

    Returns 0.0 when either text is empty, so ``similarity("", "")`` is 0
    and ``similarity(a, a)`` is 1 only for non-empty ``a``.
    """
    set_a = token_set(a)
    set_b = token_set(b)
    if not set_a or not set_b:
        return 0.0

    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def qualifying_tokens(text: str) -> List[str]:
    """Tokens that count towards word frequency: longer than two chars, not stopwords."""
    return [
        token for token in tokenize(text)
        if len(token) >= MIN_QUALIFYING_LENGTH and token not in STOPWORDS
    ]


def word_frequency(texts: Iterable[str]) -> Dict[str, int]:
    """Tally qualifying tokens over every text in the batch."""
    counts: Counter = Counter()
    for text in texts:
        counts.update(qualifying_tokens(text))
    return dict(counts)


def prevalence(text: str, frequency: Mapping[str, int]) -> float:
    """
    Average of ``ln(freq + 1)`` over the text's qualifying tokens.

    A token missing from ``frequency`` counts as seen once (the text
    itself contains it). No qualifying tokens means a prevalence of 0.
    """
    tokens = qualifying_tokens(text)
    if not tokens:
        return 0.0

    score = sum(math.log(frequency.get(token, 1) + 1) for token in tokens)
    return score / max(1, len(tokens))


def top_words(frequency: Mapping[str, int], min_count: int = 2, limit: int = 5) -> List[tuple]:
    """Most frequent words with at least ``min_count`` occurrences, ties kept in first-seen order."""
    ranked = sorted(
        ((word, count) for word, count in frequency.items() if count >= min_count),
        key=lambda item: item[1],
        reverse=True,
    )
    return ranked[:limit]


def preview(text: str, limit: int) -> str:
    """Truncate ``text`` to ``limit`` characters, marking the cut with an ellipsis."""
    if not text:
        return ""
    return text[:limit] + ("..." if len(text) > limit else "")
