"""Name normalization and similarity scoring.

Word overlap is used instead of edit distance: Hebrew product names move
words around far more than they misspell them.
"""

from __future__ import annotations

from .policy import WORD_OVERLAP_FACTOR


def normalize(name: str) -> str:
    """Lowercase, trim, and collapse runs of whitespace."""
    return " ".join(name.lower().split())


def compute_similarity(query: str, candidate: str) -> float:
    """Score two normalized names in [0, 1]."""
    if query == candidate:
        return 1.0
    if not query or not candidate:
        return 0.0

    if candidate in query:
        return 0.6 + 0.3 * (len(candidate) / len(query))
    if query in candidate:
        return 0.5 + 0.3 * (len(query) / len(candidate))

    query_words = [w for w in query.split(" ") if len(w) > 1]
    candidate_words = [w for w in candidate.split(" ") if len(w) > 1]
    if not query_words or not candidate_words:
        return 0.0

    shorter, longer = sorted((query_words, candidate_words), key=len)
    matched = sum(
        1
        for word in shorter
        if any(word == other or word in other or other in word for other in longer)
    )
    return matched / len(shorter) * WORD_OVERLAP_FACTOR
