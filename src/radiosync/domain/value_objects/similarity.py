"""String similarity used to score catalog candidates against announcements.

Two metrics are available:

- ``dice``: Sorensen-Dice coefficient over character bigrams (whitespace removed,
  bigrams counted as a multiset). Identical strings score 1.0, any string shorter than
  two characters scores 0.0 unless it is identical to the other.
- ``indel``: normalized Indel similarity from rapidfuzz (``fuzz.ratio / 100``).
"""

import re
from collections import Counter
from typing import Literal

from rapidfuzz import fuzz

SimilarityMetric = Literal["dice", "indel"]

# Substring containment floor: "ghostbusters" inside "ghostbusters theme" is a real hit
# even when the bigram overlap is diluted by the extra words.
CONTAINMENT_SCORE = 0.8

ARTIST_WEIGHT = 0.4
TITLE_WEIGHT = 0.6

_NON_WORD_PATTERN = re.compile(r"[^\w\s]")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def normalize_for_matching(text: str) -> str:
    """Lowercase, drop punctuation (anything not a word char or whitespace), strip."""
    return _NON_WORD_PATTERN.sub("", text.lower()).strip()


def dice_coefficient(first: str, second: str) -> float:
    first = _WHITESPACE_PATTERN.sub("", first)
    second = _WHITESPACE_PATTERN.sub("", second)

    if first == second:
        return 1.0
    if len(first) < 2 or len(second) < 2:
        return 0.0

    first_bigrams = Counter(first[i : i + 2] for i in range(len(first) - 1))
    second_bigrams = Counter(second[i : i + 2] for i in range(len(second) - 1))
    overlap = sum((first_bigrams & second_bigrams).values())

    return (2.0 * overlap) / (len(first) + len(second) - 2)


def indel_similarity(first: str, second: str) -> float:
    return fuzz.ratio(first, second) / 100.0


def similarity(first: str, second: str, metric: SimilarityMetric = "dice") -> float:
    """Similarity of two strings in [0, 1] using the selected metric."""
    if metric == "indel":
        return indel_similarity(first, second)
    return dice_coefficient(first, second)


def field_score(
    expected: str, candidate: str, metric: SimilarityMetric = "dice"
) -> float:
    """Score one field (artist or title), both inputs already normalized.

    Containment in either direction lifts the score to at least 0.8. Note that an empty
    string is contained in everything, so an empty field always scores at least 0.8.
    """
    contained = expected in candidate or candidate in expected
    return max(
        similarity(expected, candidate, metric),
        CONTAINMENT_SCORE if contained else 0.0,
    )


def combined_score(
    artist: str,
    title: str,
    candidate_artist: str,
    candidate_title: str,
    metric: SimilarityMetric = "dice",
) -> float:
    """Weighted artist/title score. Normalizes all four inputs first."""
    artist_score = field_score(
        normalize_for_matching(artist), normalize_for_matching(candidate_artist), metric
    )
    title_score = field_score(
        normalize_for_matching(title), normalize_for_matching(candidate_title), metric
    )
    return ARTIST_WEIGHT * artist_score + TITLE_WEIGHT * title_score


__all__ = [
    "ARTIST_WEIGHT",
    "CONTAINMENT_SCORE",
    "TITLE_WEIGHT",
    "SimilarityMetric",
    "combined_score",
    "dice_coefficient",
    "field_score",
    "indel_similarity",
    "normalize_for_matching",
    "similarity",
]
