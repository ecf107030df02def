"""
Text utilities for DPR analysis.

Normalization, tokenization and similarity measures shared by the
classifier, the gap analyzer and scheme matching.
"""

import re
from collections import Counter
from typing import Dict, Iterable, List, Set

import numpy as np


STOP_WORDS: Set[str] = {
    "the", "and", "for", "are", "but", "not", "you", "all", "any", "can",
    "had", "her", "was", "one", "our", "out", "day", "get", "has", "him",
    "his", "how", "its", "may", "new", "now", "old", "see", "two", "way",
    "who", "did", "let", "put", "say", "she", "too", "use", "this", "that",
    "with", "from", "have", "they", "will", "been", "were", "said", "each",
    "which", "their", "there", "what", "about", "would", "these", "other",
    "into", "more", "some", "than", "then", "them", "only", "also", "such",
    "shall", "under", "over", "per", "within", "upon", "being", "where",
}

_WORD_RE = re.compile(r"[a-z0-9]+")


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp value into [low, high]"""
    if value != value:  # NaN
        return low
    return max(low, min(high, value))


def normalize_text(text: str) -> str:
    """Normalize text for comparison"""
    text = text.lower()
    text = re.sub(r"[^\w\s]", " ", text)
    return " ".join(text.split())


def tokenize(text: str, min_length: int = 3, drop_stop_words: bool = True) -> List[str]:
    """Lowercase word tokens in order of appearance"""
    words = _WORD_RE.findall(text.lower())
    return [
        w for w in words
        if len(w) >= min_length and not (drop_stop_words and w in STOP_WORDS)
    ]


def word_set(text: str) -> Set[str]:
    return set(tokenize(text))


def jaccard(set1: Set[str], set2: Set[str]) -> float:
    """
    Jaccard = |A ∩ B| / |A ∪ B|

    Two empty sets have similarity 0.
    """
    if not set1 or not set2:
        return 0.0
    return len(set1 & set2) / len(set1 | set2)


def jaccard_similarity(text1: str, text2: str) -> float:
    """Jaccard similarity of the word sets of two texts"""
    return jaccard(word_set(text1), word_set(text2))


def levenshtein_distance(s1: str, s2: str) -> int:
    """Edit distance with unit insert/delete/substitute costs"""
    if s1 == s2:
        return 0
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, start=1):
        current = [i]
        for j, c2 in enumerate(s2, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (c1 != c2),
            ))
        previous = current
    return previous[-1]


def levenshtein_similarity(s1: str, s2: str) -> float:
    """(len(longer) - distance) / len(longer); 1.0 for two empty strings"""
    longer = max(len(s1), len(s2))
    if longer == 0:
        return 1.0
    return (longer - levenshtein_distance(s1, s2)) / longer


def cosine_similarity(text1: str, text2: str) -> float:
    """Cosine of the word-frequency vectors of two texts"""
    counts1 = Counter(tokenize(text1))
    counts2 = Counter(tokenize(text2))
    if not counts1 or not counts2:
        return 0.0

    vocabulary = sorted(set(counts1) | set(counts2))
    v1 = np.array([counts1.get(w, 0) for w in vocabulary], dtype=float)
    v2 = np.array([counts2.get(w, 0) for w in vocabulary], dtype=float)

    norm = np.linalg.norm(v1) * np.linalg.norm(v2)
    if norm == 0:
        return 0.0
    return float(clamp(np.dot(v1, v2) / norm))


def mean(values: Iterable[float]) -> float:
    """Mean of values, 0.0 for an empty iterable"""
    values = list(values)
    if not values:
        return 0.0
    return float(np.mean(values))


def context_window(text: str, start: int, end: int, radius: int = 50) -> str:
    """Lowercased text surrounding [start, end)"""
    return text[max(0, start - radius):min(len(text), end + radius)].lower()


def contains_any(text: str, terms: Iterable[str]) -> bool:
    return any(term in text for term in terms)


def extract_keywords(text: str, limit: int = 50, extra: Iterable[str] = ()) -> List[str]:
    """
    Frequency-ranked keywords with stop words removed.

    Terms in `extra` are placed first (deduplicated, in the given order).
    Ties are broken by first appearance so the result is deterministic.
    """
    keywords: List[str] = []
    seen: Set[str] = set()
    for term in extra:
        term = term.lower().strip()
        if term and term not in seen:
            seen.add(term)
            keywords.append(term)

    words = tokenize(text, min_length=4)
    first_seen: Dict[str, int] = {}
    for index, word in enumerate(words):
        first_seen.setdefault(word, index)
    counts = Counter(words)
    ranked = sorted(counts, key=lambda w: (-counts[w], first_seen[w]))

    for word in ranked:
        if word.isdigit() or word in seen:
            continue
        seen.add(word)
        keywords.append(word)

    return keywords[:limit]
