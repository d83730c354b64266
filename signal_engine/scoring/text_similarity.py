"""
Text Similarity Helpers
signal_engine/scoring/text_similarity.py

Pure functions used when merging task output:
  - content-word normalisation
  - overlap coefficient between two texts (duplicate detection)
  - deduplication keeping the highest-scored item
  - evidence validation of quotes against the source window
"""

import re
from typing import Callable, FrozenSet, List, Sequence, TypeVar

from rapidfuzz import fuzz

T = TypeVar("T")

_WORD_RE = re.compile(r"[a-z0-9']+")

_STOPWORDS: FrozenSet[str] = frozenset(
    """
    the and but for nor yet not are was were been being have has had does did
    you your yours they them their this that these those with from into onto
    about just really very also then than there here what when where which who
    whom why how all any some can could would should will shall may might must
    our ours its it's i'm i've i'd i'll we're you're they're don't can't won't
    """.split()
)


def normalize_content_words(text: str) -> FrozenSet[str]:
    """Lower-cased words longer than 2 chars, stopwords removed."""
    words = _WORD_RE.findall((text or "").lower())
    return frozenset(w for w in words if len(w) > 2 and w not in _STOPWORDS)


def word_overlap_ratio(a: str, b: str) -> float:
    """
    Overlap coefficient |A ∩ B| / min(|A|, |B|) over content words.

    Returns 0.0 when either side has no content words.
    """
    words_a = normalize_content_words(a)
    words_b = normalize_content_words(b)
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / min(len(words_a), len(words_b))


def deduplicate(
    items: Sequence[T],
    key: Callable[[T], str],
    score: Callable[[T], float],
    threshold: float = 0.65,
) -> List[T]:
    """
    Drop near-duplicates, keeping the highest-scored item of each group.

    Items are visited in descending score order (stable for ties), so the
    survivor is always the best-scored member of its group.
    """
    ranked = sorted(items, key=lambda item: -score(item))
    kept: List[T] = []
    for item in ranked:
        text = key(item)
        if any(word_overlap_ratio(text, key(other)) > threshold for other in kept):
            continue
        kept.append(item)
    return kept


def validate_evidence(
    evidence: str,
    source: str,
    word_match_ratio: float = 0.8,
    fuzzy_threshold: float = 85.0,
) -> bool:
    """
    True when the evidence plausibly appears in the source window.

    Accepts either: at least `word_match_ratio` of the evidence words
    (len > 2) occur in the source, or a RapidFuzz partial ratio of at least
    `fuzzy_threshold`.
    """
    quote = (evidence or "").strip().lower()
    window = (source or "").lower()
    if not quote or not window:
        return False
    if quote in window:
        return True

    quote_words = [w for w in _WORD_RE.findall(quote) if len(w) > 2]
    if quote_words:
        source_words = set(_WORD_RE.findall(window))
        matched = sum(1 for w in quote_words if w in source_words)
        if matched / len(quote_words) >= word_match_ratio:
            return True

    return fuzz.partial_ratio(quote, window) >= fuzzy_threshold
