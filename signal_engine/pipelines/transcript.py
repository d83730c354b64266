"""
Transcript helpers for the live pipeline
signal_engine/pipelines/transcript.py
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

DEFAULT_HALLUCINATION_PHRASES = (
    "thank you for watching",
    "thanks for watching",
    "like and subscribe",
    "subscribe to my channel",
    "hit the bell",
)

# "[Music]", "(applause)", "music." ... as the whole fragment
_BARE_NOISE_RE = re.compile(r"^\W*(music|applause)\W*$", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
_REPEATED_WORD_RE = re.compile(r"\b(\w+)(?:\s+\1\b)+", re.IGNORECASE)
_FILLER_RE = re.compile(r"\b(?:um|uh|er|ah)\b[,.]?\s*", re.IGNORECASE)


def normalize_fragment(fragment: Optional[str]) -> str:
    """Collapse whitespace and case-fold (used for duplicate checks)."""
    return _WHITESPACE_RE.sub(" ", fragment or "").strip().casefold()


def is_hallucination(fragment: str, phrases: Optional[Iterable[str]] = None) -> bool:
    """True for stock phrases speech-to-text emits on silence or noise."""
    text = normalize_fragment(fragment)
    if not text:
        return False
    if _BARE_NOISE_RE.match(text):
        return True
    return any(p.casefold() in text for p in (phrases or DEFAULT_HALLUCINATION_PHRASES))


def clean_transcript(text: str) -> str:
    """Collapse immediately repeated words and strip um/uh/er/ah fillers."""
    cleaned = _REPEATED_WORD_RE.sub(r"\1", text or "")
    cleaned = _FILLER_RE.sub("", cleaned)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def append_bounded(window: str, fragment: str, max_chars: int) -> str:
    """Append a fragment, trimming the oldest content beyond max_chars."""
    combined = f"{window} {fragment.strip()}".strip() if window else fragment.strip()
    if len(combined) <= max_chars:
        return combined
    trimmed = combined[-max_chars:]
    # Drop the partial leading word left by the cut
    space = trimmed.find(" ")
    if 0 <= space < len(trimmed) - 1 and not combined[-max_chars - 1].isspace():
        trimmed = trimmed[space + 1:]
    return trimmed


def tail(text: str, max_chars: int) -> str:
    """The newest max_chars of a window."""
    if max_chars <= 0:
        return ""
    return text[-max_chars:] if len(text) > max_chars else text
