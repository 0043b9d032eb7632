"""Text normalization, similarity scoring and excerpt location."""

import re
from typing import FrozenSet, List, Optional, Set, Tuple

from ..models.claim import QuoteLocation

STOP_WORDS: FrozenSet[str] = frozenset({
    "the", "and", "for", "are", "but", "not", "you", "all", "any", "can", "had", "her",
    "was", "one", "our", "out", "has", "have", "him", "his", "how", "its", "may", "new",
    "now", "see", "who", "did", "get", "let", "say", "she", "too", "use", "that", "with",
    "this", "from", "they", "been", "were", "said", "each", "which", "their", "there",
    "will", "would", "could", "should", "about", "into", "than", "them", "then", "these",
    "those", "what", "when", "where", "while", "also", "more", "most", "some", "such",
    "only", "over", "very", "just", "being", "other", "after", "before", "between",
    "per", "cent", "percent", "according", "reported", "report", "reports",
})

_QUOTE_FOLD = str.maketrans({
    "“": '"', "”": '"', "„": '"', "«": '"', "»": '"',
    "‘": "'", "’": "'", "‚": "'", "′": "'",
    "\u2013": "-", "\u2014": "-", "\u00a0": " ",
})

_WORD = re.compile(r"[a-z0-9]+(?:['\-][a-z0-9]+)*")
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+(?=[A-Z0-9\"“(])")


def fold_quotes(text: str) -> str:
    """Replace typographic quotes and dashes with their ASCII forms."""
    return text.translate(_QUOTE_FOLD)


def normalize_text(text: str) -> str:
    """Lowercase, fold quotes, collapse whitespace and drop a trailing period."""
    folded = " ".join(fold_quotes(text).lower().split())
    return folded.rstrip(".").strip()


def content_words(text: str) -> Set[str]:
    """Words of at least three characters that are not stop-words."""
    return {
        word for word in _WORD.findall(normalize_text(text))
        if len(word) >= 3 and word not in STOP_WORDS
    }


def jaccard(a: Set[str], b: Set[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def length_ratio(a: str, b: str) -> float:
    """Length of the shorter string over the longer one."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 0.0
    return min(len(a), len(b)) / longest


def split_sentences(text: str) -> List[Tuple[int, str]]:
    """Split text into sentence-like units, returning (offset, sentence) pairs.

    Boundaries need whitespace after the punctuation, so decimals stay intact.
    """
    units = []
    start = 0
    for boundary in _SENTENCE_BOUNDARY.finditer(text):
        units.append((start, text[start:boundary.start()]))
        start = boundary.end()
    units.append((start, text[start:]))
    return [(offset, unit) for offset, unit in units if unit.strip()]


def _fold_with_map(text: str) -> Tuple[str, List[int]]:
    """Fold text for lenient matching, keeping a map back to original offsets."""
    folded: List[str] = []
    offsets: List[int] = []
    pending_space = False
    for index, char in enumerate(fold_quotes(text)):
        if char.isspace():
            pending_space = bool(folded)
            continue
        if pending_space:
            folded.append(" ")
            offsets.append(index - 1)
            pending_space = False
        for lowered in char.lower():
            folded.append(lowered)
            offsets.append(index)
    return "".join(folded), offsets


def locate_excerpt(text: str, excerpt: str) -> Optional[QuoteLocation]:
    """Find an excerpt in text, verbatim or after whitespace, case and quote folding.

    Args:
        text: Source text to search
        excerpt: Supporting excerpt to locate

    Returns:
        Location of the excerpt, or None when it is not present
    """
    if not excerpt or not excerpt.strip() or not text:
        return None

    start = text.find(excerpt)
    if start >= 0:
        return QuoteLocation(
            line=text.count("\n", 0, start) + 1,
            start=start,
            end=start + len(excerpt),
            match_type="exact",
        )

    folded_text, offsets = _fold_with_map(text)
    folded_excerpt = " ".join(fold_quotes(excerpt).lower().split())
    position = folded_text.find(folded_excerpt)
    if position < 0:
        return None
    start = offsets[position]
    end = offsets[position + len(folded_excerpt) - 1] + 1
    return QuoteLocation(
        line=text.count("\n", 0, start) + 1,
        start=start,
        end=end,
        match_type="normalized",
    )
