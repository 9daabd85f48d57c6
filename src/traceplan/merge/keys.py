"""
Key normalization and string similarity for plan merging.

Near-duplicate labels from different batches ("Bug Report", "Defect Log",
"Auth", "authentication") are reduced to comparable keys, then compared
with a normalized Levenshtein similarity.
"""

import re
from typing import Any, Iterable, Optional

from ..config import MergeSettings

# Group key for items with no usable primary field; never fuzzy-matched
UNSPECIFIED_KEY = '__UNSPECIFIED__'

# Similarity scores are ratios of small integers; compare with a tolerance
_EPSILON = 1e-9

_NON_ALNUM = re.compile(r'[^\w\s]|_')
_WHITESPACE = re.compile(r'\s+')


def normalize_text(value: Any) -> str:
    """Trimmed string form of a value; None becomes ''."""
    if value is None:
        return ''
    return str(value).strip()


class KeyNormalizer:
    """
    Reduce free text to a grouping key.

    Steps: lower-case, apply the alias table, replace punctuation with
    spaces, collapse whitespace, drop stopwords.
    """

    def __init__(self, settings: Optional[MergeSettings] = None):
        settings = settings or MergeSettings()
        self.aliases = [
            (re.compile(pattern, re.IGNORECASE), replacement)
            for pattern, replacement in settings.aliases.items()
        ]
        self.stopwords = frozenset(settings.stopwords)

    def __call__(self, value: Any) -> str:
        return self.normalize(value)

    def normalize(self, value: Any) -> str:
        text = normalize_text(value).lower()
        if not text:
            return ''

        for pattern, replacement in self.aliases:
            text = pattern.sub(replacement, text)

        text = _NON_ALNUM.sub(' ', text)
        text = _WHITESPACE.sub(' ', text).strip()
        return ' '.join(word for word in text.split(' ') if word and word not in self.stopwords)

    def group_key(self, value: Any) -> str:
        """
        Normalized key, or the lower-cased raw text when normalization
        leaves nothing (stopword-only or punctuation-only labels).

        Only empty input yields ''.
        """
        return self.normalize(value) or _WHITESPACE.sub(' ', normalize_text(value).lower())

    def snippet(self, value: Any, words: int) -> str:
        """Group key truncated to its first `words` words."""
        return ' '.join(self.group_key(value).split(' ')[:words])


def levenshtein(a: str, b: str) -> int:
    """Edit distance (insert, delete, substitute) between two strings."""
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """
    Normalized similarity: 1 - distance / max(len).

    Two empty strings are identical (1.0); one empty string matches
    nothing (0.0).
    """
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1.0 - levenshtein(a, b) / max(len(a), len(b))


def find_similar_key(
    existing_keys: Iterable[str],
    key: str,
    threshold: float
) -> Optional[str]:
    """
    Find the existing key most similar to `key`.

    Args:
        existing_keys: Group keys seen so far, in creation order
        key: Candidate key
        threshold: Minimum similarity (inclusive)

    Returns:
        The best-scoring key at or above the threshold (earliest wins on
        ties), or None. Unspecified and empty keys never match.
    """
    if not key or key == UNSPECIFIED_KEY:
        return None

    best_key = None
    best_score = -1.0
    for existing in existing_keys:
        if not existing or existing == UNSPECIFIED_KEY:
            continue
        score = similarity(existing, key)
        if score + _EPSILON >= threshold and score > best_score + _EPSILON:
            best_key = existing
            best_score = score
    return best_key
