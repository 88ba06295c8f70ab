"""
Similarity engine.

similarity(a, b) = (max_len - levenshtein(a', b')) / max_len

where a', b' are lower-cased with punctuation stripped. Equal normalized
strings short-circuit to 1.0 so identical titles never pay the O(n*m) cost.
"""

import re

import Levenshtein

_NON_WORD = re.compile(r"[^\w\s]")

TITLE_KEY_LENGTH = 50


def normalize_text(value: str | None) -> str:
    if not isinstance(value, str):
        return ""
    return _NON_WORD.sub("", value.lower()).strip()


def title_key(title: str | None) -> str:
    """Grouping key for a duplicate cluster: first 50 normalized characters."""
    return normalize_text(title)[:TITLE_KEY_LENGTH]


def edit_distance(a: str, b: str) -> int:
    return Levenshtein.distance(a, b)


def similarity(a: str | None, b: str | None) -> float:
    """Score in [0, 1]. Symmetric and deterministic; non-strings score 0.0."""
    if not isinstance(a, str) or not isinstance(b, str):
        return 0.0

    s1 = normalize_text(a)
    s2 = normalize_text(b)

    if s1 == s2:
        return 1.0

    max_len = max(len(s1), len(s2))
    if max_len == 0:
        return 1.0

    return (max_len - edit_distance(s1, s2)) / max_len
