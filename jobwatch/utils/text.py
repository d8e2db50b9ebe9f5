"""Text cleanup and token helpers used by normalization, matching and dedup."""

import re
from typing import Iterable, List, Optional, Set

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
_WHITESPACE = re.compile(r"\s+")


def clean_text(value: Optional[str]) -> str:
    """Strip control characters, collapse whitespace and trim.

    Args:
        value: Raw text (None is treated as empty)

    Returns:
        Cleaned single-line text, possibly empty

    Example:
        >>> clean_text("  Senior\\tEngineer\\n ")
        'Senior Engineer'
    """
    if not value:
        return ""
    text = _CONTROL_CHARS.sub(" ", value)
    return _WHITESPACE.sub(" ", text).strip()


def tokenize(value: Optional[str]) -> List[str]:
    """Lower-case whitespace tokens of ``value``."""
    if not value:
        return []
    return value.lower().split()


def significant_words(value: Optional[str], min_length: int = 3) -> List[str]:
    """Lower-case words of at least ``min_length`` characters, in order."""
    return [word for word in tokenize(value) if len(word) >= min_length]


def jaccard_similarity(left: Optional[str], right: Optional[str]) -> float:
    """Token-set Jaccard similarity of two strings.

    Both sides are lower-cased and split on whitespace. Two empty inputs are
    considered unrelated (0.0) rather than identical.
    """
    left_tokens: Set[str] = set(tokenize(left))
    right_tokens: Set[str] = set(tokenize(right))
    if not left_tokens or not right_tokens:
        return 0.0
    return len(left_tokens & right_tokens) / len(left_tokens | right_tokens)


def contains_any(haystack: str, needles: Iterable[str]) -> bool:
    """True when any needle is a substring of ``haystack``."""
    return any(needle in haystack for needle in needles)
