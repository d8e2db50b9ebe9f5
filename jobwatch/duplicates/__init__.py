"""Duplicate detection and consolidation of stored job matches."""

from .consolidation import (
    ConsolidationSummary,
    DuplicateConsolidator,
    duplicate_statistics,
    merge_flags,
    select_posting_to_keep,
)
from .detector import (
    CONFIDENCE_FUZZY_HASH,
    CONFIDENCE_NONE,
    CONFIDENCE_PRIMARY_HASH,
    CONFIDENCE_SIMILAR,
    CONFIDENCE_URL,
    DuplicateCheckResult,
    DuplicateDetector,
)
from .similarity import SIMILARITY_WEIGHTS, posting_similarity, url_domain

__all__ = [
    "CONFIDENCE_FUZZY_HASH",
    "CONFIDENCE_NONE",
    "CONFIDENCE_PRIMARY_HASH",
    "CONFIDENCE_SIMILAR",
    "CONFIDENCE_URL",
    "ConsolidationSummary",
    "DuplicateCheckResult",
    "DuplicateConsolidator",
    "DuplicateDetector",
    "SIMILARITY_WEIGHTS",
    "duplicate_statistics",
    "merge_flags",
    "posting_similarity",
    "select_posting_to_keep",
    "url_domain",
]
