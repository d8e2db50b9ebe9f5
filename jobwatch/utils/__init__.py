"""Shared helpers for text cleanup, posting hashes and UTC timestamps."""

from .hashing import (
    compute_fuzzy_hashes,
    compute_primary_hash,
    hash_string,
    normalize_company,
    normalize_title,
    normalize_url,
    strip_seniority,
)
from .text import clean_text, jaccard_similarity, significant_words, tokenize
from .timestamps import (
    ensure_utc,
    format_timestamp,
    parse_epoch_millis,
    parse_iso_datetime,
    utc_now,
)

__all__ = [
    # Hashing
    "compute_primary_hash",
    "compute_fuzzy_hashes",
    "hash_string",
    "normalize_url",
    "normalize_title",
    "normalize_company",
    "strip_seniority",
    # Text
    "clean_text",
    "tokenize",
    "significant_words",
    "jaccard_similarity",
    # Timestamps
    "utc_now",
    "ensure_utc",
    "parse_iso_datetime",
    "parse_epoch_millis",
    "format_timestamp",
]
