"""Posting normalization: text cleanup, salary parsing, contract inference, hashes."""

from .salary import parse_salary
from .service import (
    REMOTE_INDICATORS,
    PostingNormalizer,
    has_remote_indicator,
    infer_contract_type,
    normalize_location,
    validate_posting,
)

__all__ = [
    "PostingNormalizer",
    "REMOTE_INDICATORS",
    "has_remote_indicator",
    "infer_contract_type",
    "normalize_location",
    "parse_salary",
    "validate_posting",
]
