"""Posting hashes used for duplicate detection.

A posting is identified by ``sha256(url|title|company)`` over normalized
fields. A few fuzzy variants catch the same role re-listed without a company
name or with different seniority wording.
"""

import hashlib
import re
from typing import List, Optional
from urllib.parse import urlsplit

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_LEGAL_SUFFIX = re.compile(r"(?:[\s,]+(?:inc|ltd|llc|corp|corporation|company|co)\b\.?)+\s*$")
_SENIORITY = re.compile(r"\b(senior|junior|lead|principal|staff)\b")
_QUERY_OR_FRAGMENT = re.compile(r"[?#].*$")


def hash_string(value: str) -> str:
    """SHA256 hex digest of a UTF-8 string."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _collapse(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip()


def normalize_url(url: Optional[str]) -> str:
    """Canonical form of a posting URL.

    Query string, fragment and credentials are dropped and scheme, host
    (with any port) and path are lower-cased, so tracking parameters never
    produce a new identity.

    Example:
        >>> normalize_url("HTTPS://Jobs.Example.com/Role/1?utm_source=x#apply")
        'https://jobs.example.com/role/1'
    """
    if not url:
        return ""
    raw = url.strip()
    parts = urlsplit(raw)
    if parts.scheme and parts.hostname:
        host = parts.netloc.rsplit("@", 1)[-1].lower()
        return f"{parts.scheme.lower()}://{host}{parts.path.lower()}"
    return _QUERY_OR_FRAGMENT.sub("", raw).lower()


def normalize_title(title: Optional[str]) -> str:
    """Lower-case a title and strip punctuation."""
    if not title:
        return ""
    return _collapse(_NON_WORD.sub("", title.lower()))


def normalize_company(company: Optional[str]) -> str:
    """Lower-case a company name and drop trailing legal suffixes (inc, ltd, llc, corp, co)."""
    if not company:
        return ""
    without_suffix = _LEGAL_SUFFIX.sub("", company.lower())
    return _collapse(_NON_WORD.sub("", without_suffix))


def strip_seniority(normalized_title: str) -> str:
    """Remove seniority tokens from an already normalized title."""
    return _collapse(_SENIORITY.sub("", normalized_title))


def compute_primary_hash(url: Optional[str], title: Optional[str], company: Optional[str]) -> str:
    """Primary identity hash of a posting.

    Args:
        url: Posting URL (normalized here)
        title: Posting title (normalized here)
        company: Company name (normalized here, may be empty)

    Returns:
        64-character hex digest of ``url|title|company``
    """
    return hash_string(
        f"{normalize_url(url)}|{normalize_title(title)}|{normalize_company(company)}"
    )


def compute_fuzzy_hashes(
    url: Optional[str], title: Optional[str], company: Optional[str]
) -> List[str]:
    """Ordered alternate hashes for a posting.

    The list starts with the primary hash, then a hash without the company
    segment, then (only when it differs) a hash with seniority tokens removed
    from the title.

    Args:
        url: Posting URL
        title: Posting title
        company: Company name

    Returns:
        Two or three hex digests, primary first
    """
    norm_url = normalize_url(url)
    norm_title = normalize_title(title)
    norm_company = normalize_company(company)

    primary = hash_string(f"{norm_url}|{norm_title}|{norm_company}")
    hashes = [primary, hash_string(f"{norm_url}|{norm_title}")]

    unranked_title = strip_seniority(norm_title)
    if unranked_title != norm_title:
        seniority_hash = hash_string(f"{norm_url}|{unranked_title}|{norm_company}")
        if seniority_hash != primary:
            hashes.append(seniority_hash)
    return hashes
