"""Weighted text similarity between two postings.

Works on anything exposing ``title``, ``company``, ``location`` and ``url``
(NormalizedPosting or JobMatchRecord). Title always counts; the other
fields only count when both sides have them, and the result is divided by
the weight actually used.
"""

from typing import Optional
from urllib.parse import urlsplit

from jobwatch.utils.text import jaccard_similarity

SIMILARITY_WEIGHTS = {
    "title": 0.4,
    "company": 0.3,
    "location": 0.2,
    "url_domain": 0.1,
}


def url_domain(url: Optional[str]) -> str:
    """Lower-cased host name of ``url``, or an empty string."""
    if not url:
        return ""
    try:
        return (urlsplit(url.strip()).hostname or "").lower()
    except ValueError:
        return ""


def posting_similarity(left, right) -> float:
    """Similarity in [0, 1] between two posting-like objects."""
    score = SIMILARITY_WEIGHTS["title"] * jaccard_similarity(left.title, right.title)
    used = SIMILARITY_WEIGHTS["title"]

    if left.company and right.company:
        score += SIMILARITY_WEIGHTS["company"] * jaccard_similarity(left.company, right.company)
        used += SIMILARITY_WEIGHTS["company"]

    if left.location and right.location:
        score += SIMILARITY_WEIGHTS["location"] * jaccard_similarity(left.location, right.location)
        used += SIMILARITY_WEIGHTS["location"]

    left_domain, right_domain = url_domain(left.url), url_domain(right.url)
    if left_domain and right_domain:
        score += SIMILARITY_WEIGHTS["url_domain"] * (1.0 if left_domain == right_domain else 0.0)
        used += SIMILARITY_WEIGHTS["url_domain"]

    return score / used
