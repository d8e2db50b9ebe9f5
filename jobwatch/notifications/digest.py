"""Building per-profile digests from an execution report."""

from typing import Any, Dict, List, Sequence

from jobwatch.domain.models import SearchProfile
from jobwatch.pipeline.models import ExecutionReport
from jobwatch.utils.timestamps import format_timestamp

from .models import AlertDigest


def build_digests(
    report: ExecutionReport,
    profiles: Sequence[SearchProfile],
    max_matches: int = 25,
    channel: str = "log",
) -> List[AlertDigest]:
    """One digest per profile that matched anything in ``report``.

    Matches are ranked by score, then recency, then title, and capped at
    ``max_matches``. Profiles are visited in the order given.
    """
    ranked = report.ranked_matches()
    digests = []
    for profile in profiles:
        matches = ranked.get(profile.id)
        if not matches:
            continue
        digests.append(
            AlertDigest(
                profile=profile,
                matches=matches[:max_matches],
                total_matches=len(matches),
                channel=channel,
            )
        )
    return digests


def digest_context(digest: AlertDigest) -> Dict[str, Any]:
    """Template variables for a digest."""
    profile = digest.profile
    return {
        "profile_id": profile.id,
        "profile_name": profile.name or profile.title or profile.id,
        "owner_id": profile.owner_id,
        "total_matches": digest.total_matches,
        "shown_matches": len(digest.matches),
        "matches": [
            {
                "title": match.posting.title,
                "company": match.posting.company or "Unknown company",
                "location": match.posting.location or "Unspecified",
                "url": match.posting.url,
                "score": match.score,
                "salary": match.posting.salary_text or "",
                "contract_type": (
                    match.posting.contract_type.value if match.posting.contract_type else ""
                ),
                "posted_at": format_timestamp(match.posting.posted_at),
                "source_site": match.posting.source_site,
            }
            for match in digest.matches
        ],
    }
