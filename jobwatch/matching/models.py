"""Data models for match evaluation and scored match results."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from jobwatch.domain.models import NormalizedPosting, SearchProfile


@dataclass
class CriterionResult:
    """Outcome of one profile criterion against one posting.

    Attributes:
        name: Criterion name (title, keywords, location, contract_type, salary)
        specified: Whether the profile sets this criterion at all
        passed: Whether the posting satisfies it
        reason: Short code explaining the decision (e.g. "verbatim", "remote")
        fraction: Share of title words or keywords found, 1.0 when not applicable
    """

    name: str
    specified: bool
    passed: bool
    reason: str = ""
    fraction: float = 1.0


@dataclass
class MatchEvaluation:
    """Per-criterion breakdown of a posting against a profile."""

    criteria: Dict[str, CriterionResult] = field(default_factory=dict)

    @property
    def is_match(self) -> bool:
        return all(result.passed for result in self.criteria.values())

    @property
    def failed_criteria(self) -> List[str]:
        return [name for name, result in self.criteria.items() if not result.passed]


@dataclass
class MatchResult:
    """A posting that satisfies a profile, with its relevance score.

    Attributes:
        posting: The matched posting
        profile: The profile it satisfies
        score: Relevance score in [0, 100], used for ranking only
        criteria: Criterion-level detail the score was computed from
        match_id: Store id, set once the match is saved
    """

    posting: NormalizedPosting
    profile: SearchProfile
    score: int
    criteria: Dict[str, CriterionResult] = field(default_factory=dict)
    match_id: Optional[int] = None

    @property
    def profile_id(self) -> str:
        return self.profile.id

    def criteria_summary(self) -> Dict[str, bool]:
        """Criterion name to pass flag, for storage and notifications."""
        return {name: result.passed for name, result in self.criteria.items()}

    def sort_key(self):
        """Ranking key: best score first, then newest, then title."""
        return (-self.score, -self.posting.posted_at.timestamp(), self.posting.title.lower())
