"""Relevance scoring for postings that already matched a profile.

Weights sum to 100. The score only ranks matches within a digest and never
decides whether a posting matches.
"""

from typing import Optional

from jobwatch.domain.models import NormalizedPosting, SearchProfile

from .engine import MatchEvaluator
from .models import CriterionResult, MatchEvaluation, MatchResult

SCORE_WEIGHTS = {
    "title": 30,
    "keywords": 25,
    "location": 20,
    "contract_type": 15,
    "salary": 10,
}

LOCATION_PARTIAL = 15

# Criteria that were compared for real, as opposed to passing by default
_CONTRACT_AWARDED = {"accepted"}
_SALARY_AWARDED = {"overlap", "day_rate"}


def _half_up(value: float) -> int:
    return int(value + 0.5)


def fallback_points(weight: int) -> int:
    """Points for a criterion the profile left unset: half the weight, rounded up."""
    return (weight + 1) // 2


class ScoringEngine:
    """Deterministic 0-100 relevance score for matched (posting, profile) pairs."""

    def __init__(self, evaluator: Optional[MatchEvaluator] = None):
        self.evaluator = evaluator or MatchEvaluator()

    def score(
        self,
        posting: NormalizedPosting,
        profile: SearchProfile,
        evaluation: Optional[MatchEvaluation] = None,
    ) -> int:
        """Score a pair that already passed MatchEvaluator.

        Args:
            posting: Matched posting
            profile: Profile it matched
            evaluation: Breakdown from MatchEvaluator.evaluate (recomputed if omitted)

        Returns:
            Integer score in [0, 100]
        """
        if evaluation is None:
            evaluation = self.evaluator.evaluate(posting, profile)
        criteria = evaluation.criteria

        total = (
            self._proportional(criteria["title"], SCORE_WEIGHTS["title"])
            + self._proportional(criteria["keywords"], SCORE_WEIGHTS["keywords"])
            + self._location_points(posting, profile)
            + self._binary(criteria["contract_type"], SCORE_WEIGHTS["contract_type"], _CONTRACT_AWARDED)
            + self._binary(criteria["salary"], SCORE_WEIGHTS["salary"], _SALARY_AWARDED)
        )
        return max(0, min(100, total))

    def build_result(
        self,
        posting: NormalizedPosting,
        profile: SearchProfile,
        evaluation: MatchEvaluation,
    ) -> MatchResult:
        """Wrap a successful evaluation into a scored MatchResult."""
        return MatchResult(
            posting=posting,
            profile=profile,
            score=self.score(posting, profile, evaluation),
            criteria=dict(evaluation.criteria),
        )

    @staticmethod
    def _proportional(result: CriterionResult, weight: int) -> int:
        if not result.specified:
            return fallback_points(weight)
        if result.reason == "verbatim":
            return weight
        return _half_up(weight * result.fraction)

    @staticmethod
    def _location_points(posting: NormalizedPosting, profile: SearchProfile) -> int:
        if profile.location.remote and posting.is_remote:
            return SCORE_WEIGHTS["location"]
        return LOCATION_PARTIAL

    @staticmethod
    def _binary(result: CriterionResult, weight: int, awarded_reasons) -> int:
        if result.specified and result.reason in awarded_reasons:
            return weight
        return fallback_points(weight)
