"""Profile matching (AND semantics) and relevance scoring."""

from .engine import LOCATION_ALIASES, MatchEvaluator
from .models import CriterionResult, MatchEvaluation, MatchResult
from .scoring import SCORE_WEIGHTS, ScoringEngine

__all__ = [
    "CriterionResult",
    "LOCATION_ALIASES",
    "MatchEvaluation",
    "MatchEvaluator",
    "MatchResult",
    "SCORE_WEIGHTS",
    "ScoringEngine",
]
