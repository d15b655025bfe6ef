"""
Recommendation pipeline: scoring, cold start, profiles and the engine.
"""

from .cold_start import (
    ColdStartHandler,
    ColdStartOutcome,
    ColdStartStrategy,
    DemographicStrategy,
    LLMStrategy,
    PreferencePrior,
    ProgressiveLearningPlan,
    TrendingStrategy,
    adapt_from_early_interactions,
    needs_cold_start,
    select_strategy,
)
from .engine import RecommendationEngine
from .profiles import ProfileService
from .scoring import DEFAULT_WEIGHTS, ScoreBreakdown, Scorer, ScoringPolicy, cosine_similarity

__all__ = [
    "ColdStartHandler",
    "ColdStartOutcome",
    "ColdStartStrategy",
    "DEFAULT_WEIGHTS",
    "DemographicStrategy",
    "LLMStrategy",
    "PreferencePrior",
    "ProfileService",
    "ProgressiveLearningPlan",
    "RecommendationEngine",
    "ScoreBreakdown",
    "Scorer",
    "ScoringPolicy",
    "TrendingStrategy",
    "adapt_from_early_interactions",
    "cosine_similarity",
    "needs_cold_start",
    "select_strategy",
]
