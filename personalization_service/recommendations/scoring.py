"""
Relevance scoring for (user, article) pairs.

The final score is a weighted sum of five terms: semantic similarity between
the user and article embeddings, category affinity, recency, popularity and a
diversity penalty for categories the user has been reading a lot lately. The
weights form a configurable policy.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np

from ..models import (
    ArticleEmbedding,
    ArticleRecord,
    RecommendationResult,
    UserEmbedding,
    UserProfile,
)
from ..models.utils import hours_between

TERMS = ("semantic", "category", "recency", "popularity", "diversity")

DEFAULT_WEIGHTS: Dict[str, float] = {
    "semantic": 0.40,
    "category": 0.25,
    "recency": 0.20,
    "popularity": 0.10,
    "diversity": 0.05,
}


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0 for mismatched lengths or zero vectors."""
    if len(a) != len(b) or len(a) == 0:
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / (norm_a * norm_b), -1.0, 1.0))


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ScoringPolicy:
    """Weights and shape parameters of the relevance formula."""

    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    relevance_threshold: float = 0.3
    recency_scale_hours: float = 24.0
    recency_floor: float = 0.1
    diversity_window: int = 10
    diversity_floor: float = 0.3
    off_category_score: float = 0.3

    def __post_init__(self):
        merged = dict(DEFAULT_WEIGHTS)
        merged.update({k: float(v) for k, v in (self.weights or {}).items() if k in DEFAULT_WEIGHTS})
        if any(w < 0 for w in merged.values()):
            raise ValueError("Scoring weights must be non-negative")
        self.weights = merged

    @classmethod
    def from_config(cls, config: Any) -> "ScoringPolicy":
        """Build a policy from a RecommendationConfig-like object."""
        return cls(
            weights=dict(getattr(config, "weights", None) or DEFAULT_WEIGHTS),
            relevance_threshold=float(getattr(config, "relevance_threshold", 0.3)),
        )


@dataclass(slots=True)
class ScoreBreakdown:
    """Raw term values and the clamped final score."""

    terms: Dict[str, float]
    contributions: Dict[str, float]
    final: float

    @property
    def dominant(self) -> str:
        return max(TERMS, key=lambda t: (self.contributions.get(t, 0.0), -TERMS.index(t)))


# ---------------------------------------------------------------------------
# Scorer
# ---------------------------------------------------------------------------


class Scorer:
    """Computes relevance scores and ranks scored results."""

    def __init__(self, policy: Optional[ScoringPolicy] = None, now: Optional[datetime] = None):
        self.policy = policy or ScoringPolicy()
        self._now = now

    @property
    def now(self) -> datetime:
        return self._now or datetime.now(timezone.utc)

    def recency(self, published_at: Optional[datetime]) -> float:
        if published_at is None:
            return self.policy.recency_floor
        hours = max(0.0, hours_between(published_at, self.now))
        return max(self.policy.recency_floor, math.exp(-hours / self.policy.recency_scale_hours))

    @staticmethod
    def popularity(value: Optional[float]) -> float:
        return min(max((value or 0.0) / 100.0, 0.0), 1.0)

    def diversity(self, profile: Optional[UserProfile], category: str) -> float:
        if profile is None:
            return 1.0
        window = self.policy.diversity_window
        same = sum(1 for c in profile.recent_categories(window) if c == category)
        return max(self.policy.diversity_floor, 1.0 - same / window)

    def category(self, category: str, preferred: Iterable[str]) -> float:
        return 1.0 if category in preferred else self.policy.off_category_score

    def score(
        self,
        profile: Optional[UserProfile],
        user_embedding: Optional[UserEmbedding],
        article: ArticleRecord,
        article_embedding: ArticleEmbedding,
        category_boost: Optional[Iterable[str]] = None,
    ) -> ScoreBreakdown:
        category = (article_embedding.category or article.category or "general").lower()
        preferred = set(profile.preferred_categories) if profile else set()
        if category_boost:
            preferred.update(c.lower() for c in category_boost)

        semantic = 0.0
        if user_embedding is not None:
            semantic = cosine_similarity(user_embedding.vector, article_embedding.vector)

        terms = {
            "semantic": semantic,
            "category": self.category(category, preferred),
            "recency": self.recency(article.published_at or article_embedding.published_at),
            "popularity": self.popularity(article_embedding.popularity),
            "diversity": self.diversity(profile, category),
        }
        contributions = {name: self.policy.weights[name] * value for name, value in terms.items()}
        final = min(max(sum(contributions.values()), 0.0), 1.0)
        return ScoreBreakdown(terms=terms, contributions=contributions, final=final)

    @staticmethod
    def reason_for(breakdown: ScoreBreakdown, category: str) -> str:
        dominant = breakdown.dominant
        if dominant == "category":
            return f"Matches your interest in {category}"
        if dominant == "semantic":
            return "Similar to articles you've read"
        if dominant == "diversity":
            return "Something different from your recent reading"
        return "Trending"

    def to_result(
        self,
        article: ArticleRecord,
        article_embedding: ArticleEmbedding,
        breakdown: ScoreBreakdown,
        confidence: float,
    ) -> RecommendationResult:
        category = article_embedding.category or article.category
        return RecommendationResult(
            article_id=article.id,
            score=breakdown.final,
            reason=self.reason_for(breakdown, category),
            category=category,
            confidence=confidence,
            published_at=article.published_at or article_embedding.published_at,
            breakdown=dict(breakdown.contributions),
        )

    def rank(self, results: Iterable[RecommendationResult], limit: Optional[int] = None) -> List[RecommendationResult]:
        """Drop results at or below the threshold; sort by score, then newest first."""
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        kept = [r for r in results if r.score > self.policy.relevance_threshold]
        kept.sort(key=lambda r: (r.score, r.published_at or epoch), reverse=True)
        return kept[:limit] if limit is not None else kept
