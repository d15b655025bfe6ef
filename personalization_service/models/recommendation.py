"""
Recommendation request and result containers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .utils import format_timestamp, parse_timestamp


@dataclass(slots=True)
class RecommendationRequest:
    """Parameters of a single recommend call."""

    user_id: str
    max_results: int = 10
    categories: Optional[List[str]] = None
    exclude_read_articles: bool = True

    def cache_params(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "max_results": self.max_results,
            "categories": sorted(c.lower() for c in self.categories) if self.categories else None,
            "exclude_read_articles": self.exclude_read_articles,
        }


@dataclass(slots=True)
class RecommendationResult:
    """A scored article for one user."""

    article_id: str
    score: float
    reason: str
    category: str
    confidence: float
    published_at: Optional[datetime] = None
    breakdown: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "articleId": self.article_id,
            "score": self.score,
            "reason": self.reason,
            "category": self.category,
            "confidence": round(self.confidence, 6),
            "publishedAt": format_timestamp(self.published_at),
            "breakdown": {k: round(v, 6) for k, v in self.breakdown.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecommendationResult":
        return cls(
            article_id=data.get("articleId", ""),
            score=float(data.get("score") or 0.0),
            reason=data.get("reason") or "",
            category=data.get("category") or "general",
            confidence=float(data.get("confidence") or 0.0),
            published_at=parse_timestamp(data.get("publishedAt")),
            breakdown=dict(data.get("breakdown") or {}),
        )


@dataclass(slots=True)
class RecommendationResponse:
    """Ranked results plus pipeline metadata."""

    recommendations: List[RecommendationResult]
    pipeline: str
    confidence: float
    cache_hit: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recommendations": [r.to_dict() for r in self.recommendations],
            "metadata": {
                "pipeline": self.pipeline,
                "confidence": round(self.confidence, 6),
                "cacheHit": self.cache_hit,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecommendationResponse":
        metadata = data.get("metadata") or {}
        return cls(
            recommendations=[RecommendationResult.from_dict(r) for r in data.get("recommendations", [])],
            pipeline=metadata.get("pipeline", ""),
            confidence=float(metadata.get("confidence") or 0.0),
            cache_hit=bool(metadata.get("cacheHit", False)),
        )
