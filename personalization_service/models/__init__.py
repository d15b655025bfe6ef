"""
Models package for the personalization service.

Dataclasses for profiles, articles, embeddings, recommendations and cache
entries, plus the Pydantic models exchanged with the generation pipeline.
"""

from .articles import ArticleEmbedding, ArticleRecord, UserEmbedding
from .cache import CacheEntry, CacheScope
from .generation import (
    Confidence,
    GenerationKind,
    GenerationRequest,
    GenerationResponse,
    SourceExcerpt,
)
from .interactions import ACTION_WEIGHTS, Interaction, InteractionType
from .profiles import Demographics, UserProfile
from .recommendation import (
    RecommendationRequest,
    RecommendationResponse,
    RecommendationResult,
)
from .utils import parse_timestamp, utc_now

__all__ = [
    # Articles and embeddings
    "ArticleEmbedding",
    "ArticleRecord",
    "UserEmbedding",

    # Cache
    "CacheEntry",
    "CacheScope",

    # Generation
    "Confidence",
    "GenerationKind",
    "GenerationRequest",
    "GenerationResponse",
    "SourceExcerpt",

    # Users
    "ACTION_WEIGHTS",
    "Demographics",
    "Interaction",
    "InteractionType",
    "UserProfile",

    # Recommendations
    "RecommendationRequest",
    "RecommendationResponse",
    "RecommendationResult",

    # Helpers
    "parse_timestamp",
    "utc_now",
]
