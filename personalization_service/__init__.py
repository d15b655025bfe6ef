# Personalization service package: recommendation and generation core

from .service import PersonalizationService, build_service
from .articles import ArticleSource, HttpArticleSource, InMemoryArticleSource
from .cache import ResponseCache, make_key, ttl_for
from .embeddings import EmbeddingGenerator, EmbeddingStore
from .errors import (
    CacheUnavailable,
    FailureKind,
    InvalidRequest,
    NotFound,
    PersonalizationError,
    ProviderError,
    UpstreamFatal,
    UpstreamRetryable,
    classify_failure,
)
from .generation import GenerationService, GenerationState, LangChainTextProvider, TextProvider
from .recommendations import ColdStartHandler, RecommendationEngine, Scorer, ScoringPolicy
from .storage import InMemoryStore, JsonFileStore, Store, create_store
from .logging_config import (
    setup_logging,
    stop_logging,
    get_logger,
)

__all__ = [
    "ArticleSource",
    "CacheUnavailable",
    "ColdStartHandler",
    "EmbeddingGenerator",
    "EmbeddingStore",
    "FailureKind",
    "GenerationService",
    "GenerationState",
    "HttpArticleSource",
    "InMemoryArticleSource",
    "InMemoryStore",
    "InvalidRequest",
    "JsonFileStore",
    "LangChainTextProvider",
    "NotFound",
    "PersonalizationError",
    "PersonalizationService",
    "ProviderError",
    "RecommendationEngine",
    "ResponseCache",
    "Scorer",
    "ScoringPolicy",
    "Store",
    "TextProvider",
    "UpstreamFatal",
    "UpstreamRetryable",
    "build_service",
    "classify_failure",
    "create_store",
    "get_logger",
    "make_key",
    "setup_logging",
    "stop_logging",
    "ttl_for",
]
