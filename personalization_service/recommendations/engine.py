"""
Recommendation engine.

Routes each request either to the personalized pipeline (embedding similarity
plus category, recency, popularity and diversity terms) or to the cold-start
handler when the user has no usable embedding. This module has no Flask
dependency so it can be driven from the web app, batch jobs or tests alike.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple

from ..articles import ArticleSource
from ..embeddings import EmbeddingGenerator, EmbeddingStore
from ..errors import InvalidRequest
from ..models import (
    ArticleEmbedding,
    ArticleRecord,
    RecommendationRequest,
    RecommendationResponse,
    RecommendationResult,
    UserEmbedding,
    UserProfile,
)
from .cold_start import ColdStartHandler, needs_cold_start
from .profiles import ProfileService
from .scoring import Scorer

logger = logging.getLogger(__name__)

MAX_RESULTS_LIMIT = 50
PERSONALIZED_PIPELINE = "personalized"


class RecommendationEngine:
    """Scores candidate articles for a user and returns the ranked top-N."""

    def __init__(
        self,
        articles: ArticleSource,
        embeddings: EmbeddingStore,
        generator: EmbeddingGenerator,
        profiles: ProfileService,
        scorer: Optional[Scorer] = None,
        cold_start: Optional[ColdStartHandler] = None,
        min_user_confidence: float = 0.25,
        max_workers: int = 4,
        candidate_limit: int = 200,
    ):
        self.articles = articles
        self.embeddings = embeddings
        self.generator = generator
        self.profiles = profiles
        self.scorer = scorer or Scorer()
        self.cold_start = cold_start or ColdStartHandler(self.scorer)
        self.min_user_confidence = min_user_confidence
        self.max_workers = max(1, max_workers)
        self.candidate_limit = candidate_limit

    @staticmethod
    def validate(request: RecommendationRequest) -> None:
        if not request.user_id:
            raise InvalidRequest("userId is required")
        if not 1 <= request.max_results <= MAX_RESULTS_LIMIT:
            raise InvalidRequest(f"maxResults must be between 1 and {MAX_RESULTS_LIMIT}")

    def candidates(self, request: RecommendationRequest, profile: Optional[UserProfile]) -> List[ArticleRecord]:
        articles = self.articles.list_articles(request.categories, limit=self.candidate_limit)
        if request.exclude_read_articles and profile is not None:
            read = set(profile.read_articles)
            articles = [a for a in articles if a.id not in read]
        return articles

    def recommend(self, request: RecommendationRequest) -> RecommendationResponse:
        self.validate(request)
        profile = self.profiles.get(request.user_id)
        candidates = self.candidates(request, profile)

        user_embedding = self.embeddings.get_user(request.user_id) if profile is not None else None
        if profile is None or needs_cold_start(user_embedding, self.min_user_confidence):
            return self._cold_start(request, profile, candidates)
        return self._personalized(request, profile, user_embedding, candidates)

    def _cold_start(
        self,
        request: RecommendationRequest,
        profile: Optional[UserProfile],
        candidates: Sequence[ArticleRecord],
    ) -> RecommendationResponse:
        outcome = self.cold_start.recommend(profile or UserProfile(user_id=request.user_id), candidates, request.max_results)
        logger.info(
            f"Cold-start recommendations for {request.user_id}: "
            f"strategy={outcome.strategy.value}, results={len(outcome.results)}"
        )
        return RecommendationResponse(
            recommendations=outcome.results,
            pipeline=f"cold_start:{outcome.strategy.value}",
            confidence=outcome.confidence,
        )

    def _embed_candidates(self, candidates: Sequence[ArticleRecord]) -> List[Tuple[ArticleRecord, ArticleEmbedding]]:
        def embed(article: ArticleRecord) -> Tuple[ArticleRecord, ArticleEmbedding]:
            embedding, _ = self.embeddings.ensure_article(article, self.generator)
            return article, embedding

        if len(candidates) <= 1 or self.max_workers == 1:
            return [embed(a) for a in candidates]
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(embed, candidates))

    def _personalized(
        self,
        request: RecommendationRequest,
        profile: UserProfile,
        user_embedding: UserEmbedding,
        candidates: Sequence[ArticleRecord],
    ) -> RecommendationResponse:
        pairs = self._embed_candidates(candidates)
        boost = self.cold_start.plan_for(profile).active_categories(self.scorer.now)

        def score(pair: Tuple[ArticleRecord, ArticleEmbedding]) -> RecommendationResult:
            article, embedding = pair
            breakdown = self.scorer.score(profile, user_embedding, article, embedding, category_boost=boost)
            return self.scorer.to_result(article, embedding, breakdown, user_embedding.confidence)

        if len(pairs) <= 1 or self.max_workers == 1:
            results = [score(p) for p in pairs]
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                results = list(executor.map(score, pairs))

        ranked = self.scorer.rank(results, limit=request.max_results)
        logger.info(
            f"Personalized recommendations for {request.user_id}: "
            f"{len(ranked)}/{len(candidates)} candidates above threshold"
        )
        return RecommendationResponse(
            recommendations=ranked,
            pipeline=PERSONALIZED_PIPELINE,
            confidence=user_embedding.confidence,
        )
