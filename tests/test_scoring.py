"""
Tests for relevance scoring and ranking.
"""

import math
from datetime import timedelta

import numpy as np
import pytest

from personalization_service.embeddings import EmbeddingGenerator
from personalization_service.models import Interaction, InteractionType, RecommendationResult, UserProfile
from personalization_service.recommendations import Scorer, ScoringPolicy
from personalization_service.recommendations.scoring import DEFAULT_WEIGHTS, cosine_similarity


class TestCosineSimilarity:
    """Bounded similarity between vectors."""

    def test_bounds_on_random_vectors(self):
        """Similarity stays within [-1, 1] for arbitrary input."""
        rng = np.random.default_rng(7)
        for _ in range(200):
            a = rng.normal(size=16) * rng.uniform(0.001, 1000)
            b = rng.normal(size=16) * rng.uniform(0.001, 1000)
            value = cosine_similarity(a, b)
            assert -1.0 <= value <= 1.0

    def test_identical_and_opposite(self):
        assert cosine_similarity([1, 2, 3], [1, 2, 3]) == pytest.approx(1.0)
        assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)

    def test_degenerate_inputs(self):
        assert cosine_similarity([0, 0], [1, 0]) == 0.0
        assert cosine_similarity([1, 0], [1, 0, 0]) == 0.0
        assert cosine_similarity([], []) == 0.0


class TestScoringPolicy:
    """Configurable weights."""

    def test_defaults(self):
        assert ScoringPolicy().weights == DEFAULT_WEIGHTS

    def test_partial_override_keeps_other_weights(self):
        policy = ScoringPolicy(weights={"semantic": 0.6, "unknown": 9.0})
        assert policy.weights["semantic"] == 0.6
        assert policy.weights["category"] == 0.25
        assert "unknown" not in policy.weights

    def test_negative_weight_rejected(self):
        with pytest.raises(ValueError):
            ScoringPolicy(weights={"recency": -0.1})


class TestScorerTerms:
    """Individual terms of the formula."""

    def test_recency_decay_and_floor(self, now):
        scorer = Scorer(now=now)
        assert scorer.recency(now) == pytest.approx(1.0)
        assert scorer.recency(now - timedelta(hours=24)) == pytest.approx(math.exp(-1))
        assert scorer.recency(now - timedelta(days=30)) == 0.1
        assert scorer.recency(None) == 0.1

    def test_future_article_counts_as_fresh(self, now):
        assert Scorer(now=now).recency(now + timedelta(hours=3)) == pytest.approx(1.0)

    def test_popularity_normalised(self):
        assert Scorer.popularity(50) == 0.5
        assert Scorer.popularity(None) == 0.0
        assert Scorer.popularity(400) == 1.0

    def test_diversity_penalises_repetition(self):
        scorer = Scorer()
        profile = UserProfile(user_id="u1")
        for i in range(8):
            profile.record(Interaction(article_id=f"a{i}", action=InteractionType.VIEW, category="technology"))
        assert scorer.diversity(profile, "technology") == pytest.approx(0.3)
        assert scorer.diversity(profile, "science") == 1.0
        assert scorer.diversity(None, "technology") == 1.0

    def test_category_affinity(self):
        scorer = Scorer()
        assert scorer.category("technology", ["technology"]) == 1.0
        assert scorer.category("sports", ["technology"]) == 0.3


class TestScore:
    """Whole-formula behaviour."""

    def test_score_within_bounds(self, article_factory, now):
        """Every combination of inputs yields a score in [0, 1]."""
        generator = EmbeddingGenerator(dim=64)
        scorer = Scorer(now=now)
        profile = UserProfile(user_id="u1", preferred_categories=["technology"])
        user = generator.embed_user("u1", [generator.embed_article(article_factory("seed"))])
        for i, (category, hours, pop) in enumerate([
            ("technology", 0, 100), ("sports", 1000, 0), ("general", 5, None), ("technology", 48, 73),
        ]):
            article = article_factory(f"a{i}", category, hours_old=hours, popularity=pop)
            breakdown = scorer.score(profile, user, article, generator.embed_article(article))
            assert 0.0 <= breakdown.final <= 1.0
            assert breakdown.final == pytest.approx(min(1.0, max(0.0, sum(breakdown.contributions.values()))))

    def test_fresh_category_match_beats_stale_general(self, article_factory, now):
        """Three recent technology reads: a new technology story outranks a week-old general one."""
        generator = EmbeddingGenerator(dim=128)
        scorer = Scorer(now=now)
        profile = UserProfile(user_id="u1")
        engaged = []
        for i in range(3):
            article = article_factory(f"read-{i}", "technology", hours_old=2 + i)
            engaged.append(generator.embed_article(article))
            profile.record(Interaction(
                article_id=article.id,
                action=InteractionType.READ,
                timestamp=now - timedelta(hours=3 - i),
                duration_seconds=90,
                category="technology",
            ))
        user = generator.embed_user("u1", engaged, confidence=generator.profile_confidence(profile))

        fresh = article_factory("fresh", "technology", hours_old=1, popularity=50)
        stale = article_factory("stale", "general", hours_old=24 * 7, popularity=52)
        fresh_score = scorer.score(profile, user, fresh, generator.embed_article(fresh)).final
        stale_score = scorer.score(profile, user, stale, generator.embed_article(stale)).final

        assert fresh_score > stale_score

    def test_category_boost_counts_as_preferred(self, article_factory, now):
        generator = EmbeddingGenerator(dim=32)
        scorer = Scorer(now=now)
        article = article_factory("s1", "science")
        embedding = generator.embed_article(article)
        plain = scorer.score(None, None, article, embedding)
        boosted = scorer.score(None, None, article, embedding, category_boost=["Science"])
        assert boosted.terms["category"] == 1.0
        assert boosted.final > plain.final

    def test_reason_follows_dominant_term(self, article_factory, now):
        generator = EmbeddingGenerator(dim=32)
        scorer = Scorer(ScoringPolicy(weights={"category": 0.9}), now=now)
        profile = UserProfile(user_id="u1", preferred_categories=["technology"])
        article = article_factory("t1", "technology")
        breakdown = scorer.score(profile, None, article, generator.embed_article(article))
        result = scorer.to_result(article, generator.embed_article(article), breakdown, 0.5)
        assert result.reason == "Matches your interest in technology"

    def test_trending_reason_when_popularity_dominates(self, article_factory, now):
        generator = EmbeddingGenerator(dim=32)
        scorer = Scorer(ScoringPolicy(weights={"popularity": 0.9}), now=now)
        article = article_factory("t1", "sports", popularity=100)
        breakdown = scorer.score(None, None, article, generator.embed_article(article))
        assert Scorer.reason_for(breakdown, "sports") == "Trending"


class TestRank:
    """Threshold and ordering."""

    def _result(self, article_id, score, published_at=None):
        return RecommendationResult(
            article_id=article_id, score=score, reason="", category="general",
            confidence=0.5, published_at=published_at,
        )

    def test_threshold_is_exclusive(self):
        ranked = Scorer().rank([self._result("a", 0.3), self._result("b", 0.31), self._result("c", 0.1)])
        assert [r.article_id for r in ranked] == ["b"]

    def test_ties_broken_by_newest(self, now):
        ranked = Scorer().rank([
            self._result("old", 0.5, now - timedelta(days=1)),
            self._result("new", 0.5, now),
            self._result("undated", 0.5),
            self._result("best", 0.9, now - timedelta(days=3)),
        ])
        assert [r.article_id for r in ranked] == ["best", "new", "old", "undated"]

    def test_limit(self):
        ranked = Scorer().rank([self._result(str(i), 0.4 + i / 100) for i in range(10)], limit=3)
        assert [r.article_id for r in ranked] == ["9", "8", "7"]
