"""
Cold-start recommendations for users without a reliable embedding.

Each new user is assigned one of three strategies by a stable hash of their id:

- demographic: category priors inferred from age, profession, locale and
  stated interests
- trending: configured trending categories/keywords, recency and location
- llm: preferences inferred by the generation service, falling back to the
  demographic prior whenever the answer cannot be used

A progressive learning plan widens the set of favoured categories over the
user's first weeks.
"""

from __future__ import annotations

import hashlib
import json
import logging
import math
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from ..embeddings import EmbeddingGenerator
from ..errors import PersonalizationError
from ..generation.prompts import render_prompt
from ..models import (
    ArticleRecord,
    Confidence,
    GenerationRequest,
    Interaction,
    InteractionType,
    RecommendationResult,
    UserEmbedding,
    UserProfile,
    utc_now,
)
from ..models.utils import hours_between
from .scoring import Scorer

logger = logging.getLogger(__name__)

BASE_WEIGHT = 0.3
DEMOGRAPHIC_CONFIDENCE_CAP = 0.8
TRENDING_CONFIDENCE = 0.4
LLM_CONFIDENCE = 0.5
ADAPT_LEARNING_RATE = 0.3

DEFAULT_TRENDING_CATEGORIES = ["technology", "politics", "business", "health"]
DEFAULT_TRENDING_KEYWORDS = ["ai", "election", "climate", "economy", "markets"]

ALL_CATEGORIES = [
    "technology",
    "business",
    "politics",
    "science",
    "health",
    "sports",
    "entertainment",
    "environment",
    "education",
    "world",
]

RELATED_CATEGORIES: Dict[str, List[str]] = {
    "technology": ["science", "business"],
    "business": ["technology", "politics"],
    "politics": ["world", "business"],
    "science": ["technology", "health", "environment"],
    "health": ["science", "environment"],
    "sports": ["entertainment", "health"],
    "entertainment": ["sports", "technology"],
    "environment": ["science", "politics"],
    "education": ["science", "politics"],
    "world": ["politics", "business"],
}

INTEREST_CATEGORIES = {
    "programming": "technology",
    "coding": "technology",
    "ai": "technology",
    "machine learning": "technology",
    "startup": "business",
    "investing": "business",
    "finance": "business",
    "government": "politics",
    "football": "sports",
    "basketball": "sports",
    "movies": "entertainment",
    "music": "entertainment",
    "gaming": "entertainment",
    "fitness": "health",
    "research": "science",
    "climate": "environment",
}

PROFESSION_PRIORS: Dict[str, Dict[str, float]] = {
    "software_engineer": {"technology": 0.9, "business": 0.6, "science": 0.5},
    "doctor": {"health": 0.9, "science": 0.7, "politics": 0.4},
    "teacher": {"education": 0.8, "politics": 0.6, "science": 0.5},
    "business_analyst": {"business": 0.9, "politics": 0.6, "technology": 0.5},
    "journalist": {"politics": 0.8, "business": 0.7, "entertainment": 0.6},
    "student": {"technology": 0.7, "entertainment": 0.6, "sports": 0.5},
}
DEFAULT_PROFESSION_PRIOR = {"politics": 0.5, "business": 0.5, "technology": 0.5, "entertainment": 0.4}

LOCATION_PRIORS: Dict[str, Dict[str, float]] = {
    "us": {"politics": 0.7, "business": 0.8, "technology": 0.8, "sports": 0.7},
    "uk": {"politics": 0.8, "business": 0.7, "entertainment": 0.6, "sports": 0.6},
    "india": {"politics": 0.6, "technology": 0.7, "business": 0.6, "entertainment": 0.8},
    "germany": {"business": 0.8, "politics": 0.7, "environment": 0.7, "technology": 0.6},
}
DEFAULT_LOCATION_PRIOR = {"politics": 0.5, "business": 0.5, "technology": 0.5}

# Demographic signal weights: age, profession, location, interests
SIGNAL_WEIGHTS = {"age": 0.3, "profession": 0.3, "location": 0.2, "interest": 0.2}


class ColdStartStrategy(Enum):
    DEMOGRAPHIC = "demographic"
    TRENDING = "trending"
    LLM = "llm"


STRATEGY_ORDER = [ColdStartStrategy.DEMOGRAPHIC, ColdStartStrategy.TRENDING, ColdStartStrategy.LLM]


def select_strategy(user_id: str) -> ColdStartStrategy:
    """Stable strategy assignment: sha256 of the user id modulo strategy count."""
    digest = hashlib.sha256((user_id or "").encode("utf-8")).hexdigest()
    return STRATEGY_ORDER[int(digest, 16) % len(STRATEGY_ORDER)]


def needs_cold_start(user_embedding: Optional[UserEmbedding], min_confidence: float) -> bool:
    if user_embedding is None or user_embedding.is_cold_start:
        return True
    return user_embedding.confidence < min_confidence


@dataclass
class PreferencePrior:
    """Inferred preferences for a user with little or no history."""

    category_weights: Dict[str, float]
    content_length: str = "medium"
    reading_level: str = "general"
    time_of_day: str = "any"
    recency_preference: float = 0.6
    confidence: float = 0.3
    strategy: ColdStartStrategy = ColdStartStrategy.DEMOGRAPHIC
    reasoning: str = ""

    @property
    def categories(self) -> List[str]:
        return [c for c, _ in sorted(self.category_weights.items(), key=lambda item: (-item[1], item[0]))]

    def weight(self, category: str) -> float:
        return self.category_weights.get(category, BASE_WEIGHT)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categories": self.categories,
            "category_weights": dict(self.category_weights),
            "content_length": self.content_length,
            "reading_level": self.reading_level,
            "time_of_day": self.time_of_day,
            "recency_preference": self.recency_preference,
            "confidence": self.confidence,
            "strategy": self.strategy.value,
            "reasoning": self.reasoning,
        }


@dataclass
class ColdStartOutcome:
    strategy: ColdStartStrategy
    prior: PreferencePrior
    results: List[RecommendationResult] = field(default_factory=list)

    @property
    def confidence(self) -> float:
        return self.prior.confidence


# ---------------------------------------------------------------------------
# Demographic strategy
# ---------------------------------------------------------------------------


def _age_prior(age: Optional[int]) -> Dict[str, float]:
    if age is None:
        return {}
    if age < 25:
        return {"technology": 0.8, "entertainment": 0.7, "sports": 0.6, "politics": 0.3, "business": 0.4}
    if age < 35:
        return {"technology": 0.7, "business": 0.6, "politics": 0.5, "entertainment": 0.5, "sports": 0.5}
    if age < 50:
        return {"business": 0.7, "politics": 0.6, "health": 0.5, "technology": 0.5, "sports": 0.4}
    return {"politics": 0.8, "health": 0.7, "business": 0.6, "environment": 0.5, "technology": 0.3}


def _profession_key(profession: str) -> str:
    return re.sub(r"\s+", "_", (profession or "").strip().lower())


def interest_category(interest: str) -> Optional[str]:
    lowered = (interest or "").strip().lower()
    if lowered in ALL_CATEGORIES:
        return lowered
    return INTEREST_CATEGORIES.get(lowered)


class DemographicStrategy:
    """Category priors from self-reported demographics."""

    strategy = ColdStartStrategy.DEMOGRAPHIC

    def infer(self, profile: UserProfile) -> PreferencePrior:
        demo = profile.demographics
        profession = _profession_key(demo.profession)

        signals = {
            "age": _age_prior(demo.age),
            "profession": PROFESSION_PRIORS.get(profession, DEFAULT_PROFESSION_PRIOR) if profession else {},
            "location": LOCATION_PRIORS.get(demo.country.strip().lower(), DEFAULT_LOCATION_PRIOR)
            if demo.country
            else {},
            "interest": {},
        }
        for interest in profile.stated_interests:
            category = interest_category(interest)
            if category:
                signals["interest"][category] = 0.9

        categories = set()
        for prior in signals.values():
            categories.update(prior)
        if not categories:
            categories.update(DEFAULT_PROFESSION_PRIOR)

        weights = {
            category: sum(SIGNAL_WEIGHTS[name] * prior.get(category, BASE_WEIGHT) for name, prior in signals.items())
            for category in categories
        }

        provided = sum(1 for prior in signals.values() if prior)
        confidence = min(0.3 + 0.1 * provided, DEMOGRAPHIC_CONFIDENCE_CAP)

        return PreferencePrior(
            category_weights=weights,
            content_length=self._content_length(profession, demo.age),
            reading_level=self._reading_level(profession),
            time_of_day="evening" if "student" in profession else "morning",
            recency_preference=self._recency_preference(profession, demo.age),
            confidence=confidence,
            strategy=self.strategy,
        )

    @staticmethod
    def _content_length(profession: str, age: Optional[int]) -> str:
        if "executive" in profession or "manager" in profession:
            return "short"
        if "researcher" in profession or "academic" in profession:
            return "long"
        if age is not None and age < 30:
            return "short"
        return "medium"

    @staticmethod
    def _reading_level(profession: str) -> str:
        if any(p in profession for p in ("researcher", "academic", "doctor", "engineer")):
            return "advanced"
        if "student" in profession:
            return "introductory"
        return "general"

    @staticmethod
    def _recency_preference(profession: str, age: Optional[int]) -> float:
        if "journalist" in profession or "trader" in profession:
            return 0.9
        if age is not None and age < 30:
            return 0.8
        return 0.6


# ---------------------------------------------------------------------------
# Trending strategy
# ---------------------------------------------------------------------------


class TrendingStrategy:
    """Follows configured trending categories and keywords."""

    strategy = ColdStartStrategy.TRENDING

    def __init__(
        self,
        trending_categories: Optional[Sequence[str]] = None,
        trending_keywords: Optional[Sequence[str]] = None,
        location_boost: float = 0.2,
    ):
        self.trending_categories = [c.lower() for c in (trending_categories or DEFAULT_TRENDING_CATEGORIES)]
        self.trending_keywords = [k.lower() for k in (trending_keywords or DEFAULT_TRENDING_KEYWORDS)]
        self.location_boost = location_boost

    def infer(self, profile: UserProfile) -> PreferencePrior:
        return PreferencePrior(
            category_weights={c: 0.7 for c in self.trending_categories},
            confidence=TRENDING_CONFIDENCE,
            strategy=self.strategy,
        )

    def score(self, article: ArticleRecord, profile: UserProfile, now: datetime) -> float:
        category = 1.0 if article.category.lower() in self.trending_categories else 0.0

        words = {k.lower() for k in article.keywords}
        words.update(re.findall(r"[a-z0-9]+", f"{article.title} {article.description}".lower()))
        matched = sum(1 for k in self.trending_keywords if k in words)
        keyword = min(1.0, matched / 3.0)

        recency = 0.0
        if article.published_at is not None:
            recency = max(0.0, 1.0 - hours_between(article.published_at, now) / 24.0)

        score = 0.4 * category + 0.3 * keyword + 0.3 * recency
        location = (article.location or "").strip().lower()
        demo = profile.demographics
        if location and location in {demo.country.strip().lower(), demo.city.strip().lower()} - {""}:
            score *= 1.0 + self.location_boost
        return min(score, 1.0)


# ---------------------------------------------------------------------------
# LLM strategy
# ---------------------------------------------------------------------------


class LLMPreferences(BaseModel):
    """Structured answer expected from the preference-inference prompt."""
    categories: List[str] = Field(min_length=1)
    time_of_day: str = "any"
    reasoning: str = ""


_JSON_BLOCK_RE = re.compile(r"\{.*\}", re.DOTALL)


def parse_llm_preferences(text: str) -> LLMPreferences:
    """Extract and validate the JSON object in a model answer.

    Raises ValueError when no valid object is present.
    """
    match = _JSON_BLOCK_RE.search(text or "")
    if not match:
        raise ValueError("No JSON object in model output")
    try:
        data = json.loads(match.group(0))
        return LLMPreferences.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise ValueError(f"Invalid preference JSON: {e}") from e


class LLMStrategy:
    """Asks the generation service to infer preferences."""

    strategy = ColdStartStrategy.LLM

    def __init__(self, generation_service, fallback: Optional[DemographicStrategy] = None):
        self.generation_service = generation_service
        self.fallback = fallback or DemographicStrategy()

    def build_prompt(self, profile: UserProfile) -> str:
        demo = profile.demographics
        return render_prompt(
            "cold_start_preferences",
            age=demo.age if demo.age is not None else "unknown",
            profession=demo.profession or "unknown",
            location=", ".join(p for p in (demo.city, demo.country) if p) or "unknown",
            languages=", ".join(demo.languages) or "en",
            interests=", ".join(profile.stated_interests) or "none stated",
            categories=", ".join(ALL_CATEGORIES),
        )

    def infer(self, profile: UserProfile) -> PreferencePrior:
        base = self.fallback.infer(profile)
        try:
            response = self.generation_service.generate(
                GenerationRequest(prompt=self.build_prompt(profile), temperature=0.2, max_tokens=300)
            )
            if response.confidence == Confidence.LOW:
                raise ValueError("Generation degraded to extractive output")
            answer = parse_llm_preferences(response.text)
        except (PersonalizationError, ValueError) as e:
            logger.warning(f"LLM preference inference failed for {profile.user_id}, using demographic prior: {e}")
            return base

        weights = dict(base.category_weights)
        for rank, category in enumerate(c.strip().lower() for c in answer.categories):
            if not category:
                continue
            weights[category] = max(weights.get(category, 0.0), max(0.9 - 0.1 * rank, 0.4))

        return replace(
            base,
            category_weights=weights,
            time_of_day=answer.time_of_day or base.time_of_day,
            confidence=min(max(base.confidence, LLM_CONFIDENCE), DEMOGRAPHIC_CONFIDENCE_CAP),
            strategy=self.strategy,
            reasoning=answer.reasoning,
        )


# ---------------------------------------------------------------------------
# Progressive learning plan
# ---------------------------------------------------------------------------


@dataclass
class ProgressiveLearningPlan:
    """Three-phase category curriculum over a user's first weeks.

    Phase 1 (days 0-6) favours the top three stated interests, phase 2
    (days 7-13) adds two related categories and phase 3 (day 14 on) adds three
    diversifying ones. After ``horizon_days`` the plan no longer applies.
    """

    started_at: datetime
    initial: List[str]
    related: List[str]
    diversifying: List[str]
    horizon_days: int = 21

    @classmethod
    def build(cls, profile: UserProfile, prior: Optional[PreferencePrior] = None) -> "ProgressiveLearningPlan":
        initial: List[str] = []
        for interest in profile.stated_interests:
            category = interest_category(interest) or interest.strip().lower()
            if category and category not in initial:
                initial.append(category)
        if prior is not None:
            for category in prior.categories:
                if len(initial) >= 3:
                    break
                if category not in initial:
                    initial.append(category)
        initial = initial[:3]

        related: List[str] = []
        for category in initial:
            for candidate in RELATED_CATEGORIES.get(category, []):
                if candidate not in initial and candidate not in related:
                    related.append(candidate)
        related = related[:2]

        taken = set(initial) | set(related)
        ranked = prior.categories if prior is not None else []
        remaining = [c for c in ranked if c not in taken] + [c for c in ALL_CATEGORIES if c not in taken]
        diversifying: List[str] = []
        for category in remaining:
            if category not in diversifying:
                diversifying.append(category)
        diversifying = diversifying[:3]

        return cls(started_at=profile.created_at, initial=initial, related=related, diversifying=diversifying)

    def phase(self, now: Optional[datetime] = None) -> int:
        days = (now or utc_now()) - self.started_at
        if days < timedelta(days=7):
            return 1
        if days < timedelta(days=14):
            return 2
        return 3

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) - self.started_at < timedelta(days=self.horizon_days)

    def active_categories(self, now: Optional[datetime] = None) -> List[str]:
        if not self.is_active(now):
            return []
        phase = self.phase(now)
        categories = list(self.initial)
        if phase >= 2:
            categories += self.related
        if phase >= 3:
            categories += self.diversifying
        return categories


# ---------------------------------------------------------------------------
# Early-interaction adaptation
# ---------------------------------------------------------------------------

_ACTION_QUALITY = {
    InteractionType.READ: 1.0,
    InteractionType.READ_COMPLETE: 1.0,
    InteractionType.SHARE: 0.9,
    InteractionType.SAVE: 0.8,
    InteractionType.LIKE: 0.6,
}


def adapt_from_early_interactions(prior: PreferencePrior, interactions: Iterable[Interaction]) -> PreferencePrior:
    """Blend early engagement into a prior with an exponential moving average."""
    interactions = [i for i in interactions if i.category]
    if not interactions:
        return prior

    totals: Dict[str, List[float]] = {}
    for interaction in interactions:
        totals.setdefault(interaction.category, []).append(interaction.engagement_weight())

    weights = dict(prior.category_weights)
    for category, values in totals.items():
        average = sum(values) / len(values)
        current = weights.get(category, BASE_WEIGHT)
        weights[category] = ADAPT_LEARNING_RATE * average + (1 - ADAPT_LEARNING_RATE) * current

    quality = min(1.0, sum(_ACTION_QUALITY.get(i.action, 0.3) for i in interactions) / len(interactions))
    confidence = min(prior.confidence + quality * 0.2, DEMOGRAPHIC_CONFIDENCE_CAP)
    return replace(prior, category_weights=weights, confidence=confidence)


# ---------------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------------


def apply_diversity_cap(results: Sequence[RecommendationResult], limit: int) -> List[RecommendationResult]:
    """Take at most ceil(limit / 3) per category, then fill with the best remaining."""
    if limit <= 0:
        return []
    cap = max(1, math.ceil(limit / 3))
    selected: List[RecommendationResult] = []
    counts: Dict[str, int] = {}
    for result in results:
        if len(selected) >= limit:
            break
        if counts.get(result.category, 0) < cap:
            selected.append(result)
            counts[result.category] = counts.get(result.category, 0) + 1
    if len(selected) < limit:
        chosen = {id(r) for r in selected}
        for result in results:
            if len(selected) >= limit:
                break
            if id(result) not in chosen:
                selected.append(result)
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    selected.sort(key=lambda r: (r.score, r.published_at or epoch), reverse=True)
    return selected


class ColdStartHandler:
    """Runs the user's assigned strategy over candidate articles."""

    def __init__(
        self,
        scorer: Optional[Scorer] = None,
        generation_service=None,
        trending_categories: Optional[Sequence[str]] = None,
        trending_keywords: Optional[Sequence[str]] = None,
    ):
        self.scorer = scorer or Scorer()
        self.demographic = DemographicStrategy()
        self.trending = TrendingStrategy(trending_categories, trending_keywords)
        self.llm = LLMStrategy(generation_service, self.demographic) if generation_service is not None else None

    def prior_for(self, profile: UserProfile) -> PreferencePrior:
        strategy = select_strategy(profile.user_id)
        if strategy == ColdStartStrategy.TRENDING:
            prior = self.trending.infer(profile)
        elif strategy == ColdStartStrategy.LLM and self.llm is not None:
            prior = self.llm.infer(profile)
        else:
            prior = self.demographic.infer(profile)
        if profile.interactions:
            adapted = adapt_from_early_interactions(prior, profile.interactions)
            if prior.strategy == ColdStartStrategy.TRENDING:
                # trending confidence is fixed; only the category weights adapt
                adapted = replace(adapted, confidence=TRENDING_CONFIDENCE)
            prior = adapted
        return prior

    def plan_for(self, profile: UserProfile) -> ProgressiveLearningPlan:
        return ProgressiveLearningPlan.build(profile, self.demographic.infer(profile))

    def _prior_score(self, prior: PreferencePrior, article: ArticleRecord) -> Dict[str, float]:
        category = article.category.lower()
        return {
            "category": 0.5 * min(prior.weight(category), 1.0),
            "popularity": 0.25 * self.scorer.popularity(EmbeddingGenerator.popularity(article)),
            "recency": 0.25 * self.scorer.recency(article.published_at),
        }

    def recommend(
        self,
        profile: UserProfile,
        candidates: Sequence[ArticleRecord],
        limit: int = 10,
    ) -> ColdStartOutcome:
        prior = self.prior_for(profile)
        now = self.scorer.now
        threshold = self.scorer.policy.relevance_threshold

        scored: List[RecommendationResult] = []
        for article in candidates:
            category = article.category.lower()
            if prior.strategy == ColdStartStrategy.TRENDING:
                score = self.trending.score(article, profile, now)
                breakdown = {"trending": score}
                reason = "Trending"
            else:
                breakdown = self._prior_score(prior, article)
                score = min(max(sum(breakdown.values()), 0.0), 1.0)
                if breakdown["category"] >= max(breakdown["popularity"], breakdown["recency"]):
                    reason = f"Matches your interest in {category}"
                else:
                    reason = "Trending"
            if score <= threshold:
                continue
            scored.append(
                RecommendationResult(
                    article_id=article.id,
                    score=score,
                    reason=reason,
                    category=category,
                    confidence=prior.confidence,
                    published_at=article.published_at,
                    breakdown=breakdown,
                )
            )

        ranked = self.scorer.rank(scored)
        results = apply_diversity_cap(ranked, limit)
        logger.debug(
            f"Cold start for {profile.user_id}: strategy={prior.strategy.value}, "
            f"{len(results)}/{len(candidates)} candidates selected"
        )
        return ColdStartOutcome(strategy=prior.strategy, prior=prior, results=results)
