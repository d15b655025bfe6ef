"""
service.py - Personalization service facade

Wires the store, article source, embedding pipeline, recommendation engine,
generation service and response cache into the operations exposed over HTTP.
Kept free of Flask so batch jobs and tests can drive it directly.
"""

import json
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set

from .articles import ArticleSource, HttpArticleSource, InMemoryArticleSource
from .cache import QA, REASON, RECOMMENDATIONS, SUMMARIZE, KINDS, ResponseCache, make_key, ttl_for
from .embeddings import EmbeddingGenerator, EmbeddingStore, ProviderEmbeddingBackend
from .errors import InvalidRequest, NotFound
from .generation import SUMMARY_SENTENCES, GenerationService, TextProvider, build_provider, new_request_id
from .generation.service import MIN_QUESTION_CHARS
from .models import (
    ArticleRecord,
    CacheScope,
    Confidence,
    Demographics,
    GenerationKind,
    GenerationResponse,
    RecommendationRequest,
    RecommendationResponse,
    UserProfile,
)
from .recommendations import (
    ColdStartHandler,
    ProfileService,
    RecommendationEngine,
    Scorer,
    ScoringPolicy,
)
from .storage import Store, create_store

_LOG = logging.getLogger("personalization")

NEUTRAL_MODEL = "none"
DEFAULT_MAINTENANCE_INTERVAL = 200


class PersonalizationService:
    """Entry point for recommendations, generation, tracking and invalidation."""

    def __init__(
        self,
        store: Store,
        articles: ArticleSource,
        embeddings: EmbeddingStore,
        generator: EmbeddingGenerator,
        profiles: ProfileService,
        engine: RecommendationEngine,
        generation: GenerationService,
        cache: ResponseCache,
        cache_config: Any = None,
        background_workers: int = 2,
        maintenance_interval: int = DEFAULT_MAINTENANCE_INTERVAL,
    ):
        self.store = store
        self.articles = articles
        self.embeddings = embeddings
        self.generator = generator
        self.profiles = profiles
        self.engine = engine
        self.generation = generation
        self.cache = cache
        self.cache_config = cache_config
        self._executor = ThreadPoolExecutor(max_workers=background_workers, thread_name_prefix="invalidate")
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()
        self.maintenance_interval = maintenance_interval
        self._operations = 0
        self._operations_lock = threading.Lock()

    # Background work ----------------------------------------------------------

    def _submit(self, fn, *args) -> Future:
        future = self._executor.submit(fn, *args)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._finished)
        return future

    def _finished(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)
        error = future.exception()
        if error is not None:
            _LOG.error("Background task failed: %s", error)

    def wait_for_background(self, timeout: Optional[float] = None) -> None:
        """Block until queued background invalidations have run."""
        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def maintain(self) -> Dict[str, int]:
        """Remove expired cache entries and generation status records."""
        removed = {
            "cache_entries": self.cache.sweep_expired(),
            "status_records": self.generation.expire_statuses(),
        }
        if any(removed.values()):
            _LOG.info(
                "Maintenance removed %d cache entries and %d status records",
                removed["cache_entries"],
                removed["status_records"],
            )
        return removed

    def _count_operation(self) -> None:
        """Queue maintenance on the background executor every ``maintenance_interval`` operations."""
        if self.maintenance_interval <= 0:
            return
        with self._operations_lock:
            self._operations += 1
            due = self._operations % self.maintenance_interval == 0
        if due:
            self._submit(self.maintain)

    # Recommendations -----------------------------------------------------------

    def recommend(
        self,
        user_id: str,
        max_results: int = 10,
        categories: Optional[Sequence[str]] = None,
        exclude_read_articles: bool = True,
    ) -> RecommendationResponse:
        request = RecommendationRequest(
            user_id=user_id,
            max_results=max_results,
            categories=list(categories) if categories else None,
            exclude_read_articles=exclude_read_articles,
        )
        self.engine.validate(request)

        # The profile revision makes a fresh interaction visible before the
        # background invalidation has run.
        profile = self.profiles.get(user_id)
        revision = profile.revision if profile is not None else 0
        key = make_key(RECOMMENDATIONS, revision=revision, **request.cache_params())

        payload, hit = self.cache.compute_or_wait(
            key,
            ttl_for(RECOMMENDATIONS, self.cache_config),
            lambda: self.engine.recommend(request).to_dict(),
            kind=RECOMMENDATIONS,
            scope=CacheScope(user_id=user_id, kind=RECOMMENDATIONS),
        )
        self._count_operation()
        response = RecommendationResponse.from_dict(payload)
        response.cache_hit = hit
        return response

    # Generation ----------------------------------------------------------------

    def generate(
        self,
        kind: str,
        article_id: str,
        user_id: Optional[str] = None,
        question: Optional[str] = None,
        length: str = "medium",
    ) -> GenerationResponse:
        """Summarize, answer a question about, or explain an article.

        Raises:
            InvalidRequest: unknown kind, missing fields or a request the
                primary provider rejected
        """
        try:
            kind = GenerationKind(kind).value
        except ValueError:
            raise InvalidRequest(f"kind must be one of {', '.join(k.value for k in GenerationKind)}") from None
        if not article_id:
            raise InvalidRequest("articleId is required")
        if kind == QA and len((question or "").strip()) < MIN_QUESTION_CHARS:
            raise InvalidRequest(f"question must be at least {MIN_QUESTION_CHARS} characters")
        if kind == REASON and not user_id:
            raise InvalidRequest("userId is required for reason")
        if kind == SUMMARIZE and length not in SUMMARY_SENTENCES:
            raise InvalidRequest(f"length must be one of {', '.join(SUMMARY_SENTENCES)}")

        article = self.articles.get_article(article_id)
        if article is None:
            _LOG.info("Article %s not found, returning neutral %s response", article_id, kind)
            return self._neutral_response()

        content_hash = self.generator.content_hash(self.generator.article_text(article))
        params: Dict[str, Any] = {"article_id": article_id, "content_hash": content_hash}
        scope = CacheScope(article_id=article_id, kind=kind)
        profile: Optional[UserProfile] = None
        if kind == SUMMARIZE:
            params["length"] = length
            compute = lambda: self.generation.summarize(article, length)
        elif kind == QA:
            params["question"] = " ".join(question.lower().split())
            compute = lambda: self.generation.answer(article, question)
        else:
            profile = self.profiles.get_or_create(user_id)
            params["user_id"] = user_id
            params["revision"] = profile.revision
            scope = CacheScope(article_id=article_id, user_id=user_id, kind=kind)
            compute = lambda: self.generation.explain(article, profile)

        payload, hit = self.cache.compute_or_wait(
            make_key(kind, **params),
            ttl_for(kind, self.cache_config),
            lambda: compute().model_dump(mode="json"),
            kind=kind,
            scope=scope,
            should_cache=lambda p: p.get("confidence") != Confidence.LOW.value,
        )
        self._count_operation()
        response = GenerationResponse.model_validate(payload)
        response.cache_hit = hit
        return response

    @staticmethod
    def _neutral_response() -> GenerationResponse:
        return GenerationResponse(
            text="",
            model_used=NEUTRAL_MODEL,
            tokens_used=0,
            request_id=new_request_id(),
            confidence=Confidence.LOW,
        )

    def status(self, request_id: str) -> Dict[str, Any]:
        """Return the recorded status of a generation request.

        Raises:
            NotFound: the request id is unknown or its record has expired
        """
        status = self.generation.status(request_id)
        if status is None:
            raise NotFound(f"Unknown request {request_id}")
        return status

    # Interactions ---------------------------------------------------------------

    def track_interaction(
        self,
        user_id: str,
        article_id: str,
        action: str,
        duration_seconds: float = 0.0,
        scroll_depth: float = 0.0,
    ) -> UserProfile:
        """Record an interaction and queue invalidation of the user's cached results.

        Every interaction bumps the profile revision that recommendation and
        reason keys carry, so entries for the previous revision are dropped
        whether or not the action was material. Returns as soon as the profile
        is stored; invalidation runs in the background.
        """
        profile, _ = self.profiles.track(user_id, article_id, action, duration_seconds, scroll_depth)
        self._submit(self.cache.invalidate, CacheScope(user_id=user_id))
        self._count_operation()
        return profile

    def update_preferences(
        self,
        user_id: str,
        stated_interests: Optional[List[str]] = None,
        demographics: Optional[Demographics] = None,
    ) -> UserProfile:
        profile = self.profiles.update_preferences(user_id, stated_interests, demographics)
        self._submit(self.cache.invalidate, CacheScope(user_id=user_id, kind=RECOMMENDATIONS))
        return profile

    # Invalidation ---------------------------------------------------------------

    def invalidate(
        self,
        article_id: Optional[str] = None,
        user_id: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> int:
        if kind is not None and kind not in KINDS:
            raise InvalidRequest(f"type must be one of {', '.join(KINDS)}")
        scope = CacheScope(article_id=article_id or None, user_id=user_id or None, kind=kind or None)
        if scope.is_empty():
            raise InvalidRequest("At least one of articleId, userId or type is required")
        return self.cache.invalidate(scope)

    def refresh_article(self, article: ArticleRecord) -> bool:
        """Re-embed an article whose content changed and drop its cached generations."""
        _, changed = self.embeddings.ensure_article(article, self.generator)
        if changed:
            removed = self.cache.invalidate(CacheScope(article_id=article.id))
            _LOG.info("Article %s refreshed, %d cached entries removed", article.id, removed)
        return changed

    def health(self) -> Dict[str, Any]:
        return {"status": "ok", "cache": self.cache.stats()}


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def _load_seed_articles(path: str) -> List[ArticleRecord]:
    seed = Path(path)
    if not path or not seed.exists():
        return []
    try:
        data = json.loads(seed.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        _LOG.warning("Could not read seed articles from %s: %s", seed, e)
        return []
    items = data.get("articles", []) if isinstance(data, dict) else data
    return [ArticleRecord.from_dict(item) for item in items if isinstance(item, dict)]


def build_service(
    config,
    store: Optional[Store] = None,
    articles: Optional[ArticleSource] = None,
    primary: Optional[TextProvider] = None,
    fallback: Optional[TextProvider] = None,
    clock=None,
) -> PersonalizationService:
    """Assemble the service from a ConfigManager.

    Explicit collaborators override what the configuration would build,
    which is how tests inject in-memory stores and fake providers.
    """
    llm = config.get_llm_config()
    rec = config.get_recommendation_config()
    cache_config = config.get_cache_config()
    cold = config.get_cold_start_config()
    articles_config = config.get_articles_config()
    paths = config.get_paths_config()

    if store is None:
        base_dir = Path(paths.data_dir) / cache_config.cache_dir
        store = create_store(cache_config.backend, base_dir)

    if articles is None:
        if articles_config.source == "http":
            if not articles_config.base_url:
                raise ValueError("The http article source requires articles.base_url")
            articles = HttpArticleSource(articles_config.base_url, timeout=articles_config.timeout)
        else:
            articles = InMemoryArticleSource(_load_seed_articles(articles_config.seed_file))

    backend = None
    if rec.embedding_backend == "openai":
        backend = ProviderEmbeddingBackend(
            model=rec.embedding_model,
            api_key=llm.api_key_for("openai"),
            base_url=llm.base_url_for("openai"),
            dim=rec.embedding_dim,
            timeout=llm.timeout,
        )
    generator = EmbeddingGenerator(dim=rec.embedding_dim, max_chars=rec.max_text_chars, backend=backend)
    embeddings = EmbeddingStore(store, rec.embedding_dim)

    if primary is None:
        primary = build_provider(
            llm.primary_provider,
            model=llm.primary_model,
            api_key=llm.api_key_for(llm.primary_provider),
            base_url=llm.base_url_for(llm.primary_provider),
            timeout=llm.timeout,
        )
    if fallback is None:
        fallback = build_provider(
            llm.fallback_provider,
            model=llm.fallback_model,
            api_key=llm.api_key_for(llm.fallback_provider),
            base_url=llm.base_url_for(llm.fallback_provider),
            timeout=llm.timeout,
        )
    generation = GenerationService(
        primary,
        fallback,
        store=store,
        max_input_chars=llm.max_input_char,
        status_ttl_seconds=cache_config.status_ttl_hours * 3600,
    )

    scorer = Scorer(ScoringPolicy.from_config(rec))
    cold_start = ColdStartHandler(
        scorer,
        generation_service=generation,
        trending_categories=cold.trending_categories,
        trending_keywords=cold.trending_keywords,
    )
    profiles = ProfileService(
        store,
        articles,
        embeddings,
        generator,
        history_retention=rec.history_retention,
        preferred_count=rec.preferred_category_count,
    )
    engine = RecommendationEngine(
        articles,
        embeddings,
        generator,
        profiles,
        scorer=scorer,
        cold_start=cold_start,
        min_user_confidence=rec.min_user_confidence,
        max_workers=rec.max_workers,
        candidate_limit=rec.candidate_limit,
    )
    cache = ResponseCache(store, clock=clock) if clock is not None else ResponseCache(store)

    _LOG.info(
        "Personalization service ready: store=%s, primary=%s, fallback=%s, embedding_dim=%d",
        type(store).__name__,
        getattr(primary, "name", None),
        getattr(fallback, "name", None),
        rec.embedding_dim,
    )
    return PersonalizationService(
        store,
        articles,
        embeddings,
        generator,
        profiles,
        engine,
        generation,
        cache,
        cache_config=cache_config,
        maintenance_interval=cache_config.maintenance_interval,
    )
