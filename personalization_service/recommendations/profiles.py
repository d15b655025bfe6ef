"""
Profile service

Records interactions against user profiles and keeps the user embedding in
step with material engagement.
"""

import logging
import threading
import zlib
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from ..articles import ArticleSource
from ..embeddings import EmbeddingGenerator, EmbeddingStore
from ..errors import InvalidRequest
from ..models import (
    ArticleEmbedding,
    Demographics,
    Interaction,
    InteractionType,
    UserEmbedding,
    UserProfile,
    utc_now,
)
from ..storage import PROFILES, Store

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_RETENTION = 500
LOCK_STRIPES = 64


class ProfileService:
    """Owns UserProfile persistence and user-embedding regeneration."""

    def __init__(
        self,
        store: Store,
        articles: ArticleSource,
        embeddings: EmbeddingStore,
        generator: EmbeddingGenerator,
        history_retention: int = DEFAULT_HISTORY_RETENTION,
        preferred_count: int = 5,
        lock_stripes: int = LOCK_STRIPES,
    ):
        """Initialize the profile service.

        Args:
            store: Store holding the profiles namespace
            articles: Source used to resolve an article's category
            embeddings: Embedding store for article and user vectors
            generator: Embedding generator
            history_retention: Interactions kept per profile
            preferred_count: Size of the preferred-category list
            lock_stripes: Number of locks shared across users; updates for
                one user always take the same lock
        """
        self.store = store
        self.articles = articles
        self.embeddings = embeddings
        self.generator = generator
        self.history_retention = history_retention
        self.preferred_count = preferred_count
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(max(1, lock_stripes))]

    def _user_lock(self, user_id: str) -> threading.Lock:
        return self._locks[zlib.crc32(user_id.encode("utf-8")) % len(self._locks)]

    def get(self, user_id: str) -> Optional[UserProfile]:
        data = self.store.get(PROFILES, user_id)
        return UserProfile.from_dict(data) if data else None

    def get_or_create(self, user_id: str) -> UserProfile:
        return self.get(user_id) or UserProfile(user_id=user_id)

    def save(self, profile: UserProfile) -> None:
        self.store.put(PROFILES, profile.user_id, profile.to_dict())

    def update_preferences(
        self,
        user_id: str,
        stated_interests: Optional[Sequence[str]] = None,
        demographics: Optional[Demographics] = None,
    ) -> UserProfile:
        """Set onboarding data used by cold-start inference."""
        if not user_id:
            raise InvalidRequest("userId is required")
        with self._user_lock(user_id):
            profile = self.get_or_create(user_id)
            if stated_interests is not None:
                profile.stated_interests = [s.strip().lower() for s in stated_interests if s and s.strip()]
            if demographics is not None:
                profile.demographics = demographics
            profile.refresh_preferred_categories(self.preferred_count)
            self.save(profile)
            return profile

    def track(
        self,
        user_id: str,
        article_id: str,
        action: str,
        duration_seconds: float = 0.0,
        scroll_depth: float = 0.0,
        timestamp: Optional[datetime] = None,
        category: Optional[str] = None,
    ) -> Tuple[UserProfile, bool]:
        """Record one interaction.

        Returns:
            The updated profile and whether the action was material (the user
            embedding was regenerated)

        Raises:
            InvalidRequest: missing ids, unknown action or negative duration
        """
        if not user_id or not article_id:
            raise InvalidRequest("userId and articleId are required")
        if not InteractionType.is_valid(action):
            raise InvalidRequest(
                f"Invalid action '{action}'. Allowed: {', '.join(sorted(InteractionType.get_allowed_types()))}"
            )
        if duration_seconds is not None and duration_seconds < 0:
            raise InvalidRequest("durationSeconds must be non-negative")

        article = self.articles.get_article(article_id)
        if category is None and article is not None:
            category = article.category
        interaction = Interaction(
            article_id=article_id,
            action=InteractionType(action),
            timestamp=timestamp or utc_now(),
            duration_seconds=float(duration_seconds or 0.0),
            scroll_depth=min(max(float(scroll_depth or 0.0), 0.0), 1.0),
            category=category.lower() if category else None,
        )

        with self._user_lock(user_id):
            profile = self.get_or_create(user_id)
            profile.record(interaction, self.preferred_count)
            removed = profile.trim(self.history_retention)
            if removed:
                logger.debug(f"Trimmed {removed} old interactions for user {user_id}")
            self.save(profile)

            material = interaction.action.is_material
            if material:
                if article is not None:
                    self.embeddings.ensure_article(article, self.generator)
                self.refresh_user_embedding(profile)

        logger.info(f"Tracked {action} on {article_id} for user {user_id} (material={material})")
        return profile, material

    def _engaged_embeddings(self, profile: UserProfile) -> List[ArticleEmbedding]:
        engaged: List[ArticleEmbedding] = []
        for article_id in profile.engaged_article_ids():
            embedding = self.embeddings.get_article(article_id)
            if embedding is None:
                article = self.articles.get_article(article_id)
                if article is None:
                    continue
                embedding, _ = self.embeddings.ensure_article(article, self.generator)
            engaged.append(embedding)
        return engaged

    def refresh_user_embedding(self, profile: UserProfile) -> UserEmbedding:
        """Rebuild and store the user's embedding from their engaged articles."""
        engaged = self._engaged_embeddings(profile)
        confidence = self.generator.profile_confidence(profile, len(engaged))
        embedding = self.generator.embed_user(profile.user_id, engaged, confidence)
        self.embeddings.put_user(embedding)
        logger.debug(
            f"User embedding for {profile.user_id}: {len(engaged)} articles, "
            f"confidence={embedding.confidence:.2f}, cold_start={embedding.is_cold_start}"
        )
        return embedding
