"""
Embedding store: typed access to article and user vectors.
"""

import logging
from typing import Optional, Tuple

from ..models import ArticleEmbedding, ArticleRecord, UserEmbedding
from ..storage import ARTICLE_EMBEDDINGS, USER_EMBEDDINGS, Store
from .generator import EmbeddingGenerator

logger = logging.getLogger(__name__)


class EmbeddingStore:
    """Holds article and user embeddings of one fixed dimensionality."""

    def __init__(self, store: Store, dim: int):
        self.store = store
        self.dim = dim

    def _check_dim(self, vector, owner: str) -> None:
        if len(vector) != self.dim:
            raise ValueError(f"Embedding for {owner} has dimension {len(vector)}, expected {self.dim}")

    def get_article(self, article_id: str) -> Optional[ArticleEmbedding]:
        data = self.store.get(ARTICLE_EMBEDDINGS, article_id)
        if data is None:
            return None
        embedding = ArticleEmbedding.from_dict(data)
        if embedding.dim != self.dim:
            logger.warning(f"Discarding stale embedding for article {article_id} (dim {embedding.dim})")
            return None
        return embedding

    def put_article(self, embedding: ArticleEmbedding) -> None:
        self._check_dim(embedding.vector, f"article {embedding.article_id}")
        self.store.put(ARTICLE_EMBEDDINGS, embedding.article_id, embedding.to_dict())

    def get_user(self, user_id: str) -> Optional[UserEmbedding]:
        data = self.store.get(USER_EMBEDDINGS, user_id)
        if data is None:
            return None
        embedding = UserEmbedding.from_dict(data)
        if embedding.dim != self.dim:
            logger.warning(f"Discarding stale embedding for user {user_id} (dim {embedding.dim})")
            return None
        return embedding

    def put_user(self, embedding: UserEmbedding) -> None:
        self._check_dim(embedding.vector, f"user {embedding.user_id}")
        self.store.put(USER_EMBEDDINGS, embedding.user_id, embedding.to_dict())

    def ensure_article(self, article: ArticleRecord, generator: EmbeddingGenerator) -> Tuple[ArticleEmbedding, bool]:
        """Return the stored embedding, re-embedding when the content changed.

        The flag is True when a new embedding was written.
        """
        current = self.get_article(article.id)
        if current is not None and current.content_hash == generator.content_hash(generator.article_text(article)):
            return current, False
        embedding = generator.embed_article(article)
        self.put_article(embedding)
        return embedding, True
