"""
Embedding generation for articles and users.

Article vectors come from a pluggable backend: a deterministic
feature-hashing projection by default, or a provider-backed embedding model.
User vectors are the recency-weighted mean of the article vectors the user
engaged with.
"""

from __future__ import annotations

import hashlib
import logging
import re
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Protocol, Sequence

import numpy as np

from ..models import ArticleEmbedding, ArticleRecord, UserEmbedding, UserProfile, utc_now

logger = logging.getLogger(__name__)

DEFAULT_DIM = 384
DEFAULT_MAX_CHARS = 8000
COLD_START_CONFIDENCE = 0.2

STOP_WORDS = frozenset(
    """
    a an and are as at be been being but by can could did do does for from had has
    have how in into is it its may might more most must not of on or our over said
    says should than that the their them then there these they this those through
    to was were what when where which while who will with would about after also
    just like your you we he she his her
    """.split()
)

POSITIVE_WORDS = frozenset(
    """
    gain gains growth improve improved improves success successful win wins won
    breakthrough record strong positive benefit benefits boost rise rises rising
    celebrate hope optimistic recovery advance advances innovative safe
    """.split()
)

NEGATIVE_WORDS = frozenset(
    """
    loss losses decline declines fall falls fell crisis crash fail failed failure
    weak negative risk risks threat threats war attack attacks death deaths fear
    concern concerns warning warns drop drops layoffs scandal fraud danger
    """.split()
)

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class EmbeddingBackend(Protocol):
    """Turns text into a raw (unnormalized) vector."""

    dim: int

    def embed(self, text: str) -> Sequence[float]:
        ...


def tokenize(text: str) -> List[str]:
    return [t for t in _TOKEN_RE.findall((text or "").lower()) if len(t) > 1 and t not in STOP_WORDS]


def _hash64(feature: str) -> int:
    return int.from_bytes(hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest(), "big")


def normalize(vector: np.ndarray) -> np.ndarray:
    norm = float(np.linalg.norm(vector))
    if norm == 0.0:
        return vector
    return vector / norm


class HashingEmbeddingBackend:
    """Signed feature hashing of unigrams and bigrams into ``dim`` buckets.

    Fully deterministic: the same text always yields the same vector, in every
    process.
    """

    def __init__(self, dim: int = DEFAULT_DIM, bigram_weight: float = 0.5):
        if dim <= 0:
            raise ValueError("Embedding dimension must be positive")
        self.dim = dim
        self.bigram_weight = bigram_weight

    def embed(self, text: str) -> np.ndarray:
        vector = np.zeros(self.dim, dtype=np.float64)
        tokens = tokenize(text)
        features = [(t, 1.0) for t in tokens]
        features += [(f"{a}_{b}", self.bigram_weight) for a, b in zip(tokens, tokens[1:])]
        for feature, weight in features:
            h = _hash64(feature)
            sign = -1.0 if (h >> 63) & 1 else 1.0
            vector[h % self.dim] += sign * weight
        return vector


class ProviderEmbeddingBackend:
    """Embeddings from an OpenAI-compatible endpoint via LangChain."""

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        dim: int = DEFAULT_DIM,
        timeout: int = 30,
    ):
        from langchain_openai import OpenAIEmbeddings

        self.dim = dim
        self._client = OpenAIEmbeddings(
            model=model,
            api_key=api_key,
            base_url=base_url,
            dimensions=dim,
            timeout=timeout,
        )

    def embed(self, text: str) -> Sequence[float]:
        return self._client.embed_query(text)


class EmbeddingGenerator:
    """Produces article and user embeddings plus keyword/sentiment metadata."""

    def __init__(
        self,
        dim: int = DEFAULT_DIM,
        max_chars: int = DEFAULT_MAX_CHARS,
        backend: Optional[EmbeddingBackend] = None,
    ):
        self.dim = dim
        self.max_chars = max_chars
        self._hashing = HashingEmbeddingBackend(dim)
        self.backend = backend or self._hashing

    # Text features -------------------------------------------------------------

    def article_text(self, article: ArticleRecord) -> str:
        text = f"{article.title} {article.description} {article.content}"
        return text[: self.max_chars]

    def embed_text(self, text: str) -> np.ndarray:
        """Embed text and L2-normalize the result (zero vectors stay zero)."""
        raw = None
        if self.backend is not self._hashing:
            try:
                raw = np.asarray(self.backend.embed(text), dtype=np.float64)
                if raw.shape != (self.dim,):
                    logger.warning(
                        f"Embedding backend returned {raw.shape[0] if raw.ndim else 0} dims, "
                        f"expected {self.dim}; using hashing projection"
                    )
                    raw = None
            except Exception as e:
                logger.warning(f"Embedding backend failed, using hashing projection: {e}")
                raw = None
        if raw is None:
            raw = self._hashing.embed(text)
        return normalize(raw)

    @staticmethod
    def extract_keywords(text: str, limit: int = 10) -> List[str]:
        counts = Counter(t for t in tokenize(text) if len(t) > 3 and not t.isdigit())
        ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [word for word, _ in ordered[:limit]]

    @staticmethod
    def sentiment(text: str) -> float:
        tokens = tokenize(text)
        positive = sum(1 for t in tokens if t in POSITIVE_WORDS)
        negative = sum(1 for t in tokens if t in NEGATIVE_WORDS)
        matched = positive + negative
        if matched == 0:
            return 0.0
        return (positive - negative) / matched

    @staticmethod
    def popularity(article: ArticleRecord) -> float:
        """Popularity in [0, 100]; seeded from the article id when the source has none."""
        if article.popularity is not None:
            return float(min(max(article.popularity, 0.0), 100.0))
        digest = hashlib.sha256(article.id.encode("utf-8")).hexdigest()
        return (int(digest[:8], 16) % 10000) / 100.0

    @staticmethod
    def content_hash(text: str) -> str:
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    # Articles ------------------------------------------------------------------

    def embed_article(self, article: ArticleRecord) -> ArticleEmbedding:
        text = self.article_text(article)
        keywords = list(article.keywords) or self.extract_keywords(text)
        return ArticleEmbedding(
            article_id=article.id,
            vector=tuple(float(v) for v in self.embed_text(text)),
            category=(article.category or "general").lower(),
            keywords=keywords,
            sentiment=self.sentiment(text),
            popularity=self.popularity(article),
            published_at=article.published_at,
            content_hash=self.content_hash(text),
        )

    def embed_articles(self, articles: Sequence[ArticleRecord], max_workers: int = 4) -> List[ArticleEmbedding]:
        """Embed many articles in parallel, preserving input order."""
        if not articles:
            return []
        if max_workers <= 1 or len(articles) == 1:
            return [self.embed_article(a) for a in articles]
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(self.embed_article, articles))

    # Users ---------------------------------------------------------------------

    def embed_user(
        self,
        user_id: str,
        engaged: Sequence[ArticleEmbedding],
        confidence: Optional[float] = None,
    ) -> UserEmbedding:
        """Weighted mean of engaged article vectors, oldest first.

        The i-th article (0 = oldest) gets weight 1 + 0.1 * i, so the most
        recent engagement counts the most.
        """
        usable = [e for e in engaged if len(e.vector) == self.dim]
        if len(usable) != len(engaged):
            logger.warning(
                f"Skipped {len(engaged) - len(usable)} article embeddings with wrong dimension for user {user_id}"
            )
        if not usable:
            return UserEmbedding(
                user_id=user_id,
                vector=tuple([0.0] * self.dim),
                confidence=min(confidence if confidence is not None else COLD_START_CONFIDENCE, COLD_START_CONFIDENCE),
                last_updated=utc_now(),
                is_cold_start=True,
            )

        weights = np.array([1.0 + 0.1 * i for i in range(len(usable))])
        matrix = np.array([e.vector for e in usable], dtype=np.float64)
        mean = (weights[:, None] * matrix).sum(axis=0) / weights.sum()
        vector = normalize(mean)
        return UserEmbedding(
            user_id=user_id,
            vector=tuple(float(v) for v in vector),
            confidence=float(confidence) if confidence is not None else 0.5,
            last_updated=utc_now(),
            is_cold_start=False,
        )

    @staticmethod
    def profile_confidence(profile: UserProfile, engaged_count: Optional[int] = None) -> float:
        """Confidence in [0, 1] from interaction volume and category diversity."""
        engaged = engaged_count if engaged_count is not None else len(profile.engaged_article_ids())
        if engaged == 0:
            return 0.1 if profile.interactions else 0.0
        volume = min(1.0, len(profile.interactions) / 50.0)
        diversity = min(1.0, len(profile.category_time_spent) / 5.0)
        return min(1.0, 0.2 + 0.5 * volume + 0.3 * diversity)
