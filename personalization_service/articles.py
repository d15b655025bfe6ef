"""
Article sources.

The ingestion/search API is an external collaborator; these adapters expose
it as a read-only source of ``ArticleRecord`` objects.
"""

import logging
import threading
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

import requests

from .models import ArticleRecord

logger = logging.getLogger(__name__)


class ArticleSource(Protocol):
    """Read access to article records."""

    def get_article(self, article_id: str) -> Optional[ArticleRecord]:
        """Return the article or None when it does not exist."""

    def list_articles(
        self, categories: Optional[Sequence[str]] = None, limit: int = 100
    ) -> List[ArticleRecord]:
        """Return candidate articles, optionally filtered by category."""


class InMemoryArticleSource:
    """Article source backed by a dictionary."""

    def __init__(self, articles: Iterable[ArticleRecord] = ()):
        self._lock = threading.Lock()
        self._articles: Dict[str, ArticleRecord] = {a.id: a for a in articles}

    def add(self, article: ArticleRecord) -> None:
        with self._lock:
            self._articles[article.id] = article

    def get_article(self, article_id: str) -> Optional[ArticleRecord]:
        with self._lock:
            return self._articles.get(article_id)

    def list_articles(
        self, categories: Optional[Sequence[str]] = None, limit: int = 100
    ) -> List[ArticleRecord]:
        wanted = {c.lower() for c in categories} if categories else None
        with self._lock:
            articles = list(self._articles.values())
        if wanted is not None:
            articles = [a for a in articles if a.category.lower() in wanted]
        return articles[:limit]


class HttpArticleSource:
    """Article source backed by the news REST API.

    ``GET {base_url}/articles/{id}`` returns one article,
    ``GET {base_url}/articles?category=a,b&limit=n`` returns a list (either a
    bare JSON array or ``{"articles": [...]}``).
    """

    def __init__(self, base_url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_article(self, article_id: str) -> Optional[ArticleRecord]:
        url = f"{self.base_url}/articles/{article_id}"
        try:
            resp = self.session.get(url, timeout=self.timeout)
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
            return ArticleRecord.from_dict(resp.json())
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Failed to fetch article {article_id}: {e}")
            return None

    def list_articles(
        self, categories: Optional[Sequence[str]] = None, limit: int = 100
    ) -> List[ArticleRecord]:
        params = {"limit": limit}
        if categories:
            params["category"] = ",".join(categories)
        try:
            resp = self.session.get(f"{self.base_url}/articles", params=params, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Failed to list articles: {e}")
            return []
        items = data.get("articles", []) if isinstance(data, dict) else data
        return [ArticleRecord.from_dict(item) for item in items if isinstance(item, dict)][:limit]
