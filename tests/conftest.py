"""
Shared fixtures: article builders, fake text providers and a wired service.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from personalization_service.articles import InMemoryArticleSource
from personalization_service.errors import FailureKind, ProviderError, UpstreamFatal, UpstreamRetryable
from personalization_service.generation import ProviderResult
from personalization_service.models import ArticleRecord
from personalization_service.storage import InMemoryStore

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeProvider:
    """In-process TextProvider returning canned text or raising canned errors."""

    def __init__(self, name: str = "fake", model: str = "fake-model", text: str = "Generated text.",
                 error: Optional[Exception] = None, tokens: int = 42, delay: Optional[threading.Event] = None):
        self.name = name
        self.model = model
        self.text = text
        self.error = error
        self.tokens = tokens
        self.delay = delay
        self.prompts: List[str] = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> int:
        with self._lock:
            return len(self.prompts)

    def generate(self, prompt: str, temperature: float, max_tokens: int) -> ProviderResult:
        with self._lock:
            self.prompts.append(prompt)
        if self.delay is not None:
            self.delay.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return ProviderResult(text=self.text, tokens_used=self.tokens)


def retryable(provider: str = "fake") -> UpstreamRetryable:
    return UpstreamRetryable(FailureKind.SERVER_ERROR, provider, "502 bad gateway")


def malformed(provider: str = "fake") -> UpstreamFatal:
    return UpstreamFatal(FailureKind.MALFORMED_RESPONSE, provider, "Empty completion")


def rejected(provider: str = "fake") -> ProviderError:
    return ProviderError(FailureKind.INVALID_REQUEST, provider, "400 bad request")


def make_article(article_id: str, category: str = "technology", hours_old: float = 1.0,
                 popularity: Optional[float] = 50.0, title: str = "", content: str = "",
                 description: str = "", now: datetime = NOW) -> ArticleRecord:
    return ArticleRecord(
        id=article_id,
        title=title or f"{category.title()} story {article_id}",
        description=description or f"A {category} report about recent developments.",
        content=content or f"The {category} world saw new developments today. Analysts expect more news soon.",
        category=category,
        published_at=now - timedelta(hours=hours_old),
        popularity=popularity,
        source="Test Wire",
        url=f"https://news.example/{article_id}",
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def article_factory():
    return make_article


@pytest.fixture
def provider_factory():
    return FakeProvider


@pytest.fixture
def errors():
    """Canned provider failures by name."""
    return {"retryable": retryable, "malformed": malformed, "rejected": rejected}


@pytest.fixture
def articles():
    """A small mixed catalogue."""
    return InMemoryArticleSource([
        make_article("tech-1", "technology", hours_old=2, title="New AI chip doubles inference speed"),
        make_article("tech-2", "technology", hours_old=5, title="Open source compilers get faster"),
        make_article("tech-3", "technology", hours_old=8, title="Quantum networking milestone reached"),
        make_article("tech-new", "technology", hours_old=1, title="Robotics startup unveils warehouse robot"),
        make_article("sci-1", "science", hours_old=3, title="Telescope spots distant galaxy"),
        make_article("biz-1", "business", hours_old=4, title="Markets rally on earnings"),
        make_article("gen-old", "general", hours_old=24 * 7, title="Week in review"),
        make_article("sports-1", "sports", hours_old=6, title="Local team wins final"),
    ])
