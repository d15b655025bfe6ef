"""
Article and embedding records.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from .utils import format_timestamp, parse_timestamp, utc_now


@dataclass
class ArticleRecord:
    """An article as returned by the article source."""

    id: str
    title: str = ""
    description: str = ""
    content: str = ""
    category: str = "general"
    published_at: Optional[datetime] = None
    popularity: Optional[float] = None
    source: str = ""
    url: str = ""
    keywords: List[str] = field(default_factory=list)
    location: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "category": self.category,
            "publishedAt": format_timestamp(self.published_at),
            "popularity": self.popularity,
            "source": self.source,
            "url": self.url,
            "keywords": list(self.keywords),
            "location": self.location,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArticleRecord":
        popularity = data.get("popularity")
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            description=data.get("description") or "",
            content=data.get("content") or "",
            category=(data.get("category") or "general").lower(),
            published_at=parse_timestamp(data.get("publishedAt") or data.get("published_at")),
            popularity=float(popularity) if popularity is not None else None,
            source=data.get("source") or "",
            url=data.get("url") or "",
            keywords=list(data.get("keywords") or []),
            location=data.get("location") or "",
        )


@dataclass
class ArticleEmbedding:
    """Vector and extracted metadata for one article."""

    article_id: str
    vector: Sequence[float]
    category: str = "general"
    keywords: List[str] = field(default_factory=list)
    sentiment: float = 0.0
    popularity: float = 0.0
    published_at: Optional[datetime] = None
    content_hash: str = ""

    @property
    def dim(self) -> int:
        return len(self.vector)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "article_id": self.article_id,
            "vector": [float(v) for v in self.vector],
            "category": self.category,
            "keywords": list(self.keywords),
            "sentiment": self.sentiment,
            "popularity": self.popularity,
            "published_at": format_timestamp(self.published_at),
            "content_hash": self.content_hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArticleEmbedding":
        return cls(
            article_id=data.get("article_id", ""),
            vector=tuple(float(v) for v in data.get("vector") or []),
            category=data.get("category") or "general",
            keywords=list(data.get("keywords") or []),
            sentiment=float(data.get("sentiment") or 0.0),
            popularity=float(data.get("popularity") or 0.0),
            published_at=parse_timestamp(data.get("published_at")),
            content_hash=data.get("content_hash") or "",
        )


@dataclass
class UserEmbedding:
    """Weighted combination of the embeddings a user engaged with."""

    user_id: str
    vector: Sequence[float]
    confidence: float = 0.0
    last_updated: datetime = field(default_factory=utc_now)
    is_cold_start: bool = False

    @property
    def dim(self) -> int:
        return len(self.vector)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "vector": [float(v) for v in self.vector],
            "confidence": self.confidence,
            "last_updated": format_timestamp(self.last_updated),
            "is_cold_start": self.is_cold_start,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserEmbedding":
        return cls(
            user_id=data.get("user_id", ""),
            vector=tuple(float(v) for v in data.get("vector") or []),
            confidence=float(data.get("confidence") or 0.0),
            last_updated=parse_timestamp(data.get("last_updated")) or utc_now(),
            is_cold_start=bool(data.get("is_cold_start", False)),
        )
