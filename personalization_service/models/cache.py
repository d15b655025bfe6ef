"""
Cache entry and invalidation scope.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class CacheScope:
    """Selects entries for invalidation.

    An entry matches when it carries the article id or the user id (either
    one is enough when both are set). ``kind`` further restricts the match.
    A scope with only ``kind`` set matches every entry of that kind.
    """

    article_id: Optional[str] = None
    user_id: Optional[str] = None
    kind: Optional[str] = None

    def is_empty(self) -> bool:
        return self.article_id is None and self.user_id is None and self.kind is None

    def matches(self, entry: "CacheEntry") -> bool:
        if self.is_empty():
            return False
        if self.kind is not None and entry.kind != self.kind:
            return False
        if self.article_id is None and self.user_id is None:
            return True
        return (self.article_id is not None and self.article_id in entry.article_ids) or (
            self.user_id is not None and self.user_id in entry.user_ids
        )


@dataclass
class CacheEntry:
    """A memoized payload with an absolute expiry (epoch seconds)."""

    key: str
    payload: Any
    created_at: float
    expires_at: float
    kind: str = ""
    article_ids: List[str] = field(default_factory=list)
    user_ids: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.expires_at <= self.created_at:
            raise ValueError("Cache entry must expire strictly after it was created")

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "payload": self.payload,
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "kind": self.kind,
            "article_ids": list(self.article_ids),
            "user_ids": list(self.user_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        return cls(
            key=data["key"],
            payload=data.get("payload"),
            created_at=float(data["created_at"]),
            expires_at=float(data["expires_at"]),
            kind=data.get("kind", ""),
            article_ids=list(data.get("article_ids") or []),
            user_ids=list(data.get("user_ids") or []),
        )
