"""
User profile model.

A profile is created on a user's first interaction, mutated by every tracked
interaction and never hard-deleted; only its history is retention-trimmed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .interactions import Interaction, InteractionType
from .utils import format_timestamp, parse_timestamp, utc_now

DEFAULT_PREFERRED_COUNT = 5
READ_DWELL_SECONDS = 30


@dataclass
class Demographics:
    """Self-reported attributes used by cold-start inference."""

    age: Optional[int] = None
    profession: str = ""
    country: str = ""
    city: str = ""
    languages: List[str] = field(default_factory=lambda: ["en"])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "age": self.age,
            "profession": self.profession,
            "country": self.country,
            "city": self.city,
            "languages": list(self.languages),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Demographics":
        data = data or {}
        age = data.get("age")
        return cls(
            age=int(age) if age is not None else None,
            profession=data.get("profession") or "",
            country=data.get("country") or "",
            city=data.get("city") or "",
            languages=list(data.get("languages") or ["en"]),
        )


@dataclass
class UserProfile:
    """Reading history and derived preferences for one user."""

    user_id: str
    interactions: List[Interaction] = field(default_factory=list)
    category_time_spent: Dict[str, float] = field(default_factory=dict)
    category_engagement: Dict[str, float] = field(default_factory=dict)
    preferred_categories: List[str] = field(default_factory=list)
    stated_interests: List[str] = field(default_factory=list)
    demographics: Demographics = field(default_factory=Demographics)
    read_articles: List[str] = field(default_factory=list)
    revision: int = 0
    created_at: datetime = field(default_factory=utc_now)
    last_active: datetime = field(default_factory=utc_now)

    def record(self, interaction: Interaction, preferred_count: int = DEFAULT_PREFERRED_COUNT) -> None:
        """Append an interaction and refresh the derived maps."""
        self.interactions.append(interaction)
        self.revision += 1
        self.last_active = interaction.timestamp

        if interaction.category:
            spent = max(interaction.duration_seconds, 1.0)
            self.category_time_spent[interaction.category] = (
                self.category_time_spent.get(interaction.category, 0.0) + spent
            )
            self.category_engagement[interaction.category] = (
                self.category_engagement.get(interaction.category, 0.0)
                + interaction.engagement_weight()
            )

        is_read = interaction.action in (InteractionType.READ, InteractionType.READ_COMPLETE)
        if (is_read or interaction.duration_seconds > READ_DWELL_SECONDS) and (
            interaction.article_id not in self.read_articles
        ):
            self.read_articles.append(interaction.article_id)

        self.refresh_preferred_categories(preferred_count)

    def refresh_preferred_categories(self, preferred_count: int = DEFAULT_PREFERRED_COUNT) -> None:
        if not self.category_time_spent:
            self.preferred_categories = [i.lower() for i in self.stated_interests[:preferred_count]]
            return
        ordered = sorted(
            self.category_time_spent.items(),
            key=lambda item: (-item[1], -self.category_engagement.get(item[0], 0.0), item[0]),
        )
        self.preferred_categories = [category for category, _ in ordered[:preferred_count]]

    def trim(self, retention: int) -> int:
        """Drop the oldest interactions and read ids beyond ``retention``.

        Returns the number of interactions removed.
        """
        if retention <= 0:
            return 0
        if len(self.read_articles) > retention:
            self.read_articles = self.read_articles[-retention:]
        if len(self.interactions) <= retention:
            return 0
        removed = len(self.interactions) - retention
        self.interactions = self.interactions[-retention:]
        return removed

    def recent_categories(self, n: int = 10) -> List[Optional[str]]:
        return [i.category for i in self.interactions[-n:]]

    def engaged_article_ids(self) -> List[str]:
        """Articles with material engagement, oldest first, each listed once at its latest position."""
        seen = set()
        ordered: List[str] = []
        for interaction in reversed(self.interactions):
            if not interaction.action.is_material:
                continue
            if interaction.article_id in seen:
                continue
            seen.add(interaction.article_id)
            ordered.append(interaction.article_id)
        ordered.reverse()
        return ordered

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "interactions": [i.to_dict() for i in self.interactions],
            "category_time_spent": dict(self.category_time_spent),
            "category_engagement": dict(self.category_engagement),
            "preferred_categories": list(self.preferred_categories),
            "stated_interests": list(self.stated_interests),
            "demographics": self.demographics.to_dict(),
            "read_articles": list(self.read_articles),
            "revision": self.revision,
            "created_at": format_timestamp(self.created_at),
            "last_active": format_timestamp(self.last_active),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        return cls(
            user_id=data.get("user_id", ""),
            interactions=[Interaction.from_dict(i) for i in data.get("interactions", [])],
            category_time_spent=dict(data.get("category_time_spent") or {}),
            category_engagement=dict(data.get("category_engagement") or {}),
            preferred_categories=list(data.get("preferred_categories") or []),
            stated_interests=list(data.get("stated_interests") or []),
            demographics=Demographics.from_dict(data.get("demographics")),
            read_articles=list(data.get("read_articles") or []),
            revision=int(data.get("revision") or 0),
            created_at=parse_timestamp(data.get("created_at")) or utc_now(),
            last_active=parse_timestamp(data.get("last_active")) or utc_now(),
        )
