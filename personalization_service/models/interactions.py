"""
Interaction types and records.

Defines all allowed interaction kinds as an enum for type safety and
consistency, and the record stored in a user's ordered history.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .utils import format_timestamp, parse_timestamp, utc_now


class InteractionType(Enum):
    """Allowed interaction kinds for tracking."""

    # Passive signals
    VIEW = "view"
    CLICK = "click"
    SKIP = "skip"

    # Reading signals
    READ = "read"
    READ_COMPLETE = "read_complete"

    # Explicit engagement
    SAVE = "save"
    SHARE = "share"
    LIKE = "like"
    COMMENT = "comment"

    # AI feature usage
    SUMMARIZE = "summarize"
    QA = "qa"

    @classmethod
    def is_valid(cls, action: str) -> bool:
        """Check if an action string is valid."""
        try:
            cls(action)
            return True
        except ValueError:
            return False

    @classmethod
    def get_allowed_types(cls) -> set[str]:
        """Get all allowed action strings."""
        return {e.value for e in cls}

    @property
    def is_material(self) -> bool:
        """Whether this action changes the user's embedding."""
        return self in MATERIAL_ACTIONS


MATERIAL_ACTIONS = frozenset(
    {
        InteractionType.READ,
        InteractionType.READ_COMPLETE,
        InteractionType.SAVE,
        InteractionType.SHARE,
        InteractionType.LIKE,
        InteractionType.COMMENT,
    }
)

# Base engagement weight per action, boosted by dwell time and scroll depth.
ACTION_WEIGHTS: Dict[InteractionType, float] = {
    InteractionType.VIEW: 0.1,
    InteractionType.CLICK: 0.3,
    InteractionType.SKIP: 0.0,
    InteractionType.READ: 0.5,
    InteractionType.READ_COMPLETE: 0.6,
    InteractionType.SAVE: 1.0,
    InteractionType.SHARE: 0.8,
    InteractionType.LIKE: 0.7,
    InteractionType.COMMENT: 0.9,
    InteractionType.SUMMARIZE: 0.2,
    InteractionType.QA: 0.3,
}


@dataclass
class Interaction:
    """A single tracked interaction in a user's history."""

    article_id: str
    action: InteractionType
    timestamp: datetime = field(default_factory=utc_now)
    duration_seconds: float = 0.0
    scroll_depth: float = 0.0
    category: Optional[str] = None

    def engagement_weight(self) -> float:
        weight = ACTION_WEIGHTS.get(self.action, 0.1)
        if self.duration_seconds > 120:
            weight *= 2.5
        elif self.duration_seconds > 60:
            weight *= 2.0
        elif self.duration_seconds > 30:
            weight *= 1.5
        if self.scroll_depth > 0.8:
            weight *= 1.5
        elif self.scroll_depth > 0.5:
            weight *= 1.2
        return weight

    def to_dict(self) -> Dict[str, Any]:
        return {
            "article_id": self.article_id,
            "action": self.action.value,
            "timestamp": format_timestamp(self.timestamp),
            "duration_seconds": self.duration_seconds,
            "scroll_depth": self.scroll_depth,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Interaction":
        return cls(
            article_id=data.get("article_id", ""),
            action=InteractionType(data.get("action", "view")),
            timestamp=parse_timestamp(data.get("timestamp")) or utc_now(),
            duration_seconds=float(data.get("duration_seconds") or 0.0),
            scroll_depth=float(data.get("scroll_depth") or 0.0),
            category=data.get("category"),
        )
