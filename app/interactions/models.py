"""
Request models for interaction tracking.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TrackBody(BaseModel):
    """Body of ``POST /interactions/track``."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId", min_length=1)
    article_id: str = Field(alias="articleId", min_length=1)
    action: str = Field(min_length=1)
    duration_seconds: float = Field(default=0.0, alias="durationSeconds")
    scroll_depth: float = Field(default=0.0, alias="scrollDepth", ge=0.0, le=1.0)


class PreferencesBody(BaseModel):
    """Body of ``POST /interactions/preferences``."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId", min_length=1)
    stated_interests: Optional[List[str]] = Field(default=None, alias="statedInterests")
    demographics: Optional[Dict[str, Any]] = None
