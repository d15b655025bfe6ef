"""
Request models for cache administration.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class InvalidateBody(BaseModel):
    """Body of ``POST /cache/invalidate``; at least one field must be set."""

    model_config = ConfigDict(populate_by_name=True)

    article_id: Optional[str] = Field(default=None, alias="articleId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    type: Optional[str] = None
