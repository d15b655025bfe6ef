"""
Request models for the generation endpoints.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class GenerateBody(BaseModel):
    """Body of ``POST /generate``.

    ``kind`` is one of summarize, qa or reason. ``question`` is required for
    qa and ``userId`` for reason; the service enforces both.
    """

    model_config = ConfigDict(populate_by_name=True)

    kind: str = Field(min_length=1)
    article_id: str = Field(alias="articleId", min_length=1)
    user_id: Optional[str] = Field(default=None, alias="userId")
    question: Optional[str] = None
    length: str = "medium"
