"""
Request models for the recommendation endpoint.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RecommendBody(BaseModel):
    """Body of ``POST /recommend``."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId", min_length=1)
    max_results: int = Field(default=10, alias="maxResults")
    categories: Optional[List[str]] = None
    exclude_read_articles: bool = Field(default=True, alias="excludeReadArticles")
