"""
Generation request/response models.

Pydantic models for prompts sent through the provider chain and the answers
returned to callers.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Confidence(str, Enum):
    """Confidence tier attached to every generated answer."""

    HIGH = "High"
    MED = "Med"
    LOW = "Low"


class GenerationKind(str, Enum):
    """Kinds of text the generation endpoint produces."""

    SUMMARIZE = "summarize"
    QA = "qa"
    REASON = "reason"


class SourceExcerpt(BaseModel):
    """A passage the answer may cite; also feeds the extractive fallback."""
    source: str = Field(default="", description="Publisher or document name")
    url: str = Field(default="", description="Link to the source")
    excerpt: str = Field(default="", description="Passage text")


class GenerationRequest(BaseModel):
    """A prompt and its sampling options."""
    prompt: str = Field(description="Fully rendered prompt text")
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(default=500, gt=0)
    sources: List[SourceExcerpt] = Field(default_factory=list)
    request_id: Optional[str] = Field(default=None, description="Id for idempotent status polling")


class GenerationResponse(BaseModel):
    """Result of the provider chain, whichever state produced it."""
    text: str
    model_used: str
    tokens_used: int = 0
    sources: List[SourceExcerpt] = Field(default_factory=list)
    request_id: str
    confidence: Confidence
    provider_fallback_used: bool = False
    cache_hit: bool = False

    def to_api(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys used on the HTTP surface."""
        return {
            "text": self.text,
            "modelUsed": self.model_used,
            "tokensUsed": self.tokens_used,
            "sources": [s.model_dump() for s in self.sources],
            "requestId": self.request_id,
            "confidence": self.confidence.value,
            "providerFallbackUsed": self.provider_fallback_used,
            "cacheHit": self.cache_hit,
        }
