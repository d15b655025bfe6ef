"""
Text generation through a provider chain with deterministic fallback.
"""

from .prompts import SUMMARY_SENTENCES, load_prompt, render_prompt
from .providers import LangChainTextProvider, ProviderResult, TextProvider, build_provider
from .service import (
    EXTRACTIVE_MODEL,
    UNABLE_TO_GENERATE,
    GenerationService,
    GenerationState,
    article_excerpts,
    extractive_text,
    new_request_id,
)

__all__ = [
    "EXTRACTIVE_MODEL",
    "GenerationService",
    "GenerationState",
    "LangChainTextProvider",
    "ProviderResult",
    "SUMMARY_SENTENCES",
    "TextProvider",
    "UNABLE_TO_GENERATE",
    "article_excerpts",
    "build_provider",
    "extractive_text",
    "load_prompt",
    "new_request_id",
    "render_prompt",
]
