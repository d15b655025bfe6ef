"""
Embedding generation and storage.
"""

from .generator import (
    DEFAULT_DIM,
    EmbeddingBackend,
    EmbeddingGenerator,
    HashingEmbeddingBackend,
    ProviderEmbeddingBackend,
    tokenize,
)
from .store import EmbeddingStore

__all__ = [
    "DEFAULT_DIM",
    "EmbeddingBackend",
    "EmbeddingGenerator",
    "EmbeddingStore",
    "HashingEmbeddingBackend",
    "ProviderEmbeddingBackend",
    "tokenize",
]
