"""
Storage adapters.

The service talks to a ``Store`` capability; which adapter backs it is chosen
by configuration through ``create_store``.
"""

from pathlib import Path
from typing import Optional

from .base import (
    ARTICLE_EMBEDDINGS,
    CACHE,
    PROFILES,
    REQUESTS,
    USER_EMBEDDINGS,
    Store,
)
from .json_store import JsonFileStore
from .memory import InMemoryStore


def create_store(backend: str = "memory", base_dir: Optional[Path] = None) -> Store:
    """Create the configured store adapter.

    Args:
        backend: "memory" or "json"
        base_dir: Root directory for the json backend

    Returns:
        A Store implementation
    """
    backend = (backend or "memory").lower()
    if backend == "memory":
        return InMemoryStore()
    if backend == "json":
        if base_dir is None:
            raise ValueError("The json store backend requires a base directory")
        return JsonFileStore(Path(base_dir))
    raise ValueError(f"Unknown store backend: {backend}")


__all__ = [
    "ARTICLE_EMBEDDINGS",
    "CACHE",
    "PROFILES",
    "REQUESTS",
    "USER_EMBEDDINGS",
    "InMemoryStore",
    "JsonFileStore",
    "Store",
    "create_store",
]
