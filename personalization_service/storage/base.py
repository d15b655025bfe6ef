"""
Store capability shared by the persistent and in-memory adapters.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

# Namespaces used by the service
PROFILES = "profiles"
ARTICLE_EMBEDDINGS = "article_embeddings"
USER_EMBEDDINGS = "user_embeddings"
CACHE = "cache"
REQUESTS = "requests"

Predicate = Callable[[Dict[str, Any]], bool]


class Store(Protocol):
    """Key-value store partitioned into namespaces.

    Values are JSON-compatible dictionaries. Implementations must be safe to
    call from several request threads at once.
    """

    def get(self, namespace: str, key: str) -> Optional[Dict[str, Any]]:
        """Return the stored value or None."""

    def put(self, namespace: str, key: str, value: Dict[str, Any]) -> None:
        """Insert or replace a value."""

    def delete(self, namespace: str, key: str) -> bool:
        """Remove a value; returns whether it existed."""

    def query(
        self, namespace: str, predicate: Optional[Predicate] = None
    ) -> List[Tuple[str, Dict[str, Any]]]:
        """Return (key, value) pairs matching ``predicate`` (all if None)."""

    def keys(self, namespace: str) -> Iterable[str]:
        """Return all keys in a namespace."""
