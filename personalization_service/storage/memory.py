"""
In-memory store used by tests and single-process deployments.
"""

import copy
import threading
from typing import Any, Dict, List, Optional, Tuple

from .base import Predicate


class InMemoryStore:
    """Thread-safe dictionary store.

    Values are deep-copied on the way in and out so callers never share
    mutable state through the store.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def get(self, namespace: str, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            value = self._data.get(namespace, {}).get(key)
            return copy.deepcopy(value) if value is not None else None

    def put(self, namespace: str, key: str, value: Dict[str, Any]) -> None:
        with self._lock:
            self._data.setdefault(namespace, {})[key] = copy.deepcopy(value)

    def delete(self, namespace: str, key: str) -> bool:
        with self._lock:
            return self._data.get(namespace, {}).pop(key, None) is not None

    def query(
        self, namespace: str, predicate: Optional[Predicate] = None
    ) -> List[Tuple[str, Dict[str, Any]]]:
        with self._lock:
            items = list(self._data.get(namespace, {}).items())
        results = []
        for key, value in items:
            if predicate is None or predicate(value):
                results.append((key, copy.deepcopy(value)))
        return results

    def keys(self, namespace: str) -> List[str]:
        with self._lock:
            return list(self._data.get(namespace, {}).keys())

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
