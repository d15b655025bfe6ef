"""
Persistent JSON-file store.

One file per record under ``<base_dir>/<namespace>/``. Writes go through a
temporary file and ``os.replace`` so readers never see a half-written record.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote, unquote

from .base import Predicate

logger = logging.getLogger(__name__)


class JsonFileStore:
    """File-backed store that survives restarts."""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _lock(self, namespace: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(namespace)
            if lock is None:
                lock = self._locks[namespace] = threading.RLock()
            return lock

    def _dir(self, namespace: str) -> Path:
        path = self.base_dir / quote(namespace, safe="")
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _file(self, namespace: str, key: str) -> Path:
        return self._dir(namespace) / f"{quote(key, safe='')}.json"

    def _read(self, path: Path) -> Optional[Dict[str, Any]]:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable record {path}: {e}")
            return None

    def get(self, namespace: str, key: str) -> Optional[Dict[str, Any]]:
        with self._lock(namespace):
            return self._read(self._file(namespace, key))

    def put(self, namespace: str, key: str, value: Dict[str, Any]) -> None:
        target = self._file(namespace, key)
        with self._lock(namespace):
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(value, f, ensure_ascii=False)
                os.replace(tmp_name, target)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise

    def delete(self, namespace: str, key: str) -> bool:
        with self._lock(namespace):
            try:
                self._file(namespace, key).unlink()
                return True
            except FileNotFoundError:
                return False

    def query(
        self, namespace: str, predicate: Optional[Predicate] = None
    ) -> List[Tuple[str, Dict[str, Any]]]:
        results = []
        with self._lock(namespace):
            for path in sorted(self._dir(namespace).glob("*.json")):
                value = self._read(path)
                if value is None:
                    continue
                if predicate is None or predicate(value):
                    results.append((unquote(path.stem), value))
        return results

    def keys(self, namespace: str) -> List[str]:
        with self._lock(namespace):
            return [unquote(path.stem) for path in sorted(self._dir(namespace).glob("*.json"))]
