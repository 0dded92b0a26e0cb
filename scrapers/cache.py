"""
On-disk cache for registry searches.

One JSON file per query under <cache_dir>/<namespace>/<md5 of the lowercased
query>.json, plus an index.json per namespace. Entries older than the
maximum age are treated as absent. Cache failures never break a search:
they are logged and treated as a miss.
"""

import hashlib
import json
import shutil
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Union

from config.logging import logger
from config.settings import settings
from processing.entity_resolution.records import CandidateRecord
from scrapers.base import DataSource


class RegistryCache:
    """Key -> value store for search results, keyed by query."""

    INDEX_FILE = "index.json"

    def __init__(
        self,
        cache_dir: Union[str, Path, None] = None,
        max_age_days: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cache_dir = Path(cache_dir or settings.CACHE_DIR)
        days = settings.CACHE_MAX_AGE_DAYS if max_age_days is None else max_age_days
        self.max_age_seconds = days * 24 * 60 * 60
        self.clock = clock
        self._index_lock = threading.Lock()

    @staticmethod
    def generate_key(query: str) -> str:
        return hashlib.md5(query.lower().encode("utf-8")).hexdigest()

    def _path(self, namespace: str, query: str) -> Path:
        return self.cache_dir / namespace / f"{self.generate_key(query)}.json"

    def get(self, namespace: str, query: str) -> Optional[Any]:
        """Cached content for the query, or None if missing or stale."""
        path = self._path(namespace, query)
        try:
            if not path.exists():
                return None

            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)

            age = self.clock() - data.get("cached_at", 0)
            if age < self.max_age_seconds:
                return data.get("content")

            logger.debug(f"Stale cache entry for {namespace}/{query} ({age / 86400:.1f} days)")
            return None

        except (OSError, ValueError) as e:
            logger.warning(f"Cache read error for {namespace}/{query}: {e}")
            return None

    def set(self, namespace: str, query: str, content: Any):
        """Store content for the query and record it in the namespace index."""
        path = self._path(namespace, query)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)

            cached_at = self.clock()
            with open(path, "w", encoding="utf-8") as f:
                json.dump(
                    {"query": query, "content": content, "cached_at": cached_at},
                    f,
                    ensure_ascii=False,
                    indent=2,
                )

            with self._index_lock:
                index_path = path.parent / self.INDEX_FILE
                index = self._read_index(index_path)
                index[path.stem] = {
                    "query": query,
                    "cached_at": datetime.fromtimestamp(cached_at, tz=timezone.utc).isoformat(),
                    "filename": path.name,
                }
                with open(index_path, "w", encoding="utf-8") as f:
                    json.dump(index, f, ensure_ascii=False, indent=2)

        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Cache write error for {namespace}/{query}: {e}")

    def clear(self, namespace: Optional[str] = None):
        """Remove one namespace, or the whole cache."""
        target = self.cache_dir / namespace if namespace else self.cache_dir
        if target.exists():
            shutil.rmtree(target)
        logger.info(f"Cleared cache: {target}")

    @staticmethod
    def _read_index(index_path: Path) -> dict:
        if not index_path.exists():
            return {}
        try:
            with open(index_path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError):
            return {}


class CachedDataSource(DataSource):
    """Serves searches from the cache and fills it on misses."""

    def __init__(
        self,
        inner: DataSource,
        cache: RegistryCache,
        namespace: Optional[str] = None,
    ):
        self.inner = inner
        self.cache = cache
        self.name = inner.name
        self.source = inner.source
        self.namespace = namespace or inner.source.value

    def search(self, query: str) -> list[CandidateRecord]:
        cached = self.cache.get(self.namespace, query)
        if cached is not None:
            try:
                records = [CandidateRecord.from_dict(row) for row in cached]
                logger.debug(f"Cache hit for {self.namespace}/{query}: {len(records)} records")
                return records
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Discarding malformed cache entry for {self.namespace}/{query}: {e}")

        records = self.inner.search(query)
        self.cache.set(self.namespace, query, [r.to_dict() for r in records])
        return records

    def close(self):
        self.inner.close()
