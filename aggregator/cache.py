"""
Development cache of raw source records.

Avoids refetching every source while iterating locally. Each source's raw
records are stored as one JSON file stamped with their retrieval time, and
served while younger than the TTL.

Cache files are named:
    {source_id}-{hash_of_url}.json
"""

import hashlib
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from aggregator.config import settings
from aggregator.writer import atomic_write_json


def make_cache_key(source_id: str, url: str | None) -> str:
    """
    Generate a cache key from a source id and its URL.

    Args:
        source_id: ID of the source
        url: Location the records were fetched from

    Returns:
        Cache key string, safe as a file stem
    """
    url_hash = hashlib.md5(json.dumps(url or "").encode()).hexdigest()[:12]
    return f"{source_id}-{url_hash}"


class RawRecordCache:
    """
    File cache of raw records per source with TTL-based expiry.

    Args:
        cache_dir: Directory holding cache files
        ttl_seconds: Maximum age of a usable entry
    """

    def __init__(self, cache_dir: Path | None = None, ttl_seconds: int | None = None, clock=None):
        self.cache_dir = Path(cache_dir or settings.pipeline.cache_dir)
        self.ttl = timedelta(seconds=ttl_seconds if ttl_seconds is not None else settings.pipeline.cache_ttl_seconds)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def path_for(self, source_id: str, url: str | None) -> Path:
        return self.cache_dir / f"{make_cache_key(source_id, url)}.json"

    def get(self, source_id: str, url: str | None) -> tuple[list[dict[str, Any]], datetime] | None:
        """Fresh cached records and their retrieval time, or None."""
        path = self.path_for(source_id, url)
        if not path.exists():
            return None

        try:
            with open(path, encoding="utf-8") as f:
                entry = json.load(f)
            cached_at = datetime.fromisoformat(entry["cachedAt"])
            records = entry["records"]
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Ignoring unreadable cache file {path}: {e}")
            return None

        age = self.clock() - cached_at
        if age > self.ttl:
            logger.debug(f"Cache entry for {source_id} expired ({age.total_seconds():.0f}s old)")
            return None

        return records, cached_at

    def put(self, source_id: str, url: str | None, records: list[dict[str, Any]], retrieved_at: datetime) -> Path:
        path = self.path_for(source_id, url)
        atomic_write_json(path, {
            "sourceId": source_id,
            "url": url,
            "cachedAt": retrieved_at.isoformat(),
            "records": records,
        })
        logger.debug(f"Cached {len(records):,} records for {source_id} at {path}")
        return path

    def clear(self) -> int:
        """Delete all cache files. Returns how many were removed."""
        if not self.cache_dir.exists():
            return 0
        removed = 0
        for path in self.cache_dir.glob("*.json"):
            path.unlink()
            removed += 1
        logger.info(f"Cleared {removed} cache file(s) from {self.cache_dir}")
        return removed
