"""
Trending Topics Cache

Holds the most popular topics in process memory for a fixed TTL. Reads
within the TTL never touch the database, so popularity changes made in the
meantime only show up after the entry expires.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from sayings.config import settings
from sayings.services.topic_search_service import serialize_topic
from sayings.services.topic_service import get_top_topics
from sayings.utils.metrics import record_cache_hit, record_cache_miss

logger = logging.getLogger(__name__)

CACHE_TYPE = "trending_topics"


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    refreshes: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total * 100


@dataclass
class TrendingEntry:
    topics: list[dict] = field(default_factory=list)
    expires_at: datetime | None = None


class TrendingTopicsCache:
    """
    Single-entry TTL cache of the top topics by popularity.

    There is no lock: two requests that find the entry stale may both
    refetch, and the last write wins.
    """

    def __init__(
        self,
        ttl_seconds: int | None = None,
        fetch_size: int | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self._ttl = timedelta(seconds=settings.trending_ttl_seconds if ttl_seconds is None else ttl_seconds)
        self._fetch_size = settings.trending_cache_size if fetch_size is None else fetch_size
        self._clock = clock
        self._entry = TrendingEntry()
        self._stats = CacheStats()

    def is_fresh(self, now: datetime | None = None) -> bool:
        now = now or self._clock()
        return self._entry.expires_at is not None and now < self._entry.expires_at

    def invalidate(self) -> None:
        self._entry = TrendingEntry()

    async def refresh(self, db: AsyncSession, now: datetime | None = None, size: int | None = None) -> list[dict]:
        """Reload the entry from the database and restart the TTL."""
        now = now or self._clock()
        topics = await get_top_topics(db, limit=max(size or 0, self._fetch_size))
        self._entry = TrendingEntry(
            topics=[serialize_topic(topic) for topic in topics],
            expires_at=now + self._ttl,
        )
        self._stats.refreshes += 1
        logger.debug(f"Trending topics refreshed: {len(topics)} topics until {self._entry.expires_at.isoformat()}")
        return self._entry.topics

    async def get(self, db: AsyncSession, limit: int = 10, now: datetime | None = None) -> list[dict]:
        """
        Return up to ``limit`` trending topics.

        A fresh entry is served as is. A stale or empty entry is refetched
        with at least ``limit`` topics first.
        """
        now = now or self._clock()
        if self.is_fresh(now):
            self._stats.hits += 1
            record_cache_hit(CACHE_TYPE)
            return self._entry.topics[:limit]

        self._stats.misses += 1
        record_cache_miss(CACHE_TYPE)
        topics = await self.refresh(db, now=now, size=limit)
        return topics[:limit]

    def get_stats(self) -> dict:
        return {
            "size": len(self._entry.topics),
            "fresh": self.is_fresh(),
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "refreshes": self._stats.refreshes,
            "hit_rate": f"{self._stats.hit_rate:.2f}%",
        }


trending_cache = TrendingTopicsCache()


def get_trending_cache() -> TrendingTopicsCache:
    """Dependency returning the application's trending cache."""
    return trending_cache
