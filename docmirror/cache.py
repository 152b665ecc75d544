"""
In-memory per-topic cache with stale fallback.

One CacheEntry per topic id. The store lock guards only inserting and
removing entries; each entry has its own lock, held across the upstream
fetch, so concurrent requests for one topic share a single fetch while
requests for other topics proceed independently.

Lock order is always entry lock, then store lock.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from docmirror.forum_client import ForumError
from docmirror.models import Topic

logger = logging.getLogger(__name__)

FRESH_TTL = 60 * 60
FALLBACK_TTL = 7 * 24 * 60 * 60


@dataclass(eq=False)
class CacheEntry:
    """A topic slot with its last successful fetch time and its own lock."""

    topic: Optional[Topic] = None
    fetched_at: Optional[float] = None  # time.monotonic() of last success
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def age(self, now: float) -> Optional[float]:
        """Seconds since the last successful fetch, or None if never fetched."""
        if self.fetched_at is None:
            return None
        return now - self.fetched_at


@dataclass(frozen=True)
class CachePolicy:
    """Freshness and fallback windows, in seconds."""

    fresh_ttl: float = FRESH_TTL
    fallback_ttl: float = FALLBACK_TTL

    def is_fresh(self, entry: CacheEntry, now: float) -> bool:
        age = entry.age(now)
        return entry.topic is not None and age is not None and age < self.fresh_ttl

    def can_fall_back(self, entry: CacheEntry, now: float) -> bool:
        age = entry.age(now)
        return (
            entry.topic is not None and age is not None and age < self.fallback_ttl
        )


class TopicCache:
    """
    Registry of topic entries plus the fresh/refresh/fallback decision.

    - get(): fresh hit, or fetch under the entry lock, falling back to the
      stale topic when the fetch fails.
    - invalidate(): drop an entry so the next get() fetches.
    - prime(): store topics obtained elsewhere (search results) as fresh.
    """

    def __init__(self, policy: Optional[CachePolicy] = None) -> None:
        self._policy = policy or CachePolicy()
        self._entries: dict[int, CacheEntry] = {}
        self._lock = threading.Lock()
        self._clock = time.monotonic  # overridable for testing

    @property
    def policy(self) -> CachePolicy:
        return self._policy

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, topic_id: int) -> bool:
        with self._lock:
            return topic_id in self._entries

    def lookup_or_create(self, topic_id: int) -> CacheEntry:
        """Return the entry for topic_id, registering an empty one if absent."""
        with self._lock:
            entry = self._entries.get(topic_id)
            if entry is None:
                entry = CacheEntry()
                self._entries[topic_id] = entry
            return entry

    def invalidate(self, topic_id: int) -> bool:
        """Remove the entry for topic_id. Returns whether one was present."""
        with self._lock:
            return self._entries.pop(topic_id, None) is not None

    def discard(self, topic_id: int, entry: CacheEntry) -> None:
        """Remove entry, unless topic_id has since been mapped to another one."""
        with self._lock:
            if self._entries.get(topic_id) is entry:
                del self._entries[topic_id]

    def prime(self, topics: Iterable[Topic]) -> None:
        """Register each topic as freshly fetched, replacing existing entries."""
        now = self._clock()
        with self._lock:
            for topic in topics:
                self._entries[topic.id] = CacheEntry(topic=topic, fetched_at=now)

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()

    def get(self, topic_id: int, fetch: Callable[[], Topic]) -> Topic:
        """
        Return the topic for topic_id, calling fetch() when not fresh.

        Concurrent callers for the same id wait on the entry lock and then
        see the first caller's result. A caller that finds its entry was
        evicted or replaced while it waited starts over with the current one.

        Raises whatever fetch() raised when no usable stale topic exists.
        """
        while True:
            entry = self.lookup_or_create(topic_id)
            with entry.lock:
                if not self._is_registered(topic_id, entry):
                    continue
                return self._resolve(topic_id, entry, fetch)

    def _is_registered(self, topic_id: int, entry: CacheEntry) -> bool:
        with self._lock:
            return self._entries.get(topic_id) is entry

    def _resolve(
        self, topic_id: int, entry: CacheEntry, fetch: Callable[[], Topic]
    ) -> Topic:
        """Decide under the held entry lock. Only a successful fetch mutates entry."""
        now = self._clock()
        if self._policy.is_fresh(entry, now):
            return entry.topic

        try:
            topic = fetch()
        except ForumError as exc:
            if self._policy.can_fall_back(entry, now):
                logger.warning(
                    "Serving stale topic %d (%.0fs old): %s",
                    topic_id,
                    entry.age(now),
                    exc,
                )
                return entry.topic
            logger.warning("Evicting topic %d after failed fetch: %s", topic_id, exc)
            self.discard(topic_id, entry)
            raise
        except Exception:
            self.discard(topic_id, entry)
            raise

        entry.topic = topic
        entry.fetched_at = self._clock()
        return topic
