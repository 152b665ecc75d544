"""
Forum service: maps request paths onto the topic cache and forum client.

This is the interface the HTTP layer uses: topic(), refresh(), search()
and index().
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Optional

from docmirror.cache import TopicCache
from docmirror.forum_client import ForumClient, ForumError
from docmirror.models import Topic

if TYPE_CHECKING:
    from docmirror.config import AppConfig

logger = logging.getLogger(__name__)

# /<slug>/<id>, /<id>, optionally followed by /<post number>
TOPIC_PATH_PATTERN = re.compile(r"^(?:/([a-z0-9-]+))?/([0-9]+)(?:/[0-9]+)?$")


class InvalidTopicPath(ValueError):
    """Raised when a request path does not name a topic."""


def topic_path_id(path: str) -> int:
    """Extract the topic id from a request path."""
    match = TOPIC_PATH_PATTERN.match(path)
    if match is None:
        raise InvalidTopicPath(f"Unsupported URL path: {path!r}")
    return int(match.group(2))


class ForumService:
    """
    Main service class. Serves topics through the per-topic cache.

    Owns the TopicCache for the lifetime of the app; handlers get the
    service by reference.
    """

    def __init__(
        self, config: AppConfig, forum_client: ForumClient, cache: TopicCache
    ) -> None:
        self._config = config
        self._forum = forum_client
        self._cache = cache

    def topic(self, path: str) -> Topic:
        """
        Return the topic for a request path.

        Raises InvalidTopicPath for unparseable paths and ForumError when
        the topic cannot be fetched and no usable stale copy exists.
        """
        return self.topic_by_id(topic_path_id(path))

    def topic_by_id(self, topic_id: int) -> Topic:
        return self._cache.get(topic_id, lambda: self._fetch(topic_id))

    def refresh(self, path: str) -> None:
        """Discard the cached copy of a topic. Invalid paths are ignored."""
        try:
            topic_id = topic_path_id(path)
        except InvalidTopicPath:
            return
        if self._cache.invalidate(topic_id):
            logger.info("Asked to refresh %s: discarding topic cache", path)
        else:
            logger.info("Asked to refresh %s: topic was not cached", path)

    def search(self, query: str) -> list[Topic]:
        """
        Search documentation topics, excluding the index page.

        Search hits carry full topic content, so they replace whatever the
        cache holds for those topics.
        """
        if query.strip():
            logger.info("Fetching search results for: %s", query.strip())
        index_id = self._config.index_id
        topics = [t for t in self._forum.search(query) if t.id != index_id]
        self._cache.prime(topics)
        return topics

    def index(self) -> Optional[Topic]:
        """Return the documentation outline topic, or None if unavailable."""
        try:
            return self.topic(self._config.index_path)
        except ForumError as exc:
            logger.error("Cannot obtain documentation index: %s", exc)
            return None

    @property
    def index_path(self) -> str:
        return self._config.index_path

    def is_documentation(self, topic: Topic) -> bool:
        return topic.category_id == self._config.doc_category

    def _fetch(self, topic_id: int) -> Topic:
        logger.info("Fetching content for topic %d...", topic_id)
        return self._forum.fetch_topic(topic_id)
