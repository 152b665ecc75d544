"""Tests for the forum service (with a mocked forum client)."""

from unittest.mock import Mock

import pytest

from forum_payloads import make_topic
from docmirror.cache import CachePolicy, TopicCache
from docmirror.config import AppConfig
from docmirror.forum import ForumService, InvalidTopicPath, topic_path_id
from docmirror.forum_client import ForumClient, ForumTransportError, TopicNotFound


class TestTopicPathId:
    @pytest.mark.parametrize(
        "path, expected",
        [
            ("/getting-started/42", 42),
            ("/42", 42),
            ("/getting-started/42/3", 42),
            ("/documentation-outline/3781", 3781),
        ],
    )
    def test_valid(self, path, expected):
        assert topic_path_id(path) == expected

    @pytest.mark.parametrize(
        "path",
        ["/", "", "/search", "/Upper/42", "/a/b/42", "/slug/42/x", "42", "/slug/"],
    )
    def test_invalid(self, path):
        with pytest.raises(InvalidTopicPath):
            topic_path_id(path)


class TestForumService:
    def _make_service(self, **config):
        config = AppConfig(forum_base_url="http://fake", **config)
        forum = Mock(spec=ForumClient)
        cache = TopicCache(
            CachePolicy(fresh_ttl=config.fresh_ttl, fallback_ttl=config.fallback_ttl)
        )
        clock = Mock(return_value=1000.0)
        cache._clock = clock
        service = ForumService(config=config, forum_client=forum, cache=cache)
        return service, forum, cache, clock

    def test_topic_fetches_by_id(self):
        service, forum, _, _ = self._make_service()
        topic = make_topic()
        forum.fetch_topic.return_value = topic
        assert service.topic("/getting-started/42") is topic
        forum.fetch_topic.assert_called_once_with(42)

    def test_slug_is_not_part_of_cache_key(self):
        service, forum, _, _ = self._make_service()
        forum.fetch_topic.return_value = make_topic()
        service.topic("/getting-started/42")
        service.topic("/42")
        service.topic("/renamed/42/5")
        assert forum.fetch_topic.call_count == 1

    def test_invalid_path(self):
        service, forum, _, _ = self._make_service()
        with pytest.raises(InvalidTopicPath):
            service.topic("/search")
        forum.fetch_topic.assert_not_called()

    def test_stale_served_when_forum_down(self):
        service, forum, _, clock = self._make_service()
        topic = make_topic()
        forum.fetch_topic.return_value = topic
        service.topic("/42")
        clock.return_value += 3601
        forum.fetch_topic.side_effect = ForumTransportError("down")
        assert service.topic("/42") is topic
        assert forum.fetch_topic.call_count == 2

    def test_error_without_stale_copy(self):
        service, forum, cache, _ = self._make_service()
        forum.fetch_topic.side_effect = TopicNotFound("not found", 404)
        with pytest.raises(TopicNotFound):
            service.topic("/42")
        assert 42 not in cache

    def test_refresh_forces_fetch(self):
        service, forum, _, _ = self._make_service()
        forum.fetch_topic.return_value = make_topic()
        service.topic("/42")
        service.refresh("/getting-started/42")
        service.topic("/42")
        assert forum.fetch_topic.call_count == 2

    def test_refresh_uncached_and_invalid_are_noops(self, caplog):
        service, forum, cache, _ = self._make_service()
        with caplog.at_level("INFO"):
            service.refresh("/42")
            service.refresh("/not a path")
        assert "topic was not cached" in caplog.text
        assert len(cache) == 0

    def test_search_primes_cache_and_skips_index(self):
        service, forum, _, _ = self._make_service()
        hit = make_topic(topic_id=5, slug="hit")
        index = make_topic(topic_id=3781, slug="documentation-outline")
        forum.search.return_value = [hit, index]

        assert service.search("hit") == [hit]
        assert service.topic("/hit/5") is hit
        forum.fetch_topic.assert_not_called()

    def test_search_error_propagates(self):
        service, forum, _, _ = self._make_service()
        forum.search.side_effect = ForumTransportError("down")
        with pytest.raises(ForumTransportError):
            service.search("snaps")

    def test_index(self):
        service, forum, _, _ = self._make_service()
        index = make_topic(topic_id=3781, slug="documentation-outline")
        forum.fetch_topic.return_value = index
        assert service.index() is index
        forum.fetch_topic.assert_called_once_with(3781)

    def test_index_unavailable(self):
        service, forum, _, _ = self._make_service()
        forum.fetch_topic.side_effect = ForumTransportError("down")
        assert service.index() is None

    def test_is_documentation(self):
        service, _, _, _ = self._make_service(doc_category=15)
        assert service.is_documentation(make_topic(category_id=15))
        assert not service.is_documentation(make_topic(category_id=3))
