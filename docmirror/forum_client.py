"""
Discourse forum API client.

Thin wrapper around httpx. Fetches single topics and search results and
turns them into Topic models. Raises ForumError subclasses on failures.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from docmirror.models import DEFAULT_FORUM_URL, Topic, build_topic

logger = logging.getLogger(__name__)

SEARCH_PREFIX = "#doc @wiki "


class ForumError(Exception):
    """Raised when a forum API call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TopicNotFound(ForumError):
    """The forum has no such topic, or it is not public."""


class ForumTransportError(ForumError):
    """Network failure, unexpected status or unparseable body."""


class EmptyUpstreamResponse(ForumError):
    """A successful response that carries no usable topic."""


class ForumClient:
    """Client for the Discourse JSON API."""

    def __init__(
        self,
        http_client: httpx.Client,
        base_url: str = DEFAULT_FORUM_URL,
        timeout: float = 10.0,
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @property
    def base_url(self) -> str:
        return self._base_url

    def fetch_topic(self, topic_id: int) -> Topic:
        """
        Fetch one topic with its first post.

        Raises TopicNotFound on 401/404, EmptyUpstreamResponse when the
        body has no topic or no posts, ForumTransportError otherwise.
        """
        body = self._get_json(f"/t/{topic_id}.json", what="documentation page")

        post_stream = body.get("post_stream")
        posts = post_stream.get("posts") if isinstance(post_stream, dict) else None
        if not isinstance(posts, list) or not posts:
            raise EmptyUpstreamResponse(
                f"Documentation page {topic_id} seems empty"
            )

        try:
            return build_topic(body, posts[0], self._base_url)
        except ValidationError as exc:
            raise EmptyUpstreamResponse(
                f"Documentation page {topic_id} is malformed: {exc}"
            ) from exc

    def search(self, query: str) -> list[Topic]:
        """
        Search documentation topics.

        Returns topics in the order of the matching posts. A blank query
        returns an empty list without calling the forum.
        """
        query = query.strip()
        if not query:
            return []

        body = self._get_json(
            "/search.json",
            params={"q": SEARCH_PREFIX + query},
            what="search results",
            not_found_is_error=False,
        )

        topics_by_id: dict[int, dict[str, Any]] = {}
        for topic_data in _as_list(body.get("topics")):
            if isinstance(topic_data, dict) and isinstance(topic_data.get("id"), int):
                topics_by_id[topic_data["id"]] = topic_data

        topics: list[Topic] = []
        for post_data in _as_list(body.get("posts")):
            if not isinstance(post_data, dict):
                continue
            topic_id = post_data.get("topic_id")
            topic_data = topics_by_id.get(topic_id) if isinstance(topic_id, int) else None
            if topic_data is None:
                continue
            try:
                topics.append(build_topic(topic_data, post_data, self._base_url))
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed search hit for topic %s: %s",
                    post_data.get("topic_id"),
                    exc,
                )
        return topics

    def _get_json(
        self,
        path: str,
        what: str,
        params: Optional[dict] = None,
        not_found_is_error: bool = True,
    ) -> dict[str, Any]:
        """Make an HTTP GET request to the forum and return the JSON object."""
        url = f"{self._base_url}{path}"
        try:
            response = self._http.get(url, params=params, timeout=self._timeout)
        except httpx.HTTPError as exc:
            logger.error("Forum request failed: %s %s -> %s", "GET", url, exc)
            raise ForumTransportError(f"Cannot obtain {what}: {exc}") from exc

        if not_found_is_error and response.status_code in (401, 404):
            raise TopicNotFound(
                f"{what.capitalize()} not found", status_code=response.status_code
            )

        if response.status_code != 200:
            raise ForumTransportError(
                f"Cannot obtain {what}: got {response.status_code} status",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ForumTransportError(f"Cannot unmarshal {what}: {exc}") from exc

        if not isinstance(body, dict):
            raise EmptyUpstreamResponse(f"Unexpected {what} payload")
        return body


def _as_list(value: Any) -> list:
    """Treat anything but a JSON array as empty."""
    return value if isinstance(value, list) else []
