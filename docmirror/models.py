"""
Pydantic models for forum topics.

A Topic is the unit of caching: topic metadata, the first post's author
details and the post body, link-rewritten and zlib-compressed. Topics are
frozen; a refresh replaces the whole object.
"""

from __future__ import annotations

import logging
import zlib
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

DEFAULT_FORUM_URL = "https://forum.snapcraft.io"

CORRUPT_CONTENT_MESSAGE = "Internal error: cannot decompress content. Please report!"


class Post(BaseModel):
    """The first post of a topic, or a search hit."""

    model_config = ConfigDict(frozen=True)

    username: str = ""
    cooked: str = ""  # Rendered HTML; cleared once moved into Topic.content
    updated_at: Optional[datetime] = None
    topic_id: int = 0
    blurb: str = ""  # Search excerpt


class Topic(BaseModel):
    """A cached documentation page."""

    model_config = ConfigDict(frozen=True)

    id: int
    slug: str
    title: str
    category_id: Optional[int] = None
    bumped_at: Optional[datetime] = None
    post: Optional[Post] = None
    content: bytes = b""  # zlib-compressed post HTML
    base_url: str = DEFAULT_FORUM_URL

    @property
    def path(self) -> str:
        """Local path of the mirrored page."""
        return f"/{self.slug}/{self.id}"

    @property
    def forum_url(self) -> str:
        return f"{self.base_url}/t/{self.slug}/{self.id}"

    @property
    def last_update(self) -> Optional[datetime]:
        # Search results carry no updated_at; bumped_at is the next best thing.
        if self.post is None or self.post.updated_at is None:
            return self.bumped_at
        return self.post.updated_at

    @property
    def blurb(self) -> str:
        if self.post is not None:
            return self.post.blurb
        return ""

    def text(self) -> str:
        """Decompressed post HTML."""
        try:
            return zlib.decompress(self.content).decode("utf-8")
        except (zlib.error, UnicodeDecodeError) as exc:
            logger.error("Cannot decompress content of %s: %s", self.path, exc)
            return CORRUPT_CONTENT_MESSAGE

    def __str__(self) -> str:
        return self.path


def rewrite_links(html: str, base_url: str) -> str:
    """
    Point relative links at the forum, then forum topic links back at the mirror.
    """
    html = html.replace('href="/', f'href="{base_url}/')
    return html.replace(f'href="{base_url}/t/', 'href="/')


def build_topic(
    topic_data: dict[str, Any],
    post_data: dict[str, Any],
    base_url: str = DEFAULT_FORUM_URL,
) -> Topic:
    """
    Build a Topic from raw forum topic and post JSON.

    The post body moves out of the Post into the compressed Topic.content.
    Raises pydantic.ValidationError if required topic fields are missing.
    """
    post = Post.model_validate(post_data)
    html = rewrite_links(post.cooked, base_url)
    return Topic.model_validate(
        {
            "id": topic_data.get("id"),
            "slug": topic_data.get("slug"),
            "title": topic_data.get("title"),
            "category_id": topic_data.get("category_id"),
            "bumped_at": topic_data.get("bumped_at"),
            "post": post.model_copy(update={"cooked": ""}),
            "content": zlib.compress(html.encode("utf-8")),
            "base_url": base_url,
        }
    )
