"""
HTML page rendering with Jinja2.

One template serves topic pages and search result pages. The outline
topic supplies the sidebar: everything after the configured separator.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from docmirror.config import AppConfig
from docmirror.models import Topic

TEMPLATES_DIR = Path(__file__).parent / "templates"


def format_time(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")


class PageRenderer:
    """Renders topic and search pages."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config
        self._env = Environment(
            loader=FileSystemLoader(TEMPLATES_DIR),
            autoescape=select_autoescape(["html"]),
        )
        self._env.filters["format_time"] = format_time
        self._template = self._env.get_template("page.html")

    def render(
        self,
        index: Optional[Topic],
        topic: Optional[Topic] = None,
        query: str = "",
        results: Optional[list[Topic]] = None,
    ) -> str:
        index_html = index.text() if index is not None else ""
        content = topic.text() if topic is not None else ""
        title = topic.title if topic is not None else ""

        sep = index_html.find(self._config.index_separator)
        if sep >= 0:
            index_html = index_html[sep + len(self._config.index_separator):]
            if topic is not None and index is not None and topic.id == index.id:
                title = self._config.index_title
                content = content[:sep]

        return self._template.render(
            site_name=self._config.site_name,
            forum_url=self._config.forum_base_url,
            index=Markup(index_html),
            topic=topic,
            title=title,
            content=Markup(content),
            query=query,
            results=results or [],
        )
