"""
Configuration loading for docmirror.

Loads settings from config.yaml; the forum URL may be overridden from the
environment.
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from docmirror.cache import FALLBACK_TTL, FRESH_TTL
from docmirror.forum import InvalidTopicPath, topic_path_id
from docmirror.models import DEFAULT_FORUM_URL


class AppConfig(BaseModel):
    """Application configuration."""

    # Forum settings
    forum_base_url: str = DEFAULT_FORUM_URL
    fetch_timeout: float = Field(default=10.0, gt=0)
    doc_category: int = 15

    # Cache settings
    fresh_ttl: int = Field(default=FRESH_TTL, ge=1)
    fallback_ttl: int = Field(default=FALLBACK_TTL, ge=0)

    # Index (outline) page
    index_path: str = "/documentation-outline/3781"
    index_separator: str = "<h1>Content</h1>"
    index_title: str = "Welcome"

    site_name: str = "Snap Docs"

    @field_validator("forum_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("index_path")
    @classmethod
    def validate_index_path(cls, value: str) -> str:
        try:
            topic_path_id(value)
        except InvalidTopicPath as exc:
            raise ValueError(f"index_path is not a topic path: {value!r}") from exc
        return value

    @model_validator(mode="after")
    def validate_fallback_window(self) -> "AppConfig":
        if self.fallback_ttl < self.fresh_ttl:
            raise ValueError("fallback_ttl must not be shorter than fresh_ttl")
        return self

    @property
    def index_id(self) -> int:
        return topic_path_id(self.index_path)


def load_config(config_path: str | None = None) -> AppConfig:
    """
    Load configuration from YAML file + environment variables.

    Args:
        config_path: Path to config.yaml. If None, reads CONFIG_PATH env var
                     (default: config.yaml in current directory).

    Returns:
        Validated AppConfig instance.
    """
    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH", "config.yaml")

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path) as f:
        raw = yaml.safe_load(f)

    if raw is None:
        raw = {}

    forum_base_url = os.environ.get("FORUM_BASE_URL")
    if forum_base_url:
        raw = {**raw, "forum_base_url": forum_base_url}

    return AppConfig(**raw)
