"""
FastAPI application for docmirror.

Lifespan manages the httpx client, topic cache and forum service.
Routes: /health-check, /search, / and topic paths (/<slug>/<id>).

Handlers are plain functions, so they run in the worker thread pool and
block on the cache and forum client there.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse

from docmirror.cache import CachePolicy, TopicCache
from docmirror.config import load_config
from docmirror.forum import ForumService, InvalidTopicPath
from docmirror.forum_client import ForumClient, ForumError
from docmirror.render import PageRenderer

logger = logging.getLogger(__name__)

# Global references set during lifespan
_forum_service: Optional[ForumService] = None
_renderer: Optional[PageRenderer] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: load config, create HTTP client, cache, forum service."""
    global _forum_service, _renderer

    # Configure logging
    log_level = os.environ.get("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    logger.info(
        "Loaded config: forum=%s, fresh_ttl=%d, fallback_ttl=%d",
        config.forum_base_url,
        config.fresh_ttl,
        config.fallback_ttl,
    )

    with httpx.Client() as http_client:
        forum = ForumClient(
            http_client=http_client,
            base_url=config.forum_base_url,
            timeout=config.fetch_timeout,
        )
        cache = TopicCache(
            CachePolicy(
                fresh_ttl=config.fresh_ttl,
                fallback_ttl=config.fallback_ttl,
            )
        )
        _forum_service = ForumService(
            config=config, forum_client=forum, cache=cache
        )
        _renderer = PageRenderer(config)
        logger.info("Documentation mirror ready")
        yield

    _forum_service = None
    _renderer = None


app = FastAPI(
    title="Documentation Mirror",
    version="1.0.0",
    description="Serves forum-hosted documentation topics as plain HTML.",
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)


def _services() -> tuple[ForumService, PageRenderer]:
    if _forum_service is None or _renderer is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return _forum_service, _renderer


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _redirect_home(request: Request, exc: Exception) -> RedirectResponse:
    logger.info("Cannot send %s to %s: %s", request.url, _client_host(request), exc)
    return RedirectResponse("/", status_code=307)


def _serve_topic(request: Request, path: str) -> Response:
    service, renderer = _services()

    if "refresh" in request.query_params:
        service.refresh(path)

    try:
        topic = service.topic(path)
    except (InvalidTopicPath, ForumError) as exc:
        return _redirect_home(request, exc)

    if not service.is_documentation(topic):
        logger.info(
            "Cannot send %s to %s: topic is not documentation",
            request.url,
            _client_host(request),
        )
        return RedirectResponse(topic.forum_url, status_code=307)

    return HTMLResponse(renderer.render(service.index(), topic=topic))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health-check", response_class=PlainTextResponse)
def health_check():
    return "ok"


@app.get("/favicon.ico")
def favicon():
    return Response(status_code=404)


@app.get("/t/{rest:path}")
def strip_t_prefix(rest: str, request: Request):
    """Forum-style /t/<slug>/<id> links map onto /<slug>/<id>."""
    logger.info(
        "Got request for %s from %s: redirecting to strip /t/",
        request.url,
        _client_host(request),
    )
    return RedirectResponse(f"/{rest}", status_code=308)


@app.get("/search", response_class=HTMLResponse)
def search(request: Request, q: str = ""):
    logger.info("Got request for %s from %s", request.url, _client_host(request))
    service, renderer = _services()
    try:
        results = service.search(q)
    except ForumError as exc:
        return _redirect_home(request, exc)
    return HTMLResponse(renderer.render(service.index(), query=q, results=results))


@app.get("/", response_class=HTMLResponse)
def index_page(request: Request):
    logger.info("Got request for %s from %s", request.url, _client_host(request))
    service, _ = _services()
    return _serve_topic(request, service.index_path)


@app.get("/{page_path:path}", response_class=HTMLResponse)
def topic_page(page_path: str, request: Request):
    logger.info("Got request for %s from %s", request.url, _client_host(request))
    return _serve_topic(request, f"/{page_path}")
