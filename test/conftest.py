"""
Shared test fixtures for docmirror.

Provides:
- Fake forum server for client and E2E tests
- Temporary config files
"""

import pytest
from pytest_httpserver import HTTPServer


@pytest.fixture(scope="module")
def fake_forum():
    """
    A real HTTP server that impersonates the forum's JSON API.

    Tests configure responses with expect_request() after clear().
    """
    server = HTTPServer(host="127.0.0.1")
    server.start()
    yield server
    server.clear()
    if server.is_running():
        server.stop()


@pytest.fixture()
def forum_url(fake_forum):
    fake_forum.clear()
    return f"http://{fake_forum.host}:{fake_forum.port}"


@pytest.fixture()
def config_file(forum_url, tmp_path):
    """Write a temporary config.yaml pointing at the fake forum."""
    config_content = f"""\
forum_base_url: "{forum_url}"
fresh_ttl: 3600
fallback_ttl: 604800
index_path: "/documentation-outline/3781"
"""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(config_content)
    return str(config_path)
