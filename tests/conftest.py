import httpx
import pytest
from fastapi.testclient import TestClient

from iptvweb.api.main import create_app
from iptvweb.core.config import Settings


def make_settings(**overrides):
    base = dict(
        tmdb_api_key="test-key",
        vidsrc_mirrors=("mirror-one.test", "mirror-two.test"),
        static_dir="__no_static_dir__",
        fetch_timeout=2.0,
    )
    base.update(overrides)
    return Settings(**base)


@pytest.fixture
def make_client():
    """Build a TestClient whose outbound HTTP goes to `handler`."""
    clients = []

    def _make(handler=None, **overrides):
        handler = handler or (lambda request: httpx.Response(404))
        app = create_app(make_settings(**overrides), transport=httpx.MockTransport(handler))
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)
