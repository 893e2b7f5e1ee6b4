"""Global test configuration — runs before any test module imports."""
import os

import pytest

# Must be set BEFORE any poa imports — slowapi reads this at init
os.environ["RATELIMIT_ENABLED"] = "False"

from poa.transport import HttpResponse, TransportError  # noqa: E402

AGENT_URL = "https://agent.test/api"


def pytest_configure(config):
    """Disable rate limiter after all imports."""
    try:
        from poa.security import limiter
        limiter.enabled = False
    except ImportError:
        pass


class FakeTransport:
    """In-memory stand-in for HttpTransport keyed by (method, url).

    A route maps to an HttpResponse, an exception instance to raise, or an
    async callable returning either. Unknown routes raise TransportError.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    async def _resolve(self, method, url, accept_any_status):
        self.calls.append((method, url))
        target = self.routes.get((method, url))
        if target is None:
            raise TransportError(url, "connection refused")
        if callable(target):
            target = await target()
        if isinstance(target, Exception):
            raise target
        if not accept_any_status and not 200 <= target.status < 300:
            raise TransportError(url, f"unexpected status {target.status}")
        return target

    async def get(self, url, timeout, *, accept_any_status=False):
        return await self._resolve("GET", url, accept_any_status)

    async def post(self, url, body, timeout, *, accept_any_status=False):
        return await self._resolve("POST", url, accept_any_status)

    async def aclose(self):
        self.closed = True


def healthy_agent_routes(base: str = AGENT_URL) -> dict:
    """Routes for an agent that passes every comprehensive probe."""
    ok = HttpResponse(200, {"status": "ok", "agent": "scout"})
    return {
        ("GET", base): HttpResponse(200, {"status": "ok", "agent": "scout"},
                                    {"x-ratelimit-limit": "100"}),
        ("GET", f"{base}/health"): ok,
        ("POST", f"{base}/analyze"): HttpResponse(200, {"recommendation": "hold"}),
        ("POST", f"{base}/generate"): HttpResponse(200, {"content": "gm"}),
        ("POST", f"{base}/invalid-endpoint-test"): HttpResponse(404, {"error": "not found"}),
    }


@pytest.fixture
def fake_transport():
    return FakeTransport


@pytest.fixture
def agent_routes():
    return healthy_agent_routes()
