import threading

import httpx
import pytest

from vendor_images.page_fetch import make_client


class FakeWeb:
    """
    In-memory vendor web for httpx.MockTransport.

    Routes are keyed by (method, url); method "*" answers any method.
    A route is an httpx.Response, an exception to raise, or a callable
    taking the request.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []
        self._lock = threading.Lock()

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        with self._lock:
            self.requests.append((request.method, url, dict(request.headers)))
        route = self.routes.get((request.method, url), self.routes.get(("*", url)))
        if route is None:
            return httpx.Response(404)
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(request)
        # A fresh copy per request; routes are hit by several methods and threads.
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, settings=None) -> httpx.Client:
        return make_client(settings, transport=self.transport())

    # -- route helpers --

    def page(self, url, markup, status=200):
        self.routes[("GET", url)] = httpx.Response(status, html=markup)

    def down(self, url):
        self.routes[("*", url)] = httpx.ConnectError("connection refused")

    def image(self, url, size, content_type="image/jpeg", head=True):
        if head:
            self.routes[("HEAD", url)] = httpx.Response(
                200, headers={"content-type": content_type, "content-length": str(size)}
            )
        else:
            self.routes[("HEAD", url)] = httpx.Response(405)
        self.routes[("GET", url)] = httpx.Response(
            206,
            headers={"content-type": content_type, "content-range": f"bytes 0-1/{size}"},
            content=b"\xff\xd8",
        )

    def methods_for(self, url):
        return [m for m, u, _ in self.requests if u == url]


@pytest.fixture
def web():
    return FakeWeb()
