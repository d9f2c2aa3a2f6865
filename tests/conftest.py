"""
Pytest configuration and fixtures
"""
from io import BytesIO
from typing import Callable, Dict, List

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from apps.overlay.app.config import Settings, get_settings
from apps.overlay.app.fetch import get_http_client
from apps.overlay.app.main import app

POSTER_URL = "https://images.example.com/posters/tt0111161.jpg"
POSTER_COLOR = (40, 120, 200)


def make_poster(width: int = 400, height: int = 600, mode: str = "RGB", fmt: str = "PNG") -> bytes:
    """Solid poster with a diagonal stripe so it is not a single colour."""
    fill = POSTER_COLOR + ((255,) if mode == "RGBA" else ())
    img = Image.new(mode, (width, height), fill)
    stripe = (220, 60, 30) + ((255,) if mode == "RGBA" else ())
    for i in range(min(width, height)):
        img.putpixel((i, i), stripe)
    buf = BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def open_png(data: bytes) -> Image.Image:
    img = Image.open(BytesIO(data))
    img.load()
    return img


class Upstream:
    """Routes outbound requests to per-URL handlers and records them."""

    def __init__(self):
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, prefix: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[prefix] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        for prefix, handler in sorted(self.routes.items(), key=lambda kv: -len(kv[0])):
            if url.startswith(prefix):
                return handler(request)
        return httpx.Response(404, text="not found")


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        public_base_url="http://overlay.test",
        omdb_api_key="test-key",
        omdb_base_url="http://omdb.test/",
        cinemeta_base_url="http://cinemeta.test",
        catalog_rating_badges=True,
    )


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def client(upstream: Upstream, test_settings: Settings):
    http = httpx.AsyncClient(transport=httpx.MockTransport(upstream), follow_redirects=True)
    app.dependency_overrides[get_http_client] = lambda: http
    app.dependency_overrides[get_settings] = lambda: test_settings
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def poster_bytes() -> bytes:
    return make_poster()


@pytest.fixture
def serve_poster(upstream: Upstream, poster_bytes: bytes):
    upstream.add(
        POSTER_URL,
        lambda req: httpx.Response(200, content=poster_bytes, headers={"Content-Type": "image/png"}),
    )
    return POSTER_URL
