"""
Shared fixtures: a small catalog, settings with and without a provider key,
and a fake provider transport that records every outbound request.
"""
import sys
import json
from pathlib import Path
from typing import Callable, Dict, List

import httpx
import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from toywonder.core.config import Settings
from toywonder.schema import Product
from toywonder.services.broker import ResponseBroker
from toywonder.services.catalog import CatalogStore

TEXT_MODEL = "gemini-2.0-flash"
IMAGEN_MODEL = "imagen-3.0-generate-002"
IMAGE_MODELS = ["gemini-2.0-flash-preview-image-generation", "gemini-2.0-flash-exp"]
KEYLESS_HOST = "image.pollinations.ai"

FAKE_JPEG = b"\xff\xd8\xff\xe0fake-jpeg-bytes"


def text_response(text: str) -> httpx.Response:
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


def inline_image_response(data: str = "aW1hZ2U=", mime_type: str = "image/png") -> httpx.Response:
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [
        {"text": "Here you go!"},
        {"inlineData": {"mimeType": mime_type, "data": data}},
    ]}}]})


def imagen_response(data: str = "aW1hZ2Vu", mime_type: str = "image/png") -> httpx.Response:
    return httpx.Response(200, json={"predictions": [{"bytesBase64Encoded": data, "mimeType": mime_type}]})


def keyless_ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, headers={"content-type": "image/jpeg"}, content=FAKE_JPEG)


def status(code: int) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(code, json={"error": {"code": code, "message": "fake error"}})


class FakeProviders:
    """
    httpx transport that answers by route key and records calls.

    Route keys are "<model>:<method>" for Gemini calls (e.g.
    "gemini-2.0-flash:generateContent") and "keyless" for the image-by-URL
    service. Unrouted requests get a 500.
    """

    def __init__(self, routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = None):
        self.routes = dict(routes or {})
        self.calls: List[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    @staticmethod
    def route_key(request: httpx.Request) -> str:
        if request.url.host == KEYLESS_HOST:
            return "keyless"
        return request.url.path.rsplit("/", 1)[-1]

    @property
    def keys(self) -> List[str]:
        return [self.route_key(r) for r in self.calls]

    def body(self, index: int) -> dict:
        return json.loads(self.calls[index].content)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self.routes.get(self.route_key(request))
        if handler is None:
            return httpx.Response(500, json={"error": "unrouted"})
        return handler(request)


def make_product(**overrides) -> Product:
    data = {
        "id": "p1",
        "name": "Test Toy",
        "category": "Educational",
        "price": 999,
        "rating": 4.0,
        "reviews": 10,
        "stock": 5,
    }
    data.update(overrides)
    return Product(**data)


@pytest.fixture
def catalog() -> CatalogStore:
    """The bundled nine-product ToyWonder catalog."""
    return CatalogStore.from_json()


@pytest.fixture
def keyed_settings() -> Settings:
    return Settings(gemini_api_key="test-key", _env_file=None)


@pytest.fixture
def keyless_settings() -> Settings:
    return Settings(gemini_api_key=None, _env_file=None)


@pytest.fixture
def make_broker(catalog):
    """Build a broker wired to a FakeProviders transport."""
    def _make(settings: Settings, fake: FakeProviders, store: CatalogStore = None) -> ResponseBroker:
        return ResponseBroker(store or catalog, settings=settings, transport=fake.transport)
    return _make
