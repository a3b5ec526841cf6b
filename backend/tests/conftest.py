"""
Image service test configuration

Fixtures:
- images_dir: temporary image directory with a JPEG, a PNG and a corrupt file
- store / cache / statistics / pipeline: components wired on a MemoryStore
- client: FastAPI TestClient running the full app (lifespan included)

Helpers:
- FailingStore: MemoryStore whose chosen operations raise StoreUnavailableError
- make_image / image_size: build and inspect test images with Pillow
- XPM_ICON: an image in a format Pillow can read but not write
"""

import sys
from io import BytesIO
from pathlib import Path
from typing import Iterable, Optional, Tuple

import pytest
from PIL import Image

# Add the backend directory to the Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from fastapi.testclient import TestClient

from cache import Cache, MemoryStore, StoreUnavailableError
from image_service import RequestPipeline, ServiceConfig, create_app
from image_service.image_store import ImageStore
from image_service.transformer import Transformer
from stats import StatisticsEngine


# ============================================
# Image helpers
# ============================================

def make_image(size: Tuple[int, int] = (200, 150), fmt: str = "JPEG", mode: str = "RGB") -> bytes:
    """Encode a solid-colour image."""
    color = (200, 40, 40, 255) if mode == "RGBA" else (200, 40, 40)
    output = BytesIO()
    Image.new(mode, size, color[:len(mode)]).save(output, format=fmt)
    return output.getvalue()


def image_size(data: bytes) -> Tuple[int, int]:
    with Image.open(BytesIO(data)) as img:
        return img.size


def image_format(data: bytes) -> Optional[str]:
    with Image.open(BytesIO(data)) as img:
        return img.format


# 4x4 two-colour XPM: Pillow reads it but has no XPM writer
XPM_ICON = b"""/* XPM */
static char *icon[] = {
"4 4 2 1",
"a c #FF0000",
"b c #0000FF",
"abab",
"baba",
"abab",
"baba"
};
"""


# ============================================
# Store helpers
# ============================================

class FailingStore(MemoryStore):
    """
    MemoryStore that raises StoreUnavailableError for the listed operations.

    Usage:
        store = FailingStore(failing={"get"})
    """

    def __init__(self, failing: Iterable[str] = (), **kwargs):
        super().__init__(**kwargs)
        self.failing = set(failing)

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.failing:
            raise StoreUnavailableError(f"{operation} unavailable", operation)

    async def get(self, key):
        self._maybe_fail("get")
        return await super().get(key)

    async def set(self, key, value):
        self._maybe_fail("set")
        return await super().set(key, value)

    async def setnx(self, key, value):
        self._maybe_fail("setnx")
        return await super().setnx(key, value)

    async def incr(self, key):
        self._maybe_fail("incr")
        return await super().incr(key)

    async def dbsize(self):
        self._maybe_fail("dbsize")
        return await super().dbsize()

    async def transact(self, keys, writer, max_retries=10):
        self._maybe_fail("transact")
        return await super().transact(keys, writer, max_retries)

    async def ping(self):
        self._maybe_fail("ping")
        return await super().ping()


# ============================================
# Component fixtures
# ============================================

@pytest.fixture
def photo_bytes():
    return make_image((200, 150), "JPEG")


@pytest.fixture
def logo_bytes():
    return make_image((64, 64), "PNG", mode="RGBA")


@pytest.fixture
def images_dir(tmp_path, photo_bytes, logo_bytes):
    """
    Image directory with:
    - photo.jpg: 200x150 JPEG
    - logo.png: 64x64 RGBA PNG
    - broken.jpg: not an image
    """
    directory = tmp_path / "images"
    directory.mkdir()
    (directory / "photo.jpg").write_bytes(photo_bytes)
    (directory / "logo.png").write_bytes(logo_bytes)
    (directory / "broken.jpg").write_bytes(b"definitely not a jpeg")
    return directory


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def cache(store):
    return Cache(store)


@pytest.fixture
def statistics(cache):
    return StatisticsEngine(cache)


@pytest.fixture
def image_store(images_dir):
    return ImageStore(str(images_dir))


@pytest.fixture
def pipeline(image_store, cache, statistics):
    return RequestPipeline(image_store, Transformer(), cache, statistics)


@pytest.fixture
def config(images_dir):
    return ServiceConfig(images_dir=str(images_dir), store_backend="memory")


@pytest.fixture
def client(config, store):
    """
    TestClient for the full app on the shared `store` fixture.

    The store is passed in, so it outlives the app and tests can inspect it
    with store.dump().
    """
    with TestClient(create_app(config, store=store)) as test_client:
        yield test_client


# ============================================
# Assertion helpers
# ============================================

def assert_counters(snapshot, **expected):
    """
    Assert snapshot counters by attribute name.

    Usage:
        assert_counters(await statistics.snapshot(), cache_hits=1, total_requests=2)
    """
    for name, value in expected.items():
        actual = getattr(snapshot, name)
        assert actual == value, f"{name}: expected {value}, got {actual}"
