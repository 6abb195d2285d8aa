"""In-memory asset store and item factories shared by the core tests."""

import threading
import time
from datetime import datetime, timedelta

from PIL import Image

from ..models import MediaItem, MediaKind

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


def image_for_fingerprint(fingerprint: int) -> Image.Image:
    """8x8 grayscale raster whose average hash is ``fingerprint`` (which must not be 0)."""
    samples = bytes(255 if (fingerprint >> (63 - i)) & 1 else 0 for i in range(64))
    return Image.frombytes("L", (8, 8), samples)


def make_item(
    item_id: str,
    minutes: int = 0,
    width: int = 100,
    height: int = 100,
    byte_size: int | None = 1000,
    kind: MediaKind = MediaKind.PHOTO,
    is_screenshot: bool = False,
) -> MediaItem:
    return MediaItem(
        id=item_id,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        pixel_width=width,
        pixel_height=height,
        byte_size=byte_size,
        kind=kind,
        is_screenshot=is_screenshot,
        filename=f"{item_id}.jpg",
    )


class FakeAssetStore:
    """Asset store over in-memory items. Raster values may be images, None or exceptions."""

    def __init__(
        self,
        photos: list[MediaItem] | None = None,
        videos: list[MediaItem] | None = None,
        fingerprints: dict[str, int] | None = None,
        authorized: bool = True,
        delete_result: bool | Exception = True,
    ):
        self.photos = list(photos or [])
        self.videos = list(videos or [])
        self.rasters: dict[str, object] = {
            item_id: image_for_fingerprint(fp) for item_id, fp in (fingerprints or {}).items()
        }
        self.authorized = authorized
        self.delete_result = delete_result
        self.delete_calls: list[set[str]] = []
        self.enumerate_gate: threading.Event | None = None
        self.enumerate_error: Exception | None = None
        self.fetch_delays: dict[str, float] = {}
        self._lock = threading.Lock()
        self.fetch_count = 0

    def is_authorized(self) -> bool:
        return self.authorized

    def enumerate(self, kind: MediaKind) -> list[MediaItem]:
        if self.enumerate_gate is not None:
            self.enumerate_gate.wait(timeout=5)
        if self.enumerate_error is not None:
            raise self.enumerate_error
        return list(self.photos if kind is MediaKind.PHOTO else self.videos)

    def fetch_raster(self, item_id: str, target_size: tuple[int, int]) -> Image.Image | None:
        with self._lock:
            self.fetch_count += 1
        delay = self.fetch_delays.get(item_id)
        if delay:
            time.sleep(delay)
        value = self.rasters.get(item_id)
        if isinstance(value, Exception):
            raise value
        if value is None:
            return None
        return value.copy()

    def delete_batch(self, ids: set[str]) -> bool:
        self.delete_calls.append(set(ids))
        if isinstance(self.delete_result, Exception):
            raise self.delete_result
        return self.delete_result
