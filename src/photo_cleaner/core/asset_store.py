"""Asset store interface and a local directory implementation."""

import logging
import os
from collections.abc import Generator
from datetime import datetime
from pathlib import Path
from typing import Protocol

from PIL import Image, ImageOps

try:
    import pillow_heif
    pillow_heif.register_heif_opener()
    HEIF_SUPPORTED = True
except ImportError:
    HEIF_SUPPORTED = False

from .models import MediaItem, MediaKind, ScanConfig

logger = logging.getLogger(__name__)


class AssetStore(Protocol):
    """Media library collaborator: enumeration, raster fetch and batch deletion."""

    def is_authorized(self) -> bool:
        """Whether the library may be read. Checked before a scan starts."""
        ...

    def enumerate(self, kind: MediaKind) -> list[MediaItem]:
        """Metadata for every item of a kind, in a stable order."""
        ...

    def fetch_raster(self, item_id: str, target_size: tuple[int, int]) -> Image.Image | None:
        """Best-effort upright raster fitting ``target_size``; None if unavailable."""
        ...

    def delete_batch(self, ids: set[str]) -> bool:
        """Delete all ids or none. Returns whether the deletion completed."""
        ...


class LocalAssetStore:
    """Asset store backed by media files in a directory tree."""

    def __init__(self, root: Path, config: ScanConfig | None = None, recursive: bool = True):
        """
        Initialize the store.

        Args:
            root: Directory holding the media library
            config: Scan configuration, defaults to ScanConfig()
            recursive: Whether to include subdirectories
        """
        self.root = Path(root)
        self.config = config or ScanConfig()
        self.recursive = recursive
        self._paths: dict[str, Path] = {}

    def is_authorized(self) -> bool:
        return self.root.is_dir() and os.access(self.root, os.R_OK)

    def kind_for(self, file_path: Path) -> MediaKind | None:
        """Media kind for a file based on its extension, None if unsupported."""
        extension = file_path.suffix.lower()
        if extension in self.config.supported_image_extensions:
            return MediaKind.PHOTO
        if extension in self.config.supported_video_extensions:
            return MediaKind.VIDEO
        return None

    def is_screenshot(self, file_path: Path) -> bool:
        name = file_path.name.lower()
        return any(pattern in name for pattern in self.config.screenshot_name_patterns)

    def discover_files(self) -> Generator[Path, None, None]:
        """
        Yield every file under the root in a stable (sorted) order.

        Raises:
            OSError: If the root cannot be read
        """
        if not self.root.exists():
            raise OSError(f"Directory does not exist: {self.root}")
        if not self.root.is_dir():
            raise OSError(f"Path is not a directory: {self.root}")

        file_iterator = self.root.rglob("*") if self.recursive else self.root.glob("*")
        for file_path in sorted(file_iterator):
            if file_path.is_file() and not file_path.name.startswith("."):
                yield file_path

    def get_item_metadata(self, file_path: Path, kind: MediaKind) -> MediaItem | None:
        """
        Build metadata for a single file.

        Returns:
            MediaItem, or None if the file cannot be accessed
        """
        try:
            stat = file_path.stat()
        except OSError as e:
            logger.error(f"Error accessing file {file_path}: {e}")
            return None

        width, height = 0, 0
        if kind is MediaKind.PHOTO:
            width, height = self._read_dimensions(file_path)

        resolved = file_path.resolve()
        item = MediaItem(
            id=str(resolved),
            created_at=datetime.fromtimestamp(stat.st_ctime),
            pixel_width=width,
            pixel_height=height,
            byte_size=stat.st_size,
            kind=kind,
            is_screenshot=kind is MediaKind.PHOTO and self.is_screenshot(file_path),
            filename=file_path.name,
        )
        self._paths[item.id] = resolved
        return item

    def enumerate(self, kind: MediaKind) -> list[MediaItem]:
        items = []
        for file_path in self.discover_files():
            if self.kind_for(file_path) is not kind:
                continue
            item = self.get_item_metadata(file_path, kind)
            if item:
                items.append(item)
        logger.info(f"Enumerated {len(items)} {kind.value} items under {self.root}")
        return items

    def fetch_raster(self, item_id: str, target_size: tuple[int, int]) -> Image.Image | None:
        path = self._paths.get(item_id, Path(item_id))
        if self.kind_for(path) is not MediaKind.PHOTO:
            return None

        try:
            with Image.open(path) as img:
                upright = ImageOps.exif_transpose(img)
                upright.thumbnail(target_size, Image.Resampling.LANCZOS)
                return upright
        except (OSError, ValueError) as e:
            logger.debug(f"Could not decode {path}: {e}")
            return None

    def delete_batch(self, ids: set[str]) -> bool:
        """
        Delete files by id.

        Every file is checked before anything is removed, so a missing file
        fails the batch without touching the others.
        """
        paths = [self._paths.get(item_id, Path(item_id)) for item_id in sorted(ids)]
        missing = [path for path in paths if not path.is_file()]
        if missing:
            logger.warning(f"Refusing batch delete: {len(missing)} of {len(paths)} files missing")
            return False

        for path in paths:
            try:
                path.unlink()
            except OSError as e:
                logger.error(f"Error deleting {path}: {e}")
                return False
            self._paths.pop(str(path), None)

        logger.info(f"Deleted {len(paths)} files")
        return True

    def _read_dimensions(self, file_path: Path) -> tuple[int, int]:
        try:
            with Image.open(file_path) as img:
                upright_size = img.size
                # Orientations 5-8 swap width and height
                if img.getexif().get(0x0112, 1) in (5, 6, 7, 8):
                    upright_size = (img.size[1], img.size[0])
                return upright_size
        except (OSError, ValueError) as e:
            logger.debug(f"Could not read dimensions of {file_path}: {e}")
            return 0, 0
