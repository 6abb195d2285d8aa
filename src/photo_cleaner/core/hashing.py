"""Perceptual fingerprinting of media rasters."""

import logging
from collections.abc import Sequence

import imagehash
import numpy as np
from PIL import Image, ImageOps

from .models import MediaItem

logger = logging.getLogger(__name__)

HASH_GRID_SIZE = 8
HASH_BITS = HASH_GRID_SIZE * HASH_GRID_SIZE
FINGERPRINT_MASK = (1 << HASH_BITS) - 1


def average_hash(samples: Sequence[int]) -> int:
    """
    Compute a 64-bit average hash from an 8x8 grid of grayscale samples.

    Args:
        samples: 64 intensity values (0-255), row-major

    Returns:
        Fingerprint where bit 63 corresponds to the first sample. A bit is set
        when its sample is at least the (integer) mean of all samples.

    Raises:
        ValueError: If the grid does not hold exactly 64 samples
    """
    pixels = np.asarray(samples, dtype=np.int64).ravel()
    if pixels.size != HASH_BITS:
        raise ValueError(f"Expected {HASH_BITS} samples, got {pixels.size}")

    mean = int(pixels.sum()) // HASH_BITS
    fingerprint = 0
    for bit in (pixels >= mean).tolist():
        fingerprint = (fingerprint << 1) | int(bit)
    return fingerprint


def hamming_distance(a: int, b: int) -> int:
    """Count of differing bits between two fingerprints."""
    return ((a ^ b) & FINGERPRINT_MASK).bit_count()


def fingerprint_prefix(fingerprint: int, bits: int = 12) -> int:
    """Top ``bits`` bits of a fingerprint, used for prefix bucketing."""
    if not 1 <= bits <= HASH_BITS:
        raise ValueError(f"Prefix width must be between 1 and {HASH_BITS}")
    return (fingerprint >> (HASH_BITS - bits)) & ((1 << bits) - 1)


def to_image_hash(fingerprint: int) -> imagehash.ImageHash:
    """Wrap a fingerprint as an ``imagehash.ImageHash`` (8x8 bit matrix)."""
    bits = [(fingerprint >> (HASH_BITS - 1 - i)) & 1 for i in range(HASH_BITS)]
    return imagehash.ImageHash(np.array(bits, dtype=bool).reshape(HASH_GRID_SIZE, HASH_GRID_SIZE))


def format_fingerprint(fingerprint: int) -> str:
    """16 hex digit representation of a fingerprint."""
    return str(to_image_hash(fingerprint))


def prepare_samples(image: Image.Image) -> list[int] | None:
    """
    Downsample a raster to the 8x8 grayscale grid used for hashing.

    The image is first rotated upright according to its EXIF orientation so
    that the same shot taken in different orientations hashes the same way.

    Args:
        image: Decoded raster

    Returns:
        64 intensity samples, or None if the raster cannot be produced
    """
    try:
        upright = ImageOps.exif_transpose(image)
        grayscale = upright.convert("L")
        grid = grayscale.resize((HASH_GRID_SIZE, HASH_GRID_SIZE), Image.Resampling.LANCZOS)
        return np.asarray(grid, dtype=np.uint8).ravel().tolist()
    except (OSError, ValueError) as e:
        logger.debug(f"Could not downsample raster: {e}")
        return None


class HashExtractor:
    """Turns asset store rasters into fingerprints."""

    def __init__(self, target_size: tuple[int, int] = (96, 96)):
        """
        Initialize the extractor.

        Args:
            target_size: Raster size requested from the asset store
        """
        self.target_size = target_size

    def fingerprint(self, image: Image.Image | None) -> int | None:
        """
        Fingerprint a decoded raster.

        Returns:
            The 64-bit fingerprint, or None when no fingerprint can be computed
        """
        if image is None:
            return None
        samples = prepare_samples(image)
        if samples is None:
            return None
        return average_hash(samples)

    def fingerprint_item(self, store, item: MediaItem) -> int | None:
        """
        Fetch an item's raster from the asset store and fingerprint it.

        A missing raster, a store error or a raster that cannot be hashed is a
        per-item decode failure: it is logged and reported as None so the
        caller can skip the item.
        """
        try:
            image = store.fetch_raster(item.id, self.target_size)
        except Exception as e:
            logger.debug(f"Raster fetch failed for {item.id}: {e}")
            return None

        if image is None:
            logger.debug(f"No raster available for {item.id}")
            return None

        try:
            return self.fingerprint(image)
        except Exception as e:
            logger.debug(f"Could not fingerprint {item.id}: {e}")
            return None
        finally:
            image.close()
