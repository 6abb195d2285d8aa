"""Pydantic models for the photo cleaner core."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

MIB = 1024 * 1024


class MediaKind(str, Enum):
    """Kind of media item exposed by an asset store."""

    PHOTO = "photo"
    VIDEO = "video"


class Category(str, Enum):
    """Cleanup categories produced by a scan."""

    DUPLICATES = "duplicates"
    SIMILAR = "similar"
    LARGE_ITEMS = "large_items"
    SCREENSHOTS = "screenshots"


class ScanPhase(str, Enum):
    """Phase a scan session is currently working on."""

    IDLE = "idle"
    DUPLICATES = "duplicates"
    LARGE_ITEMS = "large_items"
    SCREENSHOTS = "screenshots"
    DONE = "done"


class ScanState(str, Enum):
    """Lifecycle state of a scan session."""

    IDLE = "idle"
    SCANNING = "scanning"
    DONE = "done"
    FAILED = "failed"


class ReviewDecision(str, Enum):
    """Keep/delete decision for a single item under review."""

    KEEP = "keep"
    DELETE = "delete"


class MediaItem(BaseModel):
    """Metadata about a single media item. Immutable once fetched."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Opaque asset identifier")
    created_at: datetime = Field(..., description="Creation timestamp")
    pixel_width: int = Field(default=0, ge=0, description="Pixel width")
    pixel_height: int = Field(default=0, ge=0, description="Pixel height")
    byte_size: int | None = Field(None, ge=0, description="Size in bytes, None when unknown")
    kind: MediaKind = Field(default=MediaKind.PHOTO, description="Photo or video")
    is_screenshot: bool = Field(default=False, description="Screenshot subtype flag")
    filename: str | None = Field(None, description="Display name, if the store knows one")

    @property
    def pixel_area(self) -> int:
        """Resolution in pixels."""
        return self.pixel_width * self.pixel_height

    @property
    def known_bytes(self) -> int:
        """Byte size with unknown treated as zero, for savings totals."""
        return self.byte_size or 0

    def __str__(self) -> str:
        return f"{self.filename or self.id} ({self.pixel_width}x{self.pixel_height})"


class DuplicateBucket(BaseModel):
    """Items sharing one exact fingerprint."""

    model_config = ConfigDict(frozen=True)

    fingerprint: int = Field(..., ge=0, lt=1 << 64, description="Shared 64-bit fingerprint")
    item_ids: list[str] = Field(..., min_length=2, description="Ids in stable fetch order")
    delete_bytes: int = Field(default=0, ge=0, description="Known bytes of delete candidates")

    @property
    def retained_id(self) -> str:
        """The item kept for this bucket: first by fetch order."""
        return self.item_ids[0]

    @property
    def delete_ids(self) -> list[str]:
        """Every item except the retained one."""
        return self.item_ids[1:]

    @property
    def size(self) -> int:
        return len(self.item_ids)


class SimilarCluster(BaseModel):
    """Items within the distance threshold of a shared representative."""

    model_config = ConfigDict(frozen=True)

    cluster_id: str = Field(..., description="Stable identifier for this cluster")
    items: list[MediaItem] = Field(
        ..., min_length=2, description="Members in ascending creation order, representative first"
    )
    best_id: str = Field(..., description="Member recommended to keep")

    @field_validator("best_id")
    @classmethod
    def validate_best_id(cls, v: str, info: ValidationInfo) -> str:
        """Ensure the best item is a member of the cluster."""
        items = info.data.get("items") or []
        if items and v not in {item.id for item in items}:
            raise ValueError(f"best_id {v!r} is not a cluster member")
        return v

    @property
    def representative(self) -> MediaItem:
        """Anchor item every other member was compared against."""
        return self.items[0]

    @property
    def start_date(self) -> datetime:
        """Creation date of the oldest member."""
        return self.items[0].created_at

    @property
    def review_order(self) -> list[MediaItem]:
        """Members newest first, the order a reviewer walks them."""
        return sorted(self.items, key=lambda item: item.created_at, reverse=True)

    @property
    def best_item(self) -> MediaItem:
        return next(item for item in self.items if item.id == self.best_id)

    @property
    def delete_candidate_ids(self) -> list[str]:
        """Members other than the best item, in review order."""
        return [item.id for item in self.review_order if item.id != self.best_id]

    @property
    def delete_candidate_bytes(self) -> int:
        return sum(item.known_bytes for item in self.items if item.id != self.best_id)

    def __str__(self) -> str:
        return f"Similar cluster {self.cluster_id} ({len(self.items)} items, best {self.best_id})"


class ScanProgress(BaseModel):
    """Point-in-time snapshot of scan progress, safe to hand across threads."""

    model_config = ConfigDict(frozen=True)

    state: ScanState = Field(default=ScanState.IDLE)
    phase: ScanPhase = Field(default=ScanPhase.IDLE)
    processed: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    activity: str = Field(default="", description="Short description of the current work unit")

    @property
    def fraction(self) -> float:
        """Completed fraction in [0, 1]; 0 while the total is unknown."""
        if self.total <= 0:
            return 0.0
        return min(1.0, self.processed / self.total)

    def __str__(self) -> str:
        return f"{self.state.value}/{self.phase.value}: {self.processed}/{self.total}"


class ScanSummary(BaseModel):
    """Results of a completed scan, consumed by the result aggregator."""

    duplicate_buckets: list[DuplicateBucket] = Field(default_factory=list)
    similar_clusters: list[SimilarCluster] = Field(default_factory=list)
    category_ids: dict[Category, list[str]] = Field(
        default_factory=lambda: {category: [] for category in Category},
        description="Delete candidate ids per category",
    )
    category_bytes: dict[Category, int] = Field(
        default_factory=lambda: {category: 0 for category in Category},
        description="Known bytes per category",
    )
    item_sizes: dict[str, int | None] = Field(
        default_factory=dict, description="Byte size of every id referenced by a category"
    )
    similar_item_count: int = Field(default=0, ge=0, description="Items in similar clusters")
    unknown_size_ids: list[str] = Field(
        default_factory=list, description="Videos whose size could not be determined"
    )
    skipped_ids: list[str] = Field(
        default_factory=list, description="Items that could not be fingerprinted"
    )
    total_items: int = Field(default=0, ge=0)
    scan_duration_seconds: float = Field(default=0.0, ge=0)
    scan_timestamp: datetime = Field(default_factory=datetime.now)

    def ids_for(self, category: Category) -> list[str]:
        return self.category_ids.get(category, [])

    def count_for(self, category: Category) -> int:
        return len(self.ids_for(category))

    def bytes_for(self, category: Category) -> int:
        return self.category_bytes.get(category, 0)

    def __str__(self) -> str:
        parts = ", ".join(f"{c.value}={self.count_for(c)}" for c in Category)
        return f"Scan of {self.total_items} items: {parts}"


class CategoryToggles(BaseModel):
    """Which categories contribute to the deletion plan."""

    duplicates: bool = Field(default=True)
    similar: bool = Field(default=False, description="Off until similar clusters are reviewed")
    large_items: bool = Field(default=True)
    screenshots: bool = Field(default=True)

    @classmethod
    def none(cls) -> "CategoryToggles":
        return cls(duplicates=False, similar=False, large_items=False, screenshots=False)

    @classmethod
    def only(cls, *categories: Category) -> "CategoryToggles":
        """Toggles with exactly the given categories enabled."""
        return cls(**{category.value: category in categories for category in Category})

    def is_enabled(self, category: Category) -> bool:
        return getattr(self, category.value)

    @property
    def enabled(self) -> list[Category]:
        return [category for category in Category if self.is_enabled(category)]


class AggregateResult(BaseModel):
    """Deletion plan produced by the result aggregator."""

    model_config = ConfigDict(frozen=True)

    category_counts: dict[Category, int] = Field(default_factory=dict)
    category_bytes: dict[Category, int] = Field(default_factory=dict)
    consolidated_ids: list[str] = Field(
        default_factory=list, description="Unique ids to delete, first-seen order"
    )
    consolidated_bytes: int = Field(default=0, ge=0, description="Known bytes over unique ids")

    @property
    def total_bytes(self) -> int:
        """Sum of per-category bytes; overlapping ids are counted once per category."""
        return sum(self.category_bytes.values())

    @property
    def id_set(self) -> frozenset[str]:
        return frozenset(self.consolidated_ids)

    def __str__(self) -> str:
        return f"Deletion plan: {len(self.consolidated_ids)} items, {self.consolidated_bytes} bytes"


class ScanConfig(BaseModel):
    """Configuration settings for scanning and clustering."""

    similarity_threshold: int = Field(
        default=8, ge=0, le=64, description="Max Hamming distance to a cluster representative"
    )
    prefix_bits: int = Field(
        default=12, ge=1, le=64, description="Fingerprint bits used for prefix bucketing"
    )
    large_item_threshold_bytes: int = Field(
        default=200 * MIB, gt=0, description="Minimum size for the large-items category"
    )
    hash_target_size: tuple[int, int] = Field(
        default=(96, 96), description="Raster size requested from the store for hashing"
    )
    max_workers: int = Field(default=4, ge=1, description="Threads used for fingerprinting")
    supported_image_extensions: list[str] = Field(
        default=[".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".webp", ".heic", ".heif"],
        description="File extensions treated as photos",
    )
    supported_video_extensions: list[str] = Field(
        default=[".mp4", ".mov", ".avi", ".mkv", ".wmv", ".flv", ".webm", ".m4v"],
        description="File extensions treated as videos",
    )
    screenshot_name_patterns: list[str] = Field(
        default=["screenshot", "screen shot", "screen_shot"],
        description="Lowercase filename fragments marking screenshots",
    )
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("supported_image_extensions", "supported_video_extensions")
    @classmethod
    def validate_extensions(cls, v: list[str]) -> list[str]:
        """Ensure all extensions start with a dot and are lowercase."""
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in v]

    @field_validator("hash_target_size")
    @classmethod
    def validate_hash_target_size(cls, v: tuple[int, int]) -> tuple[int, int]:
        if v[0] < 8 or v[1] < 8:
            raise ValueError("hash_target_size must be at least 8x8")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
            raise ValueError(f"Unsupported log level: {v}")
        return level
