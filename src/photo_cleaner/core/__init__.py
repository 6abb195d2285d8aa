"""Core functionality for photo cleaner."""

from .aggregator import ResultAggregator
from .asset_store import AssetStore, LocalAssetStore
from .exceptions import (
    DeleteFailureError,
    PermissionDeniedError,
    PhotoCleanerError,
    ScanCancelledError,
)
from .grouper import ExactDuplicateIndex
from .hashing import HashExtractor, average_hash, format_fingerprint, hamming_distance
from .models import (
    AggregateResult,
    Category,
    CategoryToggles,
    DuplicateBucket,
    MediaItem,
    MediaKind,
    ReviewDecision,
    ScanConfig,
    ScanPhase,
    ScanProgress,
    ScanState,
    ScanSummary,
    SimilarCluster,
)
from .review import ReviewEvent, ReviewQueue, ReviewSession
from .scanner import ScanOrchestrator, ScanSession
from .similarity import SimilarityClusterer, select_best_item

__all__ = [
    "AggregateResult",
    "AssetStore",
    "Category",
    "CategoryToggles",
    "DeleteFailureError",
    "DuplicateBucket",
    "ExactDuplicateIndex",
    "HashExtractor",
    "LocalAssetStore",
    "MediaItem",
    "MediaKind",
    "PermissionDeniedError",
    "PhotoCleanerError",
    "ResultAggregator",
    "ReviewDecision",
    "ReviewEvent",
    "ReviewQueue",
    "ReviewSession",
    "ScanCancelledError",
    "ScanConfig",
    "ScanOrchestrator",
    "ScanPhase",
    "ScanProgress",
    "ScanSession",
    "ScanState",
    "ScanSummary",
    "SimilarCluster",
    "SimilarityClusterer",
    "average_hash",
    "format_fingerprint",
    "hamming_distance",
    "select_best_item",
]
