"""Multi-phase, cancellable library scanning."""

import logging
import threading
import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Protocol

from .asset_store import AssetStore
from .exceptions import PermissionDeniedError, ScanCancelledError
from .grouper import ExactDuplicateIndex
from .hashing import HashExtractor
from .models import (
    Category,
    MediaItem,
    MediaKind,
    ScanConfig,
    ScanPhase,
    ScanProgress,
    ScanState,
    ScanSummary,
)
from .similarity import SimilarityClusterer

logger = logging.getLogger(__name__)


class ProgressCallback(Protocol):
    """Protocol for progress callback functions."""

    def __call__(self, current: int, total: int | None = None, message: str = "") -> None:
        """Called from the scan thread after every progress update."""
        ...


class ScanSession:
    """
    One scan of an asset store, run on a background thread.

    Phases run in order: duplicates (fingerprint photos, exact buckets and
    similar clusters), large items (video sizes), screenshots. Progress can be
    read at any time with ``progress()``. A cancelled session discards all of
    its partial results and goes back to idle without a summary.
    """

    def __init__(
        self,
        store: AssetStore,
        config: ScanConfig | None = None,
        kinds: Iterable[MediaKind] = (MediaKind.PHOTO, MediaKind.VIDEO),
        progress_callback: ProgressCallback | None = None,
    ):
        self.store = store
        self.config = config or ScanConfig()
        self.kinds = frozenset(kinds)
        self.progress_callback = progress_callback
        self.hash_extractor = HashExtractor(self.config.hash_target_size)
        self.clusterer = SimilarityClusterer(
            threshold=self.config.similarity_threshold,
            prefix_bits=self.config.prefix_bits,
        )

        self._lock = threading.Lock()
        self._cancel_event = threading.Event()
        self._progress = ScanProgress()
        self._summary: ScanSummary | None = None
        self._error: Exception | None = None
        self._thread = threading.Thread(target=self._run, name="photo-cleaner-scan", daemon=True)

    @property
    def is_active(self) -> bool:
        return self._thread.is_alive()

    @property
    def is_cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def summary(self) -> ScanSummary | None:
        with self._lock:
            return self._summary

    @property
    def error(self) -> Exception | None:
        with self._lock:
            return self._error

    def progress(self) -> ScanProgress:
        """Snapshot of the current progress."""
        with self._lock:
            return self._progress

    def start(self) -> None:
        self._set_progress(ScanProgress(state=ScanState.SCANNING, activity="Preparing..."))
        self._thread.start()

    def cancel(self) -> None:
        """Ask the scan to stop at the next item boundary. No effect once it has finished."""
        self._cancel_event.set()

    def wait(self, timeout: float | None = None) -> ScanSummary | None:
        """
        Block until the scan stops.

        Returns:
            The summary, or None if the scan was cancelled, failed or is still
            running when the timeout expires
        """
        if self._thread.ident is not None:
            self._thread.join(timeout)
        return self.summary

    def _run(self) -> None:
        start_time = time.time()
        logger.info(f"Starting scan of {sorted(kind.value for kind in self.kinds)}")

        try:
            summary = self._scan()
        except ScanCancelledError:
            logger.info(f"Scan cancelled after {time.time() - start_time:.2f} seconds")
            self._set_progress(ScanProgress())
            return
        except Exception as e:
            logger.exception("Scan failed")
            with self._lock:
                self._error = e
            self._update(state=ScanState.FAILED)
            return

        summary.scan_duration_seconds = time.time() - start_time
        with self._lock:
            self._summary = summary
        self._update(state=ScanState.DONE, phase=ScanPhase.DONE, activity="Scan complete")
        logger.info(f"Scan complete in {summary.scan_duration_seconds:.2f} seconds: {summary}")

    def _scan(self) -> ScanSummary:
        photos = self.store.enumerate(MediaKind.PHOTO) if MediaKind.PHOTO in self.kinds else []
        self._check_cancelled()
        videos = self.store.enumerate(MediaKind.VIDEO) if MediaKind.VIDEO in self.kinds else []
        self._check_cancelled()

        summary = ScanSummary(total_items=len(photos) + len(videos))
        self._update(processed=0, total=summary.total_items)

        if photos:
            self._update(phase=ScanPhase.DUPLICATES, activity="Analyzing duplicates...")
            self._scan_duplicates(photos, summary)

        if videos:
            self._update(phase=ScanPhase.LARGE_ITEMS, activity="Analyzing large videos...")
            self._scan_large_items(videos, summary)

        if photos:
            self._update(phase=ScanPhase.SCREENSHOTS, activity="Analyzing screenshots...")
            self._scan_screenshots(photos, summary)

        self._check_cancelled()
        return summary

    def _scan_duplicates(self, photos: list[MediaItem], summary: ScanSummary) -> None:
        fingerprints = self._fingerprint_all(photos)

        entries = []
        for item, fingerprint in zip(photos, fingerprints):
            if fingerprint is None:
                summary.skipped_ids.append(item.id)
            else:
                entries.append((item, fingerprint))
        if summary.skipped_ids:
            logger.info(f"Skipped {len(summary.skipped_ids)} items without a fingerprint")

        # entries are in fetch order, which decides the retained item
        index = ExactDuplicateIndex().add_all(entries)
        summary.duplicate_buckets = index.buckets()
        for bucket in summary.duplicate_buckets:
            summary.category_ids[Category.DUPLICATES].extend(bucket.delete_ids)
            summary.category_bytes[Category.DUPLICATES] += bucket.delete_bytes
        self._check_cancelled()

        by_date = sorted(entries, key=lambda entry: entry[0].created_at)
        summary.similar_clusters = self.clusterer.cluster(by_date, check_cancel=self._check_cancelled)
        for cluster in summary.similar_clusters:
            summary.similar_item_count += len(cluster.items)
            summary.category_ids[Category.SIMILAR].extend(cluster.delete_candidate_ids)
            summary.category_bytes[Category.SIMILAR] += cluster.delete_candidate_bytes

        sizes = {item.id: item.byte_size for item in photos}
        for item_id in summary.category_ids[Category.DUPLICATES]:
            summary.item_sizes[item_id] = sizes[item_id]
        # All members: review can mark the best item for deletion
        for cluster in summary.similar_clusters:
            for item in cluster.items:
                summary.item_sizes[item.id] = item.byte_size

    def _fingerprint_all(self, photos: list[MediaItem]) -> list[int | None]:
        """
        Fingerprint photos on a thread pool.

        Returns:
            Fingerprints aligned with ``photos``, regardless of completion order
        """
        fingerprints: list[int | None] = [None] * len(photos)
        executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="photo-cleaner-hash"
        )
        try:
            futures = {
                executor.submit(self._fingerprint_one, item): position
                for position, item in enumerate(photos)
            }
            for future in as_completed(futures):
                self._check_cancelled()
                position = futures[future]
                fingerprints[position] = future.result()
                self._advance(photos[position])
        finally:
            # Queued items are dropped; running ones finish their single item
            executor.shutdown(wait=True, cancel_futures=True)
        return fingerprints

    def _fingerprint_one(self, item: MediaItem) -> int | None:
        if self._cancel_event.is_set():
            return None
        return self.hash_extractor.fingerprint_item(self.store, item)

    def _scan_large_items(self, videos: list[MediaItem], summary: ScanSummary) -> None:
        threshold = self.config.large_item_threshold_bytes
        for item in videos:
            self._check_cancelled()
            if item.byte_size is None:
                # Unknown size is reported separately, never assumed to be small
                summary.unknown_size_ids.append(item.id)
            elif item.byte_size >= threshold:
                summary.category_ids[Category.LARGE_ITEMS].append(item.id)
                summary.category_bytes[Category.LARGE_ITEMS] += item.byte_size
                summary.item_sizes[item.id] = item.byte_size
            self._advance(item)

        # Largest first
        summary.category_ids[Category.LARGE_ITEMS].sort(
            key=lambda item_id: summary.item_sizes[item_id], reverse=True
        )

        logger.info(
            f"Found {summary.count_for(Category.LARGE_ITEMS)} large videos "
            f"({len(summary.unknown_size_ids)} of unknown size)"
        )

    def _scan_screenshots(self, photos: list[MediaItem], summary: ScanSummary) -> None:
        for item in photos:
            self._check_cancelled()
            if item.is_screenshot:
                summary.category_ids[Category.SCREENSHOTS].append(item.id)
                summary.category_bytes[Category.SCREENSHOTS] += item.known_bytes
                summary.item_sizes[item.id] = item.byte_size

        logger.info(f"Found {summary.count_for(Category.SCREENSHOTS)} screenshots")

    def _check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise ScanCancelledError("Scan cancelled by user")

    def _advance(self, item: MediaItem) -> None:
        with self._lock:
            self._progress = self._progress.model_copy(
                update={"processed": self._progress.processed + 1, "activity": item.filename or item.id}
            )
            snapshot = self._progress
        self._notify(snapshot)

    def _update(self, **changes) -> None:
        with self._lock:
            self._progress = self._progress.model_copy(update=changes)
            snapshot = self._progress
        self._notify(snapshot)

    def _set_progress(self, progress: ScanProgress) -> None:
        with self._lock:
            self._progress = progress
        self._notify(progress)

    def _notify(self, progress: ScanProgress) -> None:
        if self.progress_callback:
            self.progress_callback(progress.processed, progress.total or None, progress.activity)


class ScanOrchestrator:
    """Runs at most one scan session at a time against an asset store."""

    def __init__(
        self,
        store: AssetStore,
        config: ScanConfig | None = None,
        progress_callback: ProgressCallback | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Asset store to scan
            config: Scan configuration, defaults to ScanConfig()
            progress_callback: Optional callback for progress updates
        """
        self.store = store
        self.config = config or ScanConfig()
        self.progress_callback = progress_callback
        self._lock = threading.Lock()
        self._session: ScanSession | None = None

    @property
    def active_session(self) -> ScanSession | None:
        session = self._session
        if session is not None and session.is_active:
            return session
        return None

    @property
    def session(self) -> ScanSession | None:
        """The most recently started session, active or not."""
        return self._session

    def start(self, kinds: Iterable[MediaKind] = (MediaKind.PHOTO, MediaKind.VIDEO)) -> ScanSession:
        """
        Start a scan in the background.

        Any scan still running is cancelled and waited for first; its results
        are discarded.

        Raises:
            PermissionDeniedError: If the asset store is not readable
        """
        if not self.store.is_authorized():
            raise PermissionDeniedError("No permission to read the media library")

        with self._lock:
            previous = self._session
            if previous is not None and previous.is_active:
                logger.info("Cancelling in-flight scan before starting a new one")
                previous.cancel()
                previous.wait()

            session = ScanSession(self.store, self.config, kinds, self.progress_callback)
            self._session = session
            session.start()
        return session

    def scan(
        self,
        kinds: Iterable[MediaKind] = (MediaKind.PHOTO, MediaKind.VIDEO),
        timeout: float | None = None,
    ) -> ScanSummary | None:
        """Start a scan and wait for it. Returns None if it was cancelled or failed."""
        return self.start(kinds).wait(timeout)

    def cancel(self) -> None:
        """Cancel the current scan, if any. Returns without waiting for it to stop."""
        session = self._session
        if session is not None:
            session.cancel()

    def progress(self) -> ScanProgress:
        session = self._session
        if session is None:
            return ScanProgress()
        return session.progress()
