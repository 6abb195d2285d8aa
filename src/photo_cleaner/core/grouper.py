"""Exact duplicate grouping by identical fingerprint."""

import logging
from collections import defaultdict

from .models import DuplicateBucket, MediaItem

logger = logging.getLogger(__name__)


class ExactDuplicateIndex:
    """Groups items whose fingerprints are identical."""

    def __init__(self):
        """Initialize an empty index."""
        self._groups: dict[int, list[MediaItem]] = defaultdict(list)
        self._item_count = 0

    def __len__(self) -> int:
        return self._item_count

    def add(self, item: MediaItem, fingerprint: int | None) -> None:
        """
        Add an item to the index.

        Items must be added in stable fetch order: the first item added for a
        fingerprint is the one retained.

        Args:
            item: Item that was fingerprinted
            fingerprint: Its fingerprint, or None if it could not be computed
        """
        if fingerprint is None:
            logger.debug(f"Skipping item without fingerprint: {item.id}")
            return
        self._groups[fingerprint].append(item)
        self._item_count += 1

    def add_all(self, entries: list[tuple[MediaItem, int | None]]) -> "ExactDuplicateIndex":
        for item, fingerprint in entries:
            self.add(item, fingerprint)
        return self

    def buckets(self) -> list[DuplicateBucket]:
        """
        Build duplicate buckets for every fingerprint shared by two or more items.

        Returns:
            Buckets sorted by size (largest first), ties in first-seen order

        Example:
            >>> index = ExactDuplicateIndex()
            >>> for item, fp in zip(items, [a, a, a, b, c]):
            ...     index.add(item, fp)
            >>> [bucket.size for bucket in index.buckets()]
            [3]
        """
        buckets = []
        for fingerprint, items in self._groups.items():
            # Single files are not duplicates
            if len(items) < 2:
                continue

            bucket = DuplicateBucket(
                fingerprint=fingerprint,
                item_ids=[item.id for item in items],
                delete_bytes=sum(item.known_bytes for item in items[1:]),
            )
            buckets.append(bucket)
            logger.debug(
                f"Duplicate bucket {fingerprint:016x}: keep {bucket.retained_id}, "
                f"delete {len(bucket.delete_ids)}"
            )

        # sort() is stable, so equal sizes keep first-seen order
        buckets.sort(key=lambda b: -b.size)

        logger.info(
            f"Grouped {self._item_count} fingerprinted items into {len(buckets)} duplicate buckets"
        )
        return buckets

    def delete_ids(self) -> list[str]:
        """Ids flagged for deletion across all buckets."""
        return [item_id for bucket in self.buckets() for item_id in bucket.delete_ids]

    def delete_bytes(self) -> int:
        return sum(bucket.delete_bytes for bucket in self.buckets())
