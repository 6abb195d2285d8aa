"""Near-duplicate clustering of fingerprinted items."""

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable

from .hashing import fingerprint_prefix, hamming_distance
from .models import MediaItem, SimilarCluster

logger = logging.getLogger(__name__)

Entry = tuple[MediaItem, int]


def select_best_item(items: Iterable[MediaItem]) -> MediaItem:
    """
    Pick the item to keep from a group of similar items.

    Larger pixel area wins; equal areas go to the newer creation date. Items
    equal on both keep the earliest position.

    Raises:
        ValueError: If items is empty
    """
    return max(items, key=lambda item: (item.pixel_area, item.created_at))


class SimilarityClusterer:
    """Clusters items whose fingerprints are within a Hamming distance of each other."""

    def __init__(self, threshold: int = 8, prefix_bits: int = 12):
        """
        Initialize the clusterer.

        Args:
            threshold: Maximum Hamming distance (of 64 bits) to a cluster representative
            prefix_bits: Number of leading fingerprint bits used to pre-bucket items
        """
        self.threshold = threshold
        self.prefix_bits = prefix_bits

        self.stats = {
            "buckets_analyzed": 0,
            "comparisons": 0,
            "singletons_dropped": 0,
        }

    def bucket_by_prefix(self, entries: Iterable[Entry]) -> dict[int, list[Entry]]:
        """
        Partition fingerprinted items by fingerprint prefix.

        Items whose prefixes differ are never compared, even if their full
        fingerprints are close. This keeps clustering far below O(n^2).
        """
        buckets: dict[int, list[Entry]] = defaultdict(list)
        for item, fingerprint in entries:
            buckets[fingerprint_prefix(fingerprint, self.prefix_bits)].append((item, fingerprint))
        return buckets

    def cluster_bucket(self, entries: list[Entry]) -> list[list[Entry]]:
        """
        Cluster the items of one prefix bucket.

        Items are visited oldest first. Each item joins the first cluster whose
        representative (its first member) is within the threshold, otherwise it
        starts a new cluster. Members are not compared with each other, so two
        members of one cluster may be further apart than the threshold.

        Returns:
            Clusters with two or more members, in creation order
        """
        # sorted() is stable: equal dates keep fetch order
        ordered = sorted(entries, key=lambda entry: entry[0].created_at)

        clusters: list[list[Entry]] = []
        for entry in ordered:
            for cluster in clusters:
                self.stats["comparisons"] += 1
                if hamming_distance(cluster[0][1], entry[1]) <= self.threshold:
                    cluster.append(entry)
                    break
            else:
                clusters.append([entry])

        survivors = [cluster for cluster in clusters if len(cluster) >= 2]
        self.stats["singletons_dropped"] += len(clusters) - len(survivors)
        return survivors

    def cluster(
        self,
        entries: Iterable[Entry],
        check_cancel: Callable[[], None] | None = None,
    ) -> list[SimilarCluster]:
        """
        Build similar clusters from fingerprinted items.

        Args:
            entries: (item, fingerprint) pairs; items without a fingerprint must
                not be passed in
            check_cancel: Optional callable invoked between buckets; it aborts
                clustering by raising

        Returns:
            Clusters sorted newest start date first
        """
        self.stats = {"buckets_analyzed": 0, "comparisons": 0, "singletons_dropped": 0}

        results: list[SimilarCluster] = []
        for prefix, bucket in self.bucket_by_prefix(entries).items():
            if check_cancel:
                check_cancel()
            if len(bucket) < 2:
                continue

            self.stats["buckets_analyzed"] += 1
            for members in self.cluster_bucket(bucket):
                items = [item for item, _ in members]
                best = select_best_item(items)
                results.append(
                    SimilarCluster(
                        cluster_id=f"similar-{items[0].id}",
                        items=items,
                        best_id=best.id,
                    )
                )
                logger.debug(
                    f"Similar cluster in bucket {prefix:x}: {len(items)} items, best {best.id}"
                )

        results.sort(key=lambda c: c.start_date, reverse=True)

        logger.info(
            f"Found {len(results)} similar clusters "
            f"({self.stats['buckets_analyzed']} buckets, {self.stats['comparisons']} comparisons)"
        )
        return results
