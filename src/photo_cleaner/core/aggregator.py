"""Combining scan categories into a single deletion plan."""

import logging

from .asset_store import AssetStore
from .exceptions import DeleteFailureError
from .models import AggregateResult, Category, CategoryToggles, ScanSummary
from .review import ReviewSession

logger = logging.getLogger(__name__)


class ResultAggregator:
    """
    Builds the batch-deletion set from a scan summary.

    Categories are toggled independently. An id listed by several enabled
    categories is deleted once, but each category still reports its own byte
    total, so ``total_bytes`` can count an overlapping item more than once.
    ``consolidated_bytes`` counts every unique id exactly once.
    """

    def __init__(self, summary: ScanSummary):
        self.summary = summary
        self._reviewed: dict[str, ReviewSession] = {}

    def apply_review(self, session: ReviewSession) -> None:
        """Use a reviewed cluster's decisions instead of its default delete candidates."""
        cluster_id = session.cluster.cluster_id
        if cluster_id not in {c.cluster_id for c in self.summary.similar_clusters}:
            raise ValueError(f"Cluster {cluster_id} is not part of this scan")
        self._reviewed[cluster_id] = session

    def ids_for(self, category: Category) -> list[str]:
        if category is not Category.SIMILAR or not self._reviewed:
            return list(self.summary.ids_for(category))

        ids = []
        for cluster in self.summary.similar_clusters:
            session = self._reviewed.get(cluster.cluster_id)
            if session is None:
                ids.extend(cluster.delete_candidate_ids)
            else:
                marked = session.marked_for_deletion_ids
                ids.extend(item.id for item in cluster.review_order if item.id in marked)
        return ids

    def bytes_for(self, category: Category) -> int:
        if category is not Category.SIMILAR or not self._reviewed:
            return self.summary.bytes_for(category)
        return sum(self._size_of(item_id) for item_id in self.ids_for(category))

    def aggregate(self, toggles: CategoryToggles | None = None) -> AggregateResult:
        """
        Compute the deletion plan for the enabled categories.

        Args:
            toggles: Enabled categories, defaults to CategoryToggles()

        Returns:
            Per-category counts and bytes plus the deduplicated id list
        """
        toggles = toggles or CategoryToggles()

        counts: dict[Category, int] = {}
        category_bytes: dict[Category, int] = {}
        consolidated: dict[str, None] = {}
        for category in toggles.enabled:
            ids = self.ids_for(category)
            counts[category] = len(ids)
            category_bytes[category] = self.bytes_for(category)
            consolidated.update(dict.fromkeys(ids))

        result = AggregateResult(
            category_counts=counts,
            category_bytes=category_bytes,
            consolidated_ids=list(consolidated),
            consolidated_bytes=sum(self._size_of(item_id) for item_id in consolidated),
        )
        logger.debug(f"Aggregated {[c.value for c in toggles.enabled]}: {result}")
        return result

    def execute(self, store: AssetStore, toggles: CategoryToggles | None = None) -> AggregateResult:
        """
        Delete the consolidated ids as one batch. Nothing is retried.

        Raises:
            DeleteFailureError: If the store did not complete the deletion
        """
        result = self.aggregate(toggles)
        ids = result.id_set
        if not ids:
            logger.info("Nothing selected for deletion")
            return result

        try:
            succeeded = store.delete_batch(set(ids))
        except Exception as e:
            logger.warning(f"Batch delete of {len(ids)} items failed: {e}")
            raise DeleteFailureError(ids, str(e)) from e
        if not succeeded:
            logger.warning(f"Asset store refused to delete {len(ids)} items")
            raise DeleteFailureError(ids)

        logger.info(f"Deleted {len(ids)} items ({result.consolidated_bytes} bytes)")
        return result

    def _size_of(self, item_id: str) -> int:
        # A reviewed cluster counts the bytes its session accounted for
        for session in self._reviewed.values():
            contribution = session.delete_bytes_for(item_id)
            if contribution is not None:
                return contribution
        return self.summary.item_sizes.get(item_id) or 0
