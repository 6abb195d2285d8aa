"""Keep/delete review of similar clusters with undo and byte accounting."""

import logging
from dataclasses import dataclass, field

from .exceptions import DeleteFailureError
from .models import MediaItem, ReviewDecision, SimilarCluster

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewEvent:
    """One decision change. ``*_bytes`` is the item's delete-byte contribution, None for none."""

    item_id: str
    previous_decision: ReviewDecision | None
    previous_bytes: int | None
    new_decision: ReviewDecision
    new_bytes: int | None


@dataclass(frozen=True)
class ReviewSnapshot:
    """Decision state of a session at one point in time."""

    decisions: dict[str, ReviewDecision] = field(default_factory=dict)
    delete_bytes: dict[str, int] = field(default_factory=dict)
    saved_bytes: int = 0


class ReviewSession:
    """
    Decision state for one similar cluster.

    On entry the best item is marked keep and every other item delete, with
    each delete candidate contributing its known byte size to ``saved_bytes``.
    Items of unknown size are still marked delete but contribute nothing.
    """

    def __init__(self, cluster: SimilarCluster):
        self.cluster = cluster
        self.items: list[MediaItem] = cluster.review_order
        self._items_by_id = {item.id: item for item in self.items}

        self.cursor = 0
        self.starred: set[str] = set()
        self._decisions: dict[str, ReviewDecision] = {}
        self._delete_bytes: dict[str, int] = {}
        self._saved_bytes = 0
        self._history: list[ReviewEvent] = []
        self._redo: list[ReviewEvent] = []

        for item in self.items:
            if item.id == cluster.best_id:
                self._apply(item.id, ReviewDecision.KEEP, None)
            else:
                self._apply(item.id, ReviewDecision.DELETE, item.byte_size)

    @classmethod
    def for_cluster(cls, cluster: SimilarCluster) -> "ReviewSession":
        return cls(cluster)

    @property
    def saved_bytes(self) -> int:
        """Bytes freed by deleting every item currently marked delete."""
        return self._saved_bytes

    @property
    def history(self) -> tuple[ReviewEvent, ...]:
        return tuple(self._history)

    @property
    def can_undo(self) -> bool:
        return bool(self._history)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def current_item(self) -> MediaItem:
        return self.items[self.cursor]

    @property
    def is_at_end(self) -> bool:
        return self.cursor >= len(self.items) - 1

    @property
    def marked_for_deletion_ids(self) -> set[str]:
        return {item_id for item_id, d in self._decisions.items() if d is ReviewDecision.DELETE}

    @property
    def kept_ids(self) -> set[str]:
        return {item_id for item_id, d in self._decisions.items() if d is ReviewDecision.KEEP}

    def decision_for(self, item_id: str) -> ReviewDecision | None:
        return self._decisions.get(item_id)

    def delete_bytes_for(self, item_id: str) -> int | None:
        """Byte contribution of an item marked delete, None if it contributes none."""
        return self._delete_bytes.get(item_id)

    def snapshot(self) -> ReviewSnapshot:
        return ReviewSnapshot(
            decisions=dict(self._decisions),
            delete_bytes=dict(self._delete_bytes),
            saved_bytes=self._saved_bytes,
        )

    def mark(
        self, decision: ReviewDecision, item_id: str, byte_size: int | None = None
    ) -> ReviewEvent:
        """
        Set the decision for an item and record the change.

        Args:
            decision: New decision
            item_id: Cluster member to decide on
            byte_size: Size to account when deleting; defaults to the item's
                known size

        Returns:
            The recorded event

        Raises:
            ValueError: If the item is not a member of this cluster
        """
        item = self._items_by_id.get(item_id)
        if item is None:
            raise ValueError(f"Item {item_id!r} is not part of cluster {self.cluster.cluster_id}")

        decision = ReviewDecision(decision)
        if byte_size is None:
            byte_size = item.byte_size
        new_bytes = byte_size if decision is ReviewDecision.DELETE else None

        event = ReviewEvent(
            item_id=item_id,
            previous_decision=self._decisions.get(item_id),
            previous_bytes=self._delete_bytes.get(item_id),
            new_decision=decision,
            new_bytes=new_bytes,
        )
        self._apply(item_id, decision, new_bytes)
        self._history.append(event)
        self._redo.clear()

        logger.debug(f"Marked {item_id} as {decision.value} (saved {self._saved_bytes} bytes)")
        return event

    def advance(self) -> int:
        """Move to the next item, staying on the last one at the end."""
        self.cursor = min(self.cursor + 1, len(self.items) - 1)
        return self.cursor

    def undo(self) -> ReviewEvent | None:
        """Revert the most recent decision. Returns the reverted event, None if nothing to undo."""
        if not self._history:
            return None
        event = self._history.pop()
        self._apply(event.item_id, event.previous_decision, event.previous_bytes)
        self._redo.append(event)
        logger.debug(f"Undid {event.new_decision.value} on {event.item_id}")
        return event

    def redo(self) -> ReviewEvent | None:
        """Re-apply the most recently undone decision."""
        if not self._redo:
            return None
        event = self._redo.pop()
        self._apply(event.item_id, event.new_decision, event.new_bytes)
        self._history.append(event)
        return event

    def toggle_star(self, item_id: str) -> bool:
        """Flip the star on an item. Returns whether it is now starred."""
        if item_id in self.starred:
            self.starred.discard(item_id)
            return False
        self.starred.add(item_id)
        return True

    def _apply(
        self, item_id: str, decision: ReviewDecision | None, delete_bytes: int | None
    ) -> None:
        # Decision and byte contribution always change together
        if decision is None:
            self._decisions.pop(item_id, None)
        else:
            self._decisions[item_id] = decision

        self._saved_bytes -= self._delete_bytes.pop(item_id, 0)
        if delete_bytes is not None:
            self._delete_bytes[item_id] = delete_bytes
            self._saved_bytes += delete_bytes


class ReviewQueue:
    """Walks a list of similar clusters, one review session at a time."""

    def __init__(self, clusters: list[SimilarCluster]):
        self.clusters = list(clusters)
        self.index: int | None = None
        self.session: ReviewSession | None = None
        self.freed_bytes = 0
        if self.clusters:
            self.enter(0)

    @property
    def is_finished(self) -> bool:
        return self.session is None

    def enter(self, index: int) -> ReviewSession:
        """Start reviewing the cluster at ``index`` with fresh decisions."""
        if not 0 <= index < len(self.clusters):
            raise IndexError(f"No cluster at index {index}")
        self.index = index
        self.session = ReviewSession.for_cluster(self.clusters[index])
        return self.session

    def next_cluster(self) -> ReviewSession | None:
        """Move on to the next cluster, or finish if this was the last one."""
        if self.index is None:
            return None
        next_index = self.index + 1
        if next_index < len(self.clusters):
            return self.enter(next_index)
        self.leave()
        return None

    def leave(self) -> None:
        self.index = None
        self.session = None

    def delete_marked(self, store) -> set[str]:
        """
        Delete the current cluster's marked items as one batch and move on.

        Returns:
            Ids that were deleted (empty if nothing was marked)

        Raises:
            DeleteFailureError: If the store did not complete the deletion; the
                queue stays on the current cluster
        """
        if self.session is None:
            return set()
        ids = self.session.marked_for_deletion_ids
        if not ids:
            return set()

        try:
            succeeded = store.delete_batch(set(ids))
        except Exception as e:
            logger.warning(f"Deleting {len(ids)} items failed: {e}")
            raise DeleteFailureError(ids, str(e)) from e
        if not succeeded:
            logger.warning(f"Asset store refused to delete {len(ids)} items")
            raise DeleteFailureError(ids)

        self.freed_bytes += self.session.saved_bytes
        logger.info(f"Deleted {len(ids)} items from {self.session.cluster.cluster_id}")
        self.next_cluster()
        return ids
