"""Tests for similar cluster review sessions."""

import pytest

from ..exceptions import DeleteFailureError
from ..models import ReviewDecision, SimilarCluster
from ..review import ReviewQueue, ReviewSession
from .fakes import FakeAssetStore, make_item


def make_cluster(cluster_id: str = "c1", sizes=(100, 200, 300), best_index: int = 0) -> SimilarCluster:
    """Cluster of items created a minute apart; ids are f"{cluster_id}-{i}"."""
    items = [make_item(f"{cluster_id}-{i}", minutes=i, byte_size=size) for i, size in enumerate(sizes)]
    return SimilarCluster(cluster_id=cluster_id, items=items, best_id=items[best_index].id)


class TestReviewSession:
    """Test cases for ReviewSession class."""

    def setup_method(self) -> None:
        """Set up test fixtures."""
        self.cluster = make_cluster(sizes=(100, 200, 300), best_index=0)
        self.session = ReviewSession.for_cluster(self.cluster)

    def test_initial_decisions(self) -> None:
        assert self.session.decision_for("c1-0") == ReviewDecision.KEEP
        assert self.session.marked_for_deletion_ids == {"c1-1", "c1-2"}
        assert self.session.kept_ids == {"c1-0"}
        assert self.session.saved_bytes == 500
        assert not self.session.can_undo

    def test_items_walked_newest_first(self) -> None:
        assert [item.id for item in self.session.items] == ["c1-2", "c1-1", "c1-0"]
        assert self.session.current_item.id == "c1-2"

    def test_mark_keep_removes_contribution(self) -> None:
        self.session.mark(ReviewDecision.KEEP, "c1-2")

        assert self.session.saved_bytes == 200
        assert "c1-2" not in self.session.marked_for_deletion_ids

    def test_mark_delete_on_best_adds_contribution(self) -> None:
        self.session.mark(ReviewDecision.DELETE, "c1-0")

        assert self.session.saved_bytes == 600

    def test_mark_accepts_decision_values(self) -> None:
        self.session.mark("keep", "c1-1")

        assert self.session.decision_for("c1-1") == ReviewDecision.KEEP

    def test_mark_with_explicit_size(self) -> None:
        self.session.mark(ReviewDecision.KEEP, "c1-1")
        self.session.mark(ReviewDecision.DELETE, "c1-1", byte_size=50)

        assert self.session.saved_bytes == 350

    def test_unknown_item_rejected(self) -> None:
        with pytest.raises(ValueError, match="not part of cluster"):
            self.session.mark(ReviewDecision.DELETE, "elsewhere")

    def test_undo_restores_decision_and_bytes(self) -> None:
        before = self.session.snapshot()
        self.session.mark(ReviewDecision.KEEP, "c1-1")
        self.session.mark(ReviewDecision.DELETE, "c1-0")

        self.session.undo()
        self.session.undo()

        assert self.session.snapshot() == before
        assert self.session.undo() is None

    def test_redo_reapplies(self) -> None:
        self.session.mark(ReviewDecision.KEEP, "c1-2")
        after = self.session.snapshot()

        event = self.session.undo()
        assert event.item_id == "c1-2"
        assert self.session.redo() == event
        assert self.session.snapshot() == after
        assert self.session.redo() is None

    def test_new_decision_clears_redo(self) -> None:
        self.session.mark(ReviewDecision.KEEP, "c1-2")
        self.session.undo()
        self.session.mark(ReviewDecision.KEEP, "c1-1")

        assert not self.session.can_redo

    def test_saved_bytes_track_marked_items(self) -> None:
        steps = [
            (ReviewDecision.KEEP, "c1-1"),
            (ReviewDecision.DELETE, "c1-0"),
            (ReviewDecision.DELETE, "c1-1"),
            (ReviewDecision.KEEP, "c1-2"),
        ]
        sizes = {item.id: item.byte_size for item in self.cluster.items}
        for decision, item_id in steps:
            self.session.mark(decision, item_id)
            expected = sum(sizes[i] for i in self.session.marked_for_deletion_ids)
            assert self.session.saved_bytes == expected
        while self.session.can_undo:
            self.session.undo()
            expected = sum(sizes[i] for i in self.session.marked_for_deletion_ids)
            assert self.session.saved_bytes == expected

    def test_unknown_size_marked_without_contribution(self) -> None:
        cluster = SimilarCluster(
            cluster_id="u",
            items=[make_item("a", byte_size=100), make_item("b", minutes=1, byte_size=None)],
            best_id="a",
        )
        session = ReviewSession(cluster)

        assert session.marked_for_deletion_ids == {"b"}
        assert session.saved_bytes == 0

    def test_advance_stops_at_last_item(self) -> None:
        assert self.session.advance() == 1
        assert self.session.advance() == 2
        assert self.session.advance() == 2
        assert self.session.is_at_end

    def test_toggle_star(self) -> None:
        assert self.session.toggle_star("c1-1") is True
        assert self.session.toggle_star("c1-1") is False
        assert self.session.starred == set()


class TestReviewQueue:
    """Test cases for ReviewQueue class."""

    def setup_method(self) -> None:
        """Set up test fixtures."""
        self.clusters = [make_cluster("c1"), make_cluster("c2", sizes=(10, 20))]
        self.store = FakeAssetStore()
        self.queue = ReviewQueue(self.clusters)

    def test_starts_on_first_cluster(self) -> None:
        assert self.queue.index == 0
        assert self.queue.session.cluster.cluster_id == "c1"

    def test_empty_queue_is_finished(self) -> None:
        assert ReviewQueue([]).is_finished

    def test_enter_out_of_range(self) -> None:
        with pytest.raises(IndexError):
            self.queue.enter(5)

    def test_reentering_resets_decisions(self) -> None:
        self.queue.session.mark(ReviewDecision.KEEP, "c1-1")

        session = self.queue.enter(0)

        assert session.decision_for("c1-1") == ReviewDecision.DELETE
        assert not session.can_undo

    def test_next_cluster_then_finish(self) -> None:
        assert self.queue.next_cluster().cluster.cluster_id == "c2"
        assert self.queue.next_cluster() is None
        assert self.queue.is_finished

    def test_delete_marked_advances(self) -> None:
        deleted = self.queue.delete_marked(self.store)

        assert deleted == {"c1-1", "c1-2"}
        assert self.store.delete_calls == [{"c1-1", "c1-2"}]
        assert self.queue.freed_bytes == 500
        assert self.queue.index == 1

    def test_delete_with_nothing_marked(self) -> None:
        for item_id in ("c1-1", "c1-2"):
            self.queue.session.mark(ReviewDecision.KEEP, item_id)

        assert self.queue.delete_marked(self.store) == set()
        assert self.store.delete_calls == []

    def test_refused_delete_stays_on_cluster(self) -> None:
        self.store.delete_result = False

        with pytest.raises(DeleteFailureError) as exc_info:
            self.queue.delete_marked(self.store)

        assert exc_info.value.ids == {"c1-1", "c1-2"}
        assert self.queue.index == 0
        assert self.queue.freed_bytes == 0

    def test_store_error_becomes_delete_failure(self) -> None:
        self.store.delete_result = OSError("read-only file system")

        with pytest.raises(DeleteFailureError, match="read-only"):
            self.queue.delete_marked(self.store)

        assert self.queue.session.cluster.cluster_id == "c1"
